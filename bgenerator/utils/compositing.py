"""Porter-Duff source-over blending on RGBA8 regions.

Every compositing stage (tint, vignette, overlays, mock widgets) reduces to
"paint a source with per-pixel coverage over the destination". This module
holds that one formula so the stages cannot drift apart.

Model (straight, non-premultiplied alpha, channels in [0, 255]):
    a_out = a_src + a_dst * (1 - a_src)
    c_out = (c_src * a_src + c_dst * a_dst * (1 - a_src)) / a_out

For an opaque destination (a_dst = 1) this reduces to the familiar
    c_out = c_src * a_src + c_dst * (1 - a_src)

Invariants:
    - Pixels with zero source coverage are left bit-identical
    - Outputs are rounded and clipped to uint8
"""

from typing import Tuple

import numpy as np

from .color import to_uint8


# Rows per block; bounds float temporaries to a few MB on a 4096² canvas
BLOCK_ROWS = 256


def _blend_block(dst: np.ndarray, src_rgb: np.ndarray, src_alpha: np.ndarray) -> None:
    """Source-over for one block of rows (see module docstring)."""
    touched = src_alpha > 0.0
    if not touched.any():
        return

    if touched.all():
        a_s = src_alpha[..., np.newaxis]
        c_s = src_rgb
        d = dst.astype(np.float32)
    else:
        a_s = src_alpha[touched][:, np.newaxis]
        c_s = src_rgb[touched]
        d = dst[touched].astype(np.float32)

    a_d = d[..., 3:4] / 255.0
    c_d = d[..., :3]

    # Opaque destinations stay exactly opaque (no division drift)
    a_out = np.where(a_d >= 1.0, np.float32(1.0), a_s + a_d * (1.0 - a_s))
    out = np.empty_like(d)
    out[..., :3] = (c_s * a_s + c_d * a_d * (1.0 - a_s)) / np.maximum(a_out, 1e-12)
    out[..., 3:4] = a_out * 255.0

    if touched.all():
        dst[...] = to_uint8(out)
    else:
        dst[touched] = to_uint8(out)


def blend_over(
    dst: np.ndarray,
    src_rgb: np.ndarray,
    src_alpha: np.ndarray
) -> None:
    """Composite a source over an RGBA8 destination region, in place.

    Parameters
    ----------
    dst : np.ndarray
        Destination view, shape (h, w, 4), uint8 (modified in place)
    src_rgb : np.ndarray
        Source color levels [0, 255], shape (h, w, 3) or broadcastable (3,)
    src_alpha : np.ndarray
        Source coverage [0, 1], shape (h, w) or scalar

    Notes
    -----
    Pixels where src_alpha == 0 are not written, so a zero-coverage source
    is an exact identity (no rounding drift). Work is done in blocks of
    BLOCK_ROWS rows.
    """
    h, w = dst.shape[:2]
    src_alpha = np.broadcast_to(np.asarray(src_alpha, dtype=np.float32), (h, w))
    src_rgb = np.broadcast_to(np.asarray(src_rgb, dtype=np.float32), (h, w, 3))

    for y in range(0, h, BLOCK_ROWS):
        rows = slice(y, min(h, y + BLOCK_ROWS))
        _blend_block(dst[rows], src_rgb[rows], src_alpha[rows])


def clip_rect(
    x0: int,
    y0: int,
    w: int,
    h: int,
    canvas_w: int,
    canvas_h: int
) -> Tuple[slice, slice, slice, slice]:
    """Intersect a placed rectangle with the canvas.

    Parameters
    ----------
    x0, y0 : int
        Top-left of the rectangle in canvas pixels (may be negative)
    w, h : int
        Rectangle size in pixels
    canvas_w, canvas_h : int
        Canvas size in pixels

    Returns
    -------
    tuple of slice
        (canvas_rows, canvas_cols, src_rows, src_cols). Slices are empty when
        the rectangle lies fully outside the canvas.
    """
    cx0 = max(0, x0)
    cy0 = max(0, y0)
    cx1 = min(canvas_w, x0 + w)
    cy1 = min(canvas_h, y0 + h)

    if cx1 <= cx0 or cy1 <= cy0:
        empty = slice(0, 0)
        return empty, empty, empty, empty

    return (
        slice(cy0, cy1),
        slice(cx0, cx1),
        slice(cy0 - y0, cy1 - y0),
        slice(cx0 - x0, cx1 - x0),
    )


def paste_rgba(dst: np.ndarray, layer: np.ndarray, x0: int, y0: int, opacity: float = 1.0) -> None:
    """Composite an RGBA8 layer onto an RGBA8 canvas with clipping.

    Parameters
    ----------
    dst : np.ndarray
        Canvas, shape (H, W, 4), uint8 (modified in place)
    layer : np.ndarray
        Layer bitmap, shape (h, w, 4), uint8, straight alpha
    x0, y0 : int
        Top-left position of the layer on the canvas (may be off-canvas)
    opacity : float
        Global opacity multiplier [0, 1]
    """
    canvas_h, canvas_w = dst.shape[:2]
    h, w = layer.shape[:2]
    rows, cols, src_rows, src_cols = clip_rect(x0, y0, w, h, canvas_w, canvas_h)
    if rows.stop == rows.start:
        return

    region = layer[src_rows, src_cols]
    alpha = region[..., 3].astype(np.float32) / 255.0 * float(opacity)
    blend_over(dst[rows, cols], region[..., :3], alpha)
