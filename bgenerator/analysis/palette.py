"""Dominant-color analysis of arbitrary images.

Algorithm:
    1. Flatten the RGBA pixels row-major and take every ``step``-th pixel
    2. Drop samples with alpha < 128
    3. Quantize each channel to the nearest multiple of 10 (halves round up),
       capped at 250 so every bucket maps to a two-digit hex channel
    4. Count buckets; keep the ``top_n`` largest by count, ties in first-seen
       order
    5. percentage = round(100 * count / samples kept in step 2)

Also renders the palette as a swatch image (``color-palette.png``).
"""

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw

from bgenerator.compositing import decode
from bgenerator.compositing.widgets import load_font
from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils import color as color_utils
from bgenerator.utils import fs

logger = logging.getLogger(__name__)

ALPHA_THRESHOLD = 128
QUANT_STEP = 10
QUANT_MAX = 250


@dataclass(frozen=True, slots=True)
class ColorInfo:
    """One palette bucket."""

    hex: str
    rgb: Tuple[int, int, int]
    percentage: int

    @property
    def css(self) -> str:
        """CSS notation, e.g. ``rgb(250, 250, 250)``."""
        return f"rgb({self.rgb[0]}, {self.rgb[1]}, {self.rgb[2]})"

    def to_dict(self) -> Dict[str, Any]:
        return {"hex": self.hex, "rgb": list(self.rgb), "percentage": self.percentage}


@dataclass(frozen=True, slots=True)
class PaletteReport:
    """Result of :func:`analyze_colors`.

    Attributes
    ----------
    colors : tuple of ColorInfo
        Up to top_n buckets, most frequent first
    sampled : int
        Non-transparent samples counted
    """

    colors: Tuple[ColorInfo, ...]
    sampled: int

    @property
    def dominant(self) -> Optional[str]:
        return self.colors[0].hex if self.colors else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dominant": self.dominant,
            "sampled": self.sampled,
            "colors": [c.to_dict() for c in self.colors],
        }


def load_image(source: Union[str, Path, bytes, bytearray]) -> np.ndarray:
    """Decode a file path or encoded bytes to an (h, w, 4) uint8 array."""
    if isinstance(source, (bytes, bytearray)):
        return decode.decode_bitmap(source)
    return decode.decode_file(source)


def _as_rgba(image: Union[np.ndarray, RasterBuffer, str, Path, bytes]) -> np.ndarray:
    if isinstance(image, RasterBuffer):
        return image.pixels
    if isinstance(image, (str, Path, bytes, bytearray)):
        return load_image(image)
    arr = np.asarray(image)
    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (h, w, 3|4) image, got {arr.shape}")
    if arr.dtype != np.uint8:
        raise TypeError(f"Expected uint8 pixels, got {arr.dtype}")
    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


def quantize(rgb: np.ndarray) -> np.ndarray:
    """Round channels to the nearest multiple of 10 (half up), capped at 250."""
    q = np.floor(rgb.astype(np.float64) / QUANT_STEP + 0.5) * QUANT_STEP
    return np.minimum(q, QUANT_MAX).astype(np.int64)


def analyze_colors(
    image: Union[np.ndarray, RasterBuffer, str, Path, bytes],
    step: int = 10,
    top_n: int = 10
) -> PaletteReport:
    """Find the most frequent (quantized) colors of an image.

    Parameters
    ----------
    image : np.ndarray, RasterBuffer, path or bytes
        RGBA/RGB uint8 pixels, a buffer, or an encoded image
    step : int
        Sample every ``step``-th pixel in row-major order
    top_n : int
        Maximum number of buckets returned

    Returns
    -------
    PaletteReport
        Empty (dominant None) when every sample is transparent
    """
    if step < 1:
        raise ValueError(f"step must be >= 1, got {step}")
    if top_n < 1:
        raise ValueError(f"top_n must be >= 1, got {top_n}")

    flat = _as_rgba(image).reshape(-1, 4)[::step]
    opaque = flat[flat[:, 3] >= ALPHA_THRESHOLD]
    sampled = int(opaque.shape[0])
    if sampled == 0:
        logger.info("No opaque samples; palette is empty")
        return PaletteReport(colors=(), sampled=0)

    buckets, first_seen, counts = np.unique(
        quantize(opaque[:, :3]), axis=0, return_index=True, return_counts=True
    )
    # Descending count, ties broken by first occurrence
    order = np.lexsort((first_seen, -counts))[:top_n]

    colors: List[ColorInfo] = []
    for idx in order:
        r, g, b = (int(v) for v in buckets[idx])
        colors.append(ColorInfo(
            hex=color_utils.rgb_to_hex(r, g, b),
            rgb=(r, g, b),
            percentage=int(np.floor(100.0 * counts[idx] / sampled + 0.5)),
        ))

    report = PaletteReport(colors=tuple(colors), sampled=sampled)
    logger.info(f"Analyzed {sampled} samples: {len(buckets)} buckets, dominant {report.dominant}")
    return report


# ============================================================================
# SWATCH
# ============================================================================

SWATCH_FILENAME = "color-palette.png"


def render_palette_swatch(report: PaletteReport, scale: int = 2) -> Image.Image:
    """Draw the palette as a white card: dominant color band, then one row per bucket.

    Parameters
    ----------
    report : PaletteReport
        Analysis result
    scale : int
        Pixel density multiplier

    Returns
    -------
    PIL.Image.Image
        RGB image
    """
    pad, band_h, row_h, chip, width = 16, 64, 32, 24, 320
    rows = max(1, len(report.colors))
    height = pad * 3 + band_h + rows * row_h

    img = Image.new("RGB", (width * scale, height * scale), "#ffffff")
    draw = ImageDraw.Draw(img)
    text_font = load_font(12 * scale)
    mono_font = load_font(13 * scale, bold=True)

    def box(x0, y0, x1, y1):
        return [x0 * scale, y0 * scale, x1 * scale - 1, y1 * scale - 1]

    band_color = report.dominant or "#ffffff"
    draw.rectangle(box(pad, pad, width - pad, pad + band_h), fill=band_color, outline="#e4e4e7")
    draw.text(
        ((pad + 8) * scale, (pad + band_h - 8) * scale),
        f"Dominant {report.dominant or '-'}",
        fill="#18181b" if _is_light(band_color) else "#ffffff",
        font=mono_font,
        anchor="ls",
    )

    y = pad * 2 + band_h
    for info in report.colors:
        draw.rectangle(box(pad, y + 4, pad + chip, y + 4 + chip), fill=info.hex, outline="#e4e4e7")
        mid = (y + 4 + chip / 2) * scale
        draw.text(((pad + chip + 12) * scale, mid), info.hex, fill="#18181b", font=mono_font, anchor="lm")
        draw.text(((width - pad) * scale, mid), f"{info.percentage}%", fill="#71717a", font=text_font, anchor="rm")
        y += row_h

    return img


def _is_light(hex_color: str) -> bool:
    r, g, b = color_utils.parse_hex(hex_color)
    return float(color_utils.luma(np.array([r, g, b], dtype=np.float32))) >= 140.0


def save_palette_swatch(report: PaletteReport, out_path: Union[str, Path], scale: int = 2) -> Path:
    """Render and atomically write the swatch as PNG."""
    out = io.BytesIO()
    render_palette_swatch(report, scale=scale).save(out, format="PNG")
    path = fs.atomic_write_bytes(out_path, out.getvalue())
    logger.info(f"Palette swatch written to {path}")
    return path
