"""Color parsing, formatting and channel arithmetic.

Provides:
    - Hex string ↔ RGB triple conversions ("#RRGGBB")
    - Rec. 601 luma (the weighting used by the saturation step of the tone curve)
    - Clamping and quantization of float levels back to 8-bit channels

Used by:
    - validators: base/tint color fields
    - synth.stages / synth.tone: fill, tint, saturation
    - analysis.palette: bucket → hex formatting

All array helpers operate on numpy arrays with channels in the last axis,
shape (..., 3) or (..., 4). Float levels are in [0, 255] (not [0, 1]).

Invariants:
    - 8-bit output is always clipped to [0, 255] before the cast
    - Rounding is round-half-to-even (numpy.rint), identical on every platform
"""

from typing import Tuple

import numpy as np

# Rec. 601 luma weights, as used by the saturation adjustment
LUMA_WEIGHTS = (0.2989, 0.587, 0.114)


def parse_hex(value: str) -> Tuple[int, int, int]:
    """Parse "#RRGGBB" (leading '#' optional) into an (r, g, b) triple.

    Parameters
    ----------
    value : str
        Hex color string, e.g. "#FAFAFA" or "fafafa"

    Returns
    -------
    tuple of int
        (r, g, b), each in [0, 255]

    Raises
    ------
    ValueError
        If the string is not six hex digits
    """
    digits = value.strip().lstrip('#')
    if len(digits) != 6:
        raise ValueError(f"Expected a #RRGGBB color, got {value!r}")
    try:
        return (
            int(digits[0:2], 16),
            int(digits[2:4], 16),
            int(digits[4:6], 16),
        )
    except ValueError as e:
        raise ValueError(f"Invalid hex digits in color {value!r}") from e


def rgb_to_hex(r: int, g: int, b: int) -> str:
    """Format an RGB triple as lowercase "#rrggbb".

    Channels are clipped to [0, 255] so the result always has six digits.
    """
    channels = [int(min(255, max(0, c))) for c in (r, g, b)]
    return '#' + ''.join(f"{c:02x}" for c in channels)


def normalize_hex(value: str) -> str:
    """Canonicalize a hex color to uppercase "#RRGGBB"."""
    r, g, b = parse_hex(value)
    return f"#{r:02X}{g:02X}{b:02X}"


def luma(rgb: np.ndarray) -> np.ndarray:
    """Rec. 601 luma of float RGB levels.

    Parameters
    ----------
    rgb : np.ndarray
        Levels in [0, 255] (unclamped values allowed), shape (..., 3)

    Returns
    -------
    np.ndarray
        Luma, shape (...), same float dtype as input
    """
    wr, wg, wb = LUMA_WEIGHTS
    return wr * rgb[..., 0] + wg * rgb[..., 1] + wb * rgb[..., 2]


def clamp_levels(levels: np.ndarray) -> np.ndarray:
    """Clip float levels to [0, 255] in place and return them."""
    np.clip(levels, 0.0, 255.0, out=levels)
    return levels


def to_uint8(levels: np.ndarray) -> np.ndarray:
    """Round and clip float levels to uint8.

    Parameters
    ----------
    levels : np.ndarray
        Float levels, any shape

    Returns
    -------
    np.ndarray
        uint8 array, same shape
    """
    return np.clip(np.rint(levels), 0, 255).astype(np.uint8)
