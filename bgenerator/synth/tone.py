"""Brightness / contrast / saturation tone curve.

Applied per pixel, in this fixed order, to float RGB levels:

    1. Brightness:  c += brightness * 2.55
    2. Contrast:    f = 259 (contrast + 255) / (255 (259 - contrast))
                    c = f (c - 128) + 128
    3. Saturation:  gray = 0.2989 R + 0.587 G + 0.114 B   (after steps 1-2)
                    c = gray + (c - gray) (1 + saturation / 100)

then every channel is clamped to [0, 255].

Each step only runs when its own parameter is non-zero, and the whole pass is
skipped when all three are zero, so a neutral tone curve is an exact identity
rather than a floating-point approximation of one.

The contrast curve has a pole at contrast = 259. Config validation keeps
contrast in [-50, 50]; :func:`contrast_factor` additionally refuses anything
outside [-255, 255] so a NaN/inf can never reach the buffer.
"""

import numpy as np

from bgenerator.utils import color as color_utils
from bgenerator.utils.validators import ConfigError, GenerationConfig


def contrast_factor(contrast: float) -> float:
    """Contrast curve slope for a contrast setting.

    Raises
    ------
    ConfigError
        If contrast lies outside [-255, 255] (the curve is undefined at 259
        and inverts beyond it)
    """
    if not -255.0 <= contrast <= 255.0:
        raise ConfigError(f"Contrast {contrast} outside the defined range [-255, 255]")
    return (259.0 * (contrast + 255.0)) / (255.0 * (259.0 - contrast))


def apply_tone(
    levels: np.ndarray,
    brightness: float = 0.0,
    contrast: float = 0.0,
    saturation: float = 0.0
) -> np.ndarray:
    """Apply the tone curve to float levels in place.

    Parameters
    ----------
    levels : np.ndarray
        (..., 3) float32 levels; may hold unclamped grain output
    brightness, contrast, saturation : float
        Tone parameters, each normally in [-50, 50]

    Returns
    -------
    np.ndarray
        The same array, clamped to [0, 255] (untouched when all parameters are zero)
    """
    if brightness == 0 and contrast == 0 and saturation == 0:
        return levels

    if brightness != 0:
        levels += np.float32(brightness * 2.55)

    if contrast != 0:
        factor = np.float32(contrast_factor(contrast))
        levels -= 128.0
        levels *= factor
        levels += 128.0

    if saturation != 0:
        gray = color_utils.luma(levels)[..., np.newaxis]
        sat_factor = np.float32(1.0 + saturation / 100.0)
        levels -= gray
        levels *= sat_factor
        levels += gray

    return color_utils.clamp_levels(levels)


def apply_tone_config(levels: np.ndarray, cfg: GenerationConfig) -> np.ndarray:
    """Tone pass driven by a GenerationConfig (skipped when neutral)."""
    if not cfg.tone_active:
        return levels
    return apply_tone(levels, cfg.brightness, cfg.contrast, cfg.saturation)
