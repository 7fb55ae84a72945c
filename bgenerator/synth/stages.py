"""Per-buffer pipeline stages: fill, tint, grain, blur, vignette.

Each stage is a pure function of (buffer or levels, config, explicit inputs);
none keeps state between runs. Stage order is owned by synth.pipeline:

    fill → tint → grain → tone → blur → vignette → overlays → (export) widgets

Grain and tone work on a float32 levels array (H, W, 3) so grain values are
not clamped before the tone curve sees them; the pipeline commits the levels
back to the RGBA8 buffer afterwards, which clamps when the tone pass was
skipped.

Identity guarantees (exact, not approximate):
    - tint_strength == 0    → tint is a no-op
    - grain_intensity == 0  → grain is a no-op
    - blur_radius == 0      → blur is a no-op
    - vignette_strength == 0 → vignette is a no-op
"""

import logging
import math
from typing import Tuple

import cv2
import numpy as np

from bgenerator.synth.noise import NoiseSource, sample_noise
from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils import compositing
from bgenerator.utils.validators import GenerationConfig, NoiseType

logger = logging.getLogger(__name__)

VIGNETTE_COLOR = (0.0, 0.0, 0.0)


def fill(buffer: RasterBuffer, rgb: Tuple[int, int, int]) -> None:
    """Paint every pixel to ``rgb`` with alpha 255."""
    buffer.pixels[..., 0] = rgb[0]
    buffer.pixels[..., 1] = rgb[1]
    buffer.pixels[..., 2] = rgb[2]
    buffer.pixels[..., 3] = 255


def tint(buffer: RasterBuffer, rgb: Tuple[int, int, int], strength: float) -> None:
    """Source-over a flat ``rgb`` layer at alpha ``strength``.

    On the opaque filled buffer this is ``out = tint*s + base*(1-s)``.
    """
    if strength <= 0.0:
        return
    compositing.blend_over(buffer.pixels, np.asarray(rgb, dtype=np.float32), strength)


def apply_grain(
    levels: np.ndarray,
    intensity: float,
    grain_size: int,
    noise_type: NoiseType,
    noise: NoiseSource
) -> np.ndarray:
    """Add achromatic grain to float levels in place (unclamped).

    Pixels are taken in row-major order in groups of ``grain_size``; each
    group shares one noise sample, added identically to R, G and B. The last
    group may be shorter when the pixel count is not a multiple of grain_size.

    Parameters
    ----------
    levels : np.ndarray
        (H, W, 3) float32 levels
    intensity : float
        Grain intensity I (0 disables the stage)
    grain_size : int
        Pixels per noise sample, >= 1
    noise_type : NoiseType
        Uniform or Gaussian
    noise : NoiseSource
        Injected variate stream

    Returns
    -------
    np.ndarray
        The same array
    """
    if intensity <= 0.0:
        return levels
    if grain_size < 1:
        raise ValueError(f"grain_size must be >= 1, got {grain_size}")

    flat = levels.reshape(-1, 3)
    n_pixels = flat.shape[0]
    n_samples = -(-n_pixels // grain_size)

    samples = sample_noise(noise, n_samples, intensity, noise_type).astype(np.float32)
    per_pixel = np.repeat(samples, grain_size)[:n_pixels]
    flat += per_pixel[:, np.newaxis]

    logger.debug(f"grain: {n_samples} samples ({noise_type.value}, I={intensity}, size={grain_size})")
    return levels


def grain(levels: np.ndarray, cfg: GenerationConfig, noise: NoiseSource) -> np.ndarray:
    """Config-driven wrapper around :func:`apply_grain`."""
    return apply_grain(levels, cfg.grain_intensity, cfg.grain_size, cfg.noise_type, noise)


def blur(buffer: RasterBuffer, radius: float) -> None:
    """Gaussian blur of the color channels with sigma = ``radius`` px.

    Matches CSS ``filter: blur(r)`` (r is the standard deviation). OpenCV
    writes into a new array which is then copied back, so the convolution
    never reads its own output. Borders are reflected.
    """
    if radius <= 0.0:
        return
    rgb = np.ascontiguousarray(buffer.pixels[..., :3])
    blurred = cv2.GaussianBlur(
        rgb,
        ksize=(0, 0),
        sigmaX=float(radius),
        sigmaY=float(radius),
        borderType=cv2.BORDER_REFLECT_101
    )
    buffer.pixels[..., :3] = blurred


def vignette_alpha(size: int, strength: float) -> np.ndarray:
    """Radial coverage map: 0 at the center, ``strength`` at the corners.

    Distances are measured from pixel centers to the canvas center and
    normalized by the half-diagonal, so coverage grows linearly with radius.

    Returns
    -------
    np.ndarray
        (size, size) float32 in [0, strength]
    """
    half = size / 2.0
    max_radius = math.hypot(half, half)
    coords = np.arange(size, dtype=np.float32) + 0.5 - half
    dist = np.hypot(coords[np.newaxis, :], coords[:, np.newaxis])
    return (np.minimum(dist / max_radius, 1.0) * strength).astype(np.float32)


def vignette(buffer: RasterBuffer, strength: float) -> None:
    """Composite a black radial gradient source-over the buffer."""
    if strength <= 0.0:
        return
    alpha = vignette_alpha(buffer.size, strength)
    compositing.blend_over(buffer.pixels, np.asarray(VIGNETTE_COLOR, dtype=np.float32), alpha)
