"""RGBA8 raster buffer owned by a single pipeline run.

The buffer is a square (size, size, 4) uint8 numpy array, row-major, channel
order R, G, B, A. Stages mutate it in place; float work (grain + tone) happens
on a separate levels array that is committed back with :meth:`store_rgb`.

Invariants:
    - width == height == size
    - Every channel is a valid uint8 (clamping happens on commit)
    - One buffer per run: the pipeline allocates, nobody else holds a reference
      until the run returns it
"""

import numpy as np

from bgenerator.utils import color as color_utils


class RasterBuffer:
    """Square RGBA8 pixel buffer.

    Attributes
    ----------
    size : int
        Edge length in pixels (width == height)
    pixels : np.ndarray
        (size, size, 4) uint8, RGBA
    """

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError(f"Buffer size must be positive, got {size}")
        self.size = int(size)
        self.pixels = np.zeros((self.size, self.size, 4), dtype=np.uint8)

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> 'RasterBuffer':
        """Wrap a copy of an existing (N, N, 4) uint8 array."""
        if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.shape[0] != pixels.shape[1]:
            raise ValueError(f"Expected a square (N, N, 4) array, got {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise TypeError(f"Expected uint8 pixels, got {pixels.dtype}")
        buf = cls.__new__(cls)
        buf.size = pixels.shape[0]
        buf.pixels = pixels.copy()
        return buf

    @property
    def width(self) -> int:
        return self.size

    @property
    def height(self) -> int:
        return self.size

    @property
    def rgb(self) -> np.ndarray:
        """(size, size, 3) view of the color channels."""
        return self.pixels[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        """(size, size) view of the alpha channel."""
        return self.pixels[..., 3]

    def rgb_levels(self) -> np.ndarray:
        """Copy of the color channels as float32 levels in [0, 255]."""
        return self.pixels[..., :3].astype(np.float32)

    def store_rgb(self, levels: np.ndarray) -> None:
        """Commit float levels back to the color channels (clip + round).

        Parameters
        ----------
        levels : np.ndarray
            (size, size, 3) float levels, possibly outside [0, 255]
        """
        if levels.shape != (self.size, self.size, 3):
            raise ValueError(
                f"Levels shape {levels.shape} != expected ({self.size}, {self.size}, 3)"
            )
        self.pixels[..., :3] = color_utils.to_uint8(levels)

    def copy(self) -> 'RasterBuffer':
        return RasterBuffer.from_array(self.pixels)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RasterBuffer):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.pixels, other.pixels)

    def __repr__(self) -> str:
        return f"RasterBuffer(size={self.size})"
