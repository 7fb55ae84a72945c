"""Injectable noise sources and grain sample distributions.

The grain stage never touches global random state. It draws uniform variates
from a :class:`NoiseSource` passed into the pipeline call and shapes them into
one of two distributions:

    Uniform:   noise = (U - 0.5) * I                         ∈ [-I/2, I/2)
    Gaussian:  noise = sqrt(-2 ln U1) * cos(2π U2) * (I / 3)  (Box-Muller, σ = I/3)

Sources:
    - SeededNoise(seed): numpy PCG64 stream, reproducible across processes
    - EntropyNoise(): fresh OS entropy, the production default
    - ConstantNoise(u): every variate equals u (analytic tests)

Invariants:
    - Variates are float64 in [0, 1)
    - Gaussian draws consume two variates per sample, interleaved (U1, U2, U1, U2, ...)
    - U1 is mapped to (0, 1] before the logarithm, so samples are always finite
"""

import math
from typing import Optional

import numpy as np

from bgenerator.utils.validators import NoiseType


class NoiseSource:
    """Base class: a stream of uniform variates in [0, 1)."""

    def uniform(self, n: int) -> np.ndarray:
        """Draw ``n`` float64 variates in [0, 1)."""
        raise NotImplementedError


class SeededNoise(NoiseSource):
    """Deterministic source backed by ``numpy.random.default_rng(seed)``.

    Two instances built with the same seed yield identical streams, which is
    what makes two pipeline runs byte-identical.
    """

    def __init__(self, seed: Optional[int] = 0):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def uniform(self, n: int) -> np.ndarray:
        return self._rng.random(n)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(seed={self.seed})"


class EntropyNoise(SeededNoise):
    """Non-reproducible source seeded from OS entropy."""

    def __init__(self):
        super().__init__(seed=None)


class ConstantNoise(NoiseSource):
    """Every variate equals ``value`` (must lie in [0, 1))."""

    def __init__(self, value: float = 0.5):
        if not 0.0 <= value < 1.0:
            raise ValueError(f"Constant variate must be in [0, 1), got {value}")
        self.value = float(value)

    def uniform(self, n: int) -> np.ndarray:
        return np.full(n, self.value, dtype=np.float64)


def sample_uniform(source: NoiseSource, n: int, intensity: float) -> np.ndarray:
    """``n`` samples of (U - 0.5) * intensity."""
    return (source.uniform(n) - 0.5) * intensity


def sample_gaussian(source: NoiseSource, n: int, intensity: float) -> np.ndarray:
    """``n`` Box-Muller samples with standard deviation intensity / 3.

    Parameters
    ----------
    source : NoiseSource
        Variate stream (2n variates are consumed)
    n : int
        Number of samples
    intensity : float
        Grain intensity I

    Returns
    -------
    np.ndarray
        float64 samples, shape (n,)
    """
    u = source.uniform(2 * n).reshape(n, 2)
    u1 = 1.0 - u[:, 0]
    u2 = u[:, 1]
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * math.pi * u2) * (intensity / 3.0)


def sample_noise(
    source: NoiseSource,
    n: int,
    intensity: float,
    noise_type: NoiseType
) -> np.ndarray:
    """Dispatch on ``noise_type``; zero intensity still consumes variates."""
    if NoiseType(noise_type) is NoiseType.GAUSSIAN:
        return sample_gaussian(source, n, intensity)
    return sample_uniform(source, n, intensity)
