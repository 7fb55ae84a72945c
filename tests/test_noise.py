"""Tests for bgenerator.synth.noise (injectable sources, grain distributions)."""

import math

import numpy as np
import pytest

from bgenerator.synth.noise import (
    ConstantNoise,
    EntropyNoise,
    SeededNoise,
    sample_gaussian,
    sample_noise,
    sample_uniform,
)
from bgenerator.utils.validators import NoiseType


# ============================================================================
# SOURCES
# ============================================================================

def test_seeded_streams_repeat():
    a = SeededNoise(42).uniform(1000)
    b = SeededNoise(42).uniform(1000)
    np.testing.assert_array_equal(a, b)
    assert not np.array_equal(a, SeededNoise(43).uniform(1000))


def test_variates_in_unit_interval():
    u = SeededNoise(0).uniform(100_000)
    assert u.dtype == np.float64
    assert u.min() >= 0.0 and u.max() < 1.0


def test_entropy_noise_differs_between_instances():
    assert not np.array_equal(EntropyNoise().uniform(64), EntropyNoise().uniform(64))


def test_constant_noise():
    np.testing.assert_array_equal(ConstantNoise(0.25).uniform(3), [0.25, 0.25, 0.25])
    with pytest.raises(ValueError):
        ConstantNoise(1.0)


# ============================================================================
# DISTRIBUTIONS
# ============================================================================

def test_uniform_bounds_and_mean():
    intensity = 20.0
    samples = sample_uniform(SeededNoise(1), 200_000, intensity)
    assert samples.min() >= -intensity / 2
    assert samples.max() < intensity / 2
    assert abs(samples.mean()) < 0.1


def test_uniform_constant_value():
    np.testing.assert_allclose(sample_uniform(ConstantNoise(0.75), 4, 20.0), 5.0)


def test_gaussian_sigma_is_third_of_intensity():
    intensity = 30.0
    samples = sample_gaussian(SeededNoise(2), 200_000, intensity)
    assert abs(samples.mean()) < 0.1
    assert samples.std() == pytest.approx(intensity / 3.0, rel=0.02)


def test_gaussian_box_muller_value():
    # U1 = U2 = 0.5 -> sqrt(-2 ln 0.5) * cos(pi) * I / 3
    expected = -math.sqrt(-2.0 * math.log(0.5)) * 30.0 / 3.0
    np.testing.assert_allclose(sample_gaussian(ConstantNoise(0.5), 3, 30.0), expected)


def test_gaussian_finite_at_zero_variate():
    samples = sample_gaussian(ConstantNoise(0.0), 10, 50.0)
    assert np.all(np.isfinite(samples))
    np.testing.assert_array_equal(samples, 0.0)


def test_gaussian_consumes_two_variates_per_sample():
    source = SeededNoise(5)
    sample_gaussian(source, 10, 15.0)
    reference = SeededNoise(5)
    reference.uniform(20)
    np.testing.assert_array_equal(source.uniform(5), reference.uniform(5))


def test_sample_noise_dispatch():
    uniform = sample_noise(SeededNoise(3), 50, 10.0, NoiseType.UNIFORM)
    np.testing.assert_array_equal(uniform, sample_uniform(SeededNoise(3), 50, 10.0))
    gaussian = sample_noise(SeededNoise(3), 50, 10.0, "gaussian")
    np.testing.assert_array_equal(gaussian, sample_gaussian(SeededNoise(3), 50, 10.0))
