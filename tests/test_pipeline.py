"""Tests for bgenerator.synth.pipeline (stage orchestration, preview/export parity)."""

import io

import numpy as np
import pytest
from PIL import Image

from bgenerator.compositing.overlays import OverlayImage
from bgenerator.compositing.widgets import make_widget
from bgenerator.synth import pipeline
from bgenerator.synth.noise import SeededNoise
from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils import hashing
from bgenerator.utils.profiler import StageTimings
from bgenerator.utils.validators import ConfigError, GenerationConfig


# ============================================================================
# FIXTURES
# ============================================================================

NEUTRAL = dict(
    canvas_size=1024,
    base_color="#FFFFFF",
    tint_color="#FFFFFF",
    tint_strength=0.0,
    grain_intensity=0,
    vignette_strength=0.0,
    blur_radius=0.0,
    brightness=0,
    contrast=0,
    saturation=0,
)


@pytest.fixture
def neutral_cfg():
    return GenerationConfig(**NEUTRAL)


@pytest.fixture
def textured_cfg():
    return GenerationConfig(canvas_size=1024, grain_intensity=20, vignette_strength=0.3, tint_strength=0.2)


@pytest.fixture
def bitmap():
    rng = np.random.default_rng(11)
    bmp = rng.integers(0, 256, size=(60, 100, 4), dtype=np.uint8)
    bmp[..., 3] = 255
    return bmp


def solid_overlay(rgb, size=(40, 40), **placement):
    bmp = np.zeros(size + (4,), dtype=np.uint8)
    bmp[..., :3] = rgb
    bmp[..., 3] = 255
    return OverlayImage(bitmap=bmp, **placement)


# ============================================================================
# SCENARIOS
# ============================================================================

def test_uniform_white_canvas(neutral_cfg):
    buf = pipeline.render(neutral_cfg, noise=SeededNoise(0))
    assert isinstance(buf, RasterBuffer)
    assert buf.pixels.shape == (1024, 1024, 4)
    assert np.all(buf.pixels == 255)


def test_centered_overlay_is_pixel_exact(neutral_cfg, bitmap):
    base = pipeline.render(neutral_cfg, noise=SeededNoise(0))
    overlay = OverlayImage(bitmap=bitmap, opacity=100, scale=100, x=50, y=50)
    out = pipeline.render(neutral_cfg, [overlay], noise=SeededNoise(0))

    # 100x60 centered on 1024: top-left (462, 482)
    np.testing.assert_array_equal(out.pixels[482:542, 462:562], bitmap)
    outside = np.ones((1024, 1024), dtype=bool)
    outside[482:542, 462:562] = False
    np.testing.assert_array_equal(out.pixels[outside], base.pixels[outside])


def test_overlay_leaves_textured_background_outside_footprint(textured_cfg, bitmap):
    base = pipeline.render(textured_cfg, noise=SeededNoise(5))
    out = pipeline.render(textured_cfg, [OverlayImage(bitmap=bitmap, x=10, y=90)], noise=SeededNoise(5))
    x0, y0, w, h = OverlayImage(bitmap=bitmap, x=10, y=90).placement(1024, 1024)
    outside = np.ones((1024, 1024), dtype=bool)
    outside[y0:y0 + h, x0:x0 + w] = False
    np.testing.assert_array_equal(out.pixels[outside], base.pixels[outside])


# ============================================================================
# INVARIANTS
# ============================================================================

def test_seeded_runs_are_byte_identical(textured_cfg):
    a = pipeline.render(textured_cfg, noise=SeededNoise(123))
    b = pipeline.render(textured_cfg, noise=SeededNoise(123))
    assert hashing.sha256_array(a.pixels) == hashing.sha256_array(b.pixels)
    c = pipeline.render(textured_cfg, noise=SeededNoise(124))
    assert not np.array_equal(a.pixels, c.pixels)


def test_each_run_gets_a_fresh_buffer(neutral_cfg):
    a = pipeline.render(neutral_cfg, noise=SeededNoise(0))
    b = pipeline.render(neutral_cfg, noise=SeededNoise(0))
    assert a.pixels is not b.pixels
    a.pixels[...] = 0
    assert np.all(b.pixels == 255)


def test_output_opaque_and_clamped():
    cfg = GenerationConfig(**{**NEUTRAL, "grain_intensity": 50, "noise_type": "gaussian"})
    buf = pipeline.render(cfg, noise=SeededNoise(1))
    assert np.all(buf.alpha == 255)
    # White + symmetric noise clips at 255 instead of wrapping to dark values
    assert buf.rgb.max() == 255
    assert buf.rgb.min() > 150


def test_z_order_later_overlay_on_top(neutral_cfg):
    red = solid_overlay((255, 0, 0))
    blue = solid_overlay((0, 0, 255))
    buf = pipeline.render(neutral_cfg, [red, blue], noise=SeededNoise(0))
    assert tuple(buf.pixels[512, 512]) == (0, 0, 255, 255)
    buf = pipeline.render(neutral_cfg, [blue, red], noise=SeededNoise(0))
    assert tuple(buf.pixels[512, 512]) == (255, 0, 0, 255)


def test_z_order_half_opacity_composes(neutral_cfg):
    red = solid_overlay((255, 0, 0))
    blue = solid_overlay((0, 0, 255), opacity=50)
    buf = pipeline.render(neutral_cfg, [red, blue], noise=SeededNoise(0))
    # B over (A over white): red then half blue
    assert tuple(buf.pixels[512, 512]) == (128, 0, 128, 255)


def test_dict_config_validated_first():
    buf = pipeline.render(dict(NEUTRAL), noise=SeededNoise(0))
    assert np.all(buf.pixels == 255)
    with pytest.raises(ConfigError):
        pipeline.render({**NEUTRAL, "contrast": 80})


def test_surface_unavailable(monkeypatch, neutral_cfg):
    def _boom(size):
        raise MemoryError()

    monkeypatch.setattr(pipeline, "RasterBuffer", _boom)
    with pytest.raises(pipeline.SurfaceUnavailableError):
        pipeline.render(neutral_cfg)


def test_timings_recorded(textured_cfg):
    timings = StageTimings()
    pipeline.render(textured_cfg, noise=SeededNoise(0), timings=timings)
    assert list(timings.stages)[:6] == ["allocate", "fill", "tint", "grain", "tone", "blur"]
    assert timings.total > 0


# ============================================================================
# PREVIEW / EXPORT
# ============================================================================

def test_preview_and_export_match_without_widgets(textured_cfg, bitmap):
    overlays = [OverlayImage(bitmap=bitmap, opacity=70)]
    preview = pipeline.render_preview(textured_cfg, overlays, noise=SeededNoise(9))
    exported = pipeline.render_export(textured_cfg, overlays, noise=SeededNoise(9))
    np.testing.assert_array_equal(preview.pixels, exported.pixels)


def test_widgets_only_rasterized_on_export(neutral_cfg):
    widgets = [make_widget("button")]
    preview = pipeline.render_preview(neutral_cfg, widgets=widgets, noise=SeededNoise(0))
    exported = pipeline.render_export(neutral_cfg, widgets=widgets, noise=SeededNoise(0))
    assert np.all(preview.pixels == 255)
    assert not np.array_equal(preview.pixels, exported.pixels)
    # Button fill (#18181b) above the label, 40 px tall box centered at 512
    assert tuple(exported.pixels[496, 512, :3]) == (0x18, 0x18, 0x1B)


def test_export_png_result(textured_cfg):
    result = pipeline.export(textured_cfg, noise=SeededNoise(2))
    assert result.mime_type == "image/png"
    assert result.filename == "bgenerator-1024x1024.png"
    decoded = np.asarray(Image.open(io.BytesIO(result.data)).convert("RGBA"))
    expected = pipeline.render_export(textured_cfg, noise=SeededNoise(2))
    np.testing.assert_array_equal(decoded, expected.pixels)
    assert result.sha256 == hashing.sha256_bytes(result.data)


@pytest.mark.parametrize("fmt, mime, ext", [("jpg", "image/jpeg", "jpg"), ("webp", "image/webp", "webp")])
def test_export_lossy_formats(neutral_cfg, fmt, mime, ext):
    result = pipeline.export(neutral_cfg.replace(export_format=fmt), noise=SeededNoise(0))
    assert result.mime_type == mime
    assert result.filename == f"bgenerator-1024x1024.{ext}"
    assert Image.open(io.BytesIO(result.data)).size == (1024, 1024)


@pytest.mark.slow
def test_full_size_render():
    cfg = GenerationConfig(canvas_size=4096, grain_intensity=25, blur_radius=0.3, brightness=5, contrast=5)
    buf = pipeline.render(cfg, noise=SeededNoise(0))
    assert buf.pixels.shape == (4096, 4096, 4)
    assert np.all(buf.alpha == 255)
