"""Tests for bgenerator.analysis.palette (dominant-color analysis, swatch)."""

import io

import numpy as np
import pytest
from PIL import Image

from bgenerator.analysis import palette
from bgenerator.synth.raster import RasterBuffer


def solid(rgb, size=100, alpha=255):
    img = np.zeros((size, size, 4), dtype=np.uint8)
    img[..., :3] = rgb
    img[..., 3] = alpha
    return img


# ============================================================================
# ANALYSIS
# ============================================================================

def test_solid_image_single_bucket():
    report = palette.analyze_colors(solid((250, 250, 250)))
    assert len(report.colors) == 1
    info = report.colors[0]
    assert info.hex == "#fafafa"
    assert info.rgb == (250, 250, 250)
    assert info.percentage == 100
    assert info.css == "rgb(250, 250, 250)"
    assert report.dominant == "#fafafa"
    assert report.sampled == 1000


@pytest.mark.parametrize("value, expected", [
    (0, 0), (4, 0), (5, 10), (14, 10), (15, 20), (244, 240), (245, 250), (254, 250), (255, 250),
])
def test_quantize_half_up_capped(value, expected):
    assert palette.quantize(np.array([value]))[0] == expected


def test_transparent_pixels_skipped():
    report = palette.analyze_colors(solid((10, 20, 30), alpha=127))
    assert report.colors == ()
    assert report.dominant is None
    assert report.sampled == 0

    report = palette.analyze_colors(solid((10, 20, 30), alpha=128))
    assert report.dominant == "#0a141e"


def test_counts_ordered_with_first_seen_ties():
    img = np.zeros((1, 40, 4), dtype=np.uint8)
    img[..., 3] = 255
    img[0, :10, :3] = (200, 0, 0)
    img[0, 10:20, :3] = (0, 200, 0)
    img[0, 20:35, :3] = (0, 0, 200)
    img[0, 35:, :3] = (100, 100, 100)
    report = palette.analyze_colors(img, step=1)
    assert [c.hex for c in report.colors] == ["#0000c8", "#c80000", "#00c800", "#646464"]
    assert [c.percentage for c in report.colors] == [38, 25, 25, 13]


def test_step_sampling_row_major():
    img = solid((0, 0, 0), size=10)
    img.reshape(-1, 4)[::10, :3] = 255  # first column
    report = palette.analyze_colors(img, step=10)
    assert [c.hex for c in report.colors] == ["#fafafa"]
    assert palette.analyze_colors(img, step=1).dominant == "#000000"


def test_top_n_limit_and_share_of_all_samples():
    img = np.zeros((1, 120, 4), dtype=np.uint8)
    img[..., 3] = 255
    img[0, :, 0] = np.repeat(np.arange(12) * 20, 10)
    report = palette.analyze_colors(img, step=1, top_n=10)
    assert len(report.colors) == 10
    # Each bucket is 1/12 of the samples even though only 10 are reported
    assert all(c.percentage == 8 for c in report.colors)


def test_accepts_rgb_buffer_and_bytes():
    rgb = np.full((20, 20, 3), 40, dtype=np.uint8)
    assert palette.analyze_colors(rgb).dominant == "#282828"

    buf = RasterBuffer.from_array(solid((0, 0, 0), size=20))
    assert palette.analyze_colors(buf).dominant == "#000000"

    out = io.BytesIO()
    Image.fromarray(rgb).save(out, format="PNG")
    assert palette.analyze_colors(out.getvalue()).dominant == "#282828"


def test_invalid_arguments():
    with pytest.raises(ValueError):
        palette.analyze_colors(solid((0, 0, 0)), step=0)
    with pytest.raises(ValueError):
        palette.analyze_colors(np.zeros((4, 4), dtype=np.uint8))


def test_report_to_dict():
    data = palette.analyze_colors(solid((250, 250, 250))).to_dict()
    assert data == {
        "dominant": "#fafafa",
        "sampled": 1000,
        "colors": [{"hex": "#fafafa", "rgb": [250, 250, 250], "percentage": 100}],
    }


# ============================================================================
# SWATCH
# ============================================================================

def test_render_palette_swatch():
    img = np.zeros((1, 30, 4), dtype=np.uint8)
    img[..., 3] = 255
    img[0, :20, :3] = (200, 0, 0)
    report = palette.analyze_colors(img, step=1)
    swatch = palette.render_palette_swatch(report, scale=1)
    assert swatch.mode == "RGB"
    assert swatch.width == 320
    # Dominant band uses the dominant color
    assert swatch.getpixel((30, 30)) == (200, 0, 0)


def test_swatch_for_empty_report():
    report = palette.analyze_colors(solid((0, 0, 0), alpha=0))
    assert palette.render_palette_swatch(report).size[0] == 640


def test_save_palette_swatch(tmp_path):
    report = palette.analyze_colors(solid((100, 150, 200)))
    path = palette.save_palette_swatch(report, tmp_path / palette.SWATCH_FILENAME)
    assert Image.open(path).format == "PNG"


def test_load_image(tmp_path):
    path = tmp_path / "img.png"
    Image.fromarray(solid((1, 2, 3), size=8)).save(path)
    assert palette.load_image(path).shape == (8, 8, 4)
    with pytest.raises(FileNotFoundError):
        palette.load_image(tmp_path / "missing.png")
