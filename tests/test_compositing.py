"""Tests for bgenerator.utils.compositing (Porter-Duff source-over)."""

import numpy as np
import pytest

from bgenerator.utils import compositing


@pytest.fixture
def opaque_canvas():
    canvas = np.zeros((8, 8, 4), dtype=np.uint8)
    canvas[..., :3] = 250
    canvas[..., 3] = 255
    return canvas


# ============================================================================
# blend_over
# ============================================================================

def test_flat_source_on_opaque_destination(opaque_canvas):
    compositing.blend_over(opaque_canvas, np.array([240.0, 240.0, 240.0]), 0.2)
    # 240 * 0.2 + 250 * 0.8
    assert np.all(opaque_canvas[..., :3] == 248)
    assert np.all(opaque_canvas[..., 3] == 255)


def test_full_coverage_copies_source(opaque_canvas):
    src = np.random.default_rng(0).integers(0, 256, size=(8, 8, 3)).astype(np.float32)
    compositing.blend_over(opaque_canvas, src, 1.0)
    np.testing.assert_array_equal(opaque_canvas[..., :3], src.astype(np.uint8))
    assert np.all(opaque_canvas[..., 3] == 255)


def test_zero_coverage_is_identity():
    rng = np.random.default_rng(1)
    canvas = rng.integers(0, 256, size=(16, 16, 4), dtype=np.uint8)
    before = canvas.copy()
    compositing.blend_over(canvas, np.array([0.0, 0.0, 0.0]), 0.0)
    np.testing.assert_array_equal(canvas, before)


def test_partial_coverage_leaves_uncovered_pixels(opaque_canvas):
    alpha = np.zeros((8, 8), dtype=np.float32)
    alpha[2:4, 2:4] = 1.0
    compositing.blend_over(opaque_canvas, np.array([0.0, 0.0, 255.0]), alpha)
    assert np.all(opaque_canvas[2:4, 2:4, :3] == [0, 0, 255])
    mask = np.ones((8, 8), dtype=bool)
    mask[2:4, 2:4] = False
    assert np.all(opaque_canvas[mask][:, :3] == 250)


def test_transparent_destination_takes_source_color():
    canvas = np.zeros((2, 2, 4), dtype=np.uint8)
    compositing.blend_over(canvas, np.array([200.0, 100.0, 50.0]), 0.5)
    assert np.all(canvas[..., :3] == [200, 100, 50])
    assert np.all(np.isin(canvas[..., 3], [127, 128]))


def test_blocks_cover_tall_regions():
    canvas = np.full((compositing.BLOCK_ROWS * 2 + 3, 4, 4), 255, dtype=np.uint8)
    compositing.blend_over(canvas, np.array([0.0, 0.0, 0.0]), 0.5)
    assert np.all(canvas[..., :3] == 128)


# ============================================================================
# clip_rect / paste_rgba
# ============================================================================

def test_clip_rect_inside():
    rows, cols, src_rows, src_cols = compositing.clip_rect(2, 3, 4, 5, 10, 10)
    assert (rows, cols) == (slice(3, 8), slice(2, 6))
    assert (src_rows, src_cols) == (slice(0, 5), slice(0, 4))


def test_clip_rect_partially_outside():
    rows, cols, src_rows, src_cols = compositing.clip_rect(-2, 8, 5, 5, 10, 10)
    assert (rows, cols) == (slice(8, 10), slice(0, 3))
    assert (src_rows, src_cols) == (slice(0, 2), slice(2, 5))


def test_clip_rect_fully_outside():
    rows, cols, _, _ = compositing.clip_rect(20, 0, 5, 5, 10, 10)
    assert rows == slice(0, 0) and cols == slice(0, 0)


def test_paste_rgba_clips_and_respects_alpha(opaque_canvas):
    layer = np.zeros((4, 4, 4), dtype=np.uint8)
    layer[..., 0] = 255
    layer[:2, :, 3] = 255  # top half opaque, bottom half transparent
    compositing.paste_rgba(opaque_canvas, layer, 6, 6)
    assert np.all(opaque_canvas[6:8, 6:8, :3] == [255, 0, 0])
    assert np.all(opaque_canvas[:6, :, :3] == 250)


def test_paste_rgba_opacity(opaque_canvas):
    layer = np.zeros((8, 8, 4), dtype=np.uint8)
    layer[..., 3] = 255
    compositing.paste_rgba(opaque_canvas, layer, 0, 0, opacity=0.5)
    assert np.all(opaque_canvas[..., :3] == 125)


def test_paste_rgba_off_canvas_is_noop(opaque_canvas):
    before = opaque_canvas.copy()
    compositing.paste_rgba(opaque_canvas, np.full((4, 4, 4), 255, dtype=np.uint8), -10, -10)
    np.testing.assert_array_equal(opaque_canvas, before)
