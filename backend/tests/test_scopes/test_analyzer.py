"""Tests for the frame analyzer."""

import math

import numpy as np
import pytest

from scopes.analyzer import (
    DEFAULT_SAMPLE_BUDGET,
    analyze,
    sample_stride,
    validate_frame,
)
from scopes.color_math import luminance

pytestmark = pytest.mark.smoke


def _frame(h=60, w=80, channels=4):
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (h, w, channels), dtype=np.uint8)


def test_histogram_sums_equal_pixel_count():
    data = analyze(_frame(), 80, 60)
    for hist in (data.histogram.r, data.histogram.g, data.histogram.b, data.histogram.lum):
        assert hist.shape == (256,)
        assert int(hist.sum()) == 80 * 60


def test_waveform_columns_shape():
    data = analyze(_frame(h=30, w=47), 47, 30)
    assert len(data.waveform) == 47
    assert data.waveform.values.shape == (47, 30)


def test_waveform_column_holds_that_columns_luminance():
    frame = _frame(h=10, w=12)
    data = analyze(frame, 12, 10)
    col = 5
    expected = sorted(
        luminance(*frame[y, col, :3].tolist()) for y in range(10)
    )
    assert sorted(data.waveform.values[col].tolist()) == expected


def test_parade_buckets_and_dropped_columns():
    """Width 10 gives 3 buckets; column 9 is dropped."""
    frame = np.zeros((4, 10, 3), dtype=np.uint8)
    frame[:, 9, 0] = 250
    frame[:, 3:6, 1] = 77
    data = analyze(frame, 10, 4)
    assert len(data.parade) == 3
    assert data.parade.r.shape == (3, 12)
    assert 250 not in data.parade.r
    assert np.all(data.parade.g[1] == 77)
    assert np.all(data.parade.g[0] == 0)


def test_parade_holds_raw_channel_values():
    frame = np.zeros((2, 6, 3), dtype=np.uint8)
    frame[:, :, 0] = 10
    frame[:, :, 1] = 20
    frame[:, :, 2] = 30
    data = analyze(frame, 6, 2)
    assert np.all(data.parade.r == 10)
    assert np.all(data.parade.g == 20)
    assert np.all(data.parade.b == 30)


def test_parade_narrower_than_three_is_empty():
    data = analyze(np.zeros((5, 2, 3), dtype=np.uint8), 2, 5)
    assert len(data.parade) == 0
    assert int(data.histogram.r.sum()) == 10


@pytest.mark.parametrize("w,h", [(80, 60), (317, 211), (400, 300), (1000, 1000)])
def test_sample_count_follows_stride(w, h):
    frame = np.zeros((h, w, 3), dtype=np.uint8)
    data = analyze(frame, w, h)
    stride = max(1, (w * h) // DEFAULT_SAMPLE_BUDGET)
    assert data.points.stride == stride
    assert abs(len(data.points) - (w * h) // stride) <= 1
    assert len(data.points) == math.ceil(w * h / stride)


def test_sample_stride_floor():
    assert sample_stride(10, 10) == 1
    assert sample_stride(1000, 100) == 2
    assert sample_stride(1920, 1080) == 41


def test_samples_are_stride_multiples():
    """Points come from raster indices 0, stride, 2*stride, ..."""
    w, h = 300, 200
    frame = np.zeros((h, w, 3), dtype=np.uint8)
    frame.reshape(-1, 3)[:, 0] = np.arange(w * h) % 256
    data = analyze(frame, w, h, sample_budget=1000)
    stride = data.points.stride
    assert stride == 60
    expected = (np.arange(0, w * h, stride) % 256).astype(np.uint8)
    np.testing.assert_array_equal(data.points.r, expected)


def test_uniform_gray_frame():
    k = 90
    frame = np.full((40, 50, 3), k, dtype=np.uint8)
    data = analyze(frame, 50, 40)
    assert np.all(data.waveform.values == luminance(k, k, k))
    np.testing.assert_allclose(data.points.cb, 128, atol=1)
    np.testing.assert_allclose(data.points.cr, 128, atol=1)


def test_solid_red_200(make_solid):
    frame = make_solid(20, 30, (200, 0, 0))
    data = analyze(frame, 30, 20)
    assert data.histogram.r[200] == 600
    assert data.histogram.g[0] == 600
    assert data.histogram.b[0] == 600


def test_alternating_red_black_rows():
    frame = np.zeros((4, 4, 4), dtype=np.uint8)
    frame[0::2, :, 0] = 255
    frame[:, :, 3] = 255
    data = analyze(frame, 4, 4)
    assert data.histogram.r[255] == 8
    assert data.histogram.r[0] == 8
    assert data.histogram.g[0] == 16
    assert data.histogram.b[0] == 16
    assert data.histogram.lum[54] == 8
    assert data.histogram.lum[0] == 8
    assert int(data.histogram.lum.sum()) == 16


def test_alpha_is_ignored():
    frame = _frame()
    opaque = frame.copy()
    opaque[:, :, 3] = 255
    a = analyze(frame, 80, 60)
    b = analyze(opaque, 80, 60)
    np.testing.assert_array_equal(a.histogram.lum, b.histogram.lum)
    np.testing.assert_array_equal(a.waveform.values, b.waveform.values)


def test_rgb_and_rgba_agree():
    rgba = _frame()
    rgb = np.ascontiguousarray(rgba[:, :, :3])
    a = analyze(rgba, 80, 60)
    b = analyze(rgb, 80, 60)
    np.testing.assert_array_equal(a.histogram.r, b.histogram.r)
    np.testing.assert_array_equal(a.parade.b, b.parade.b)
    np.testing.assert_array_equal(a.points.cb, b.points.cb)


def test_accepts_bytes_and_flat_arrays():
    frame = _frame(h=8, w=9)
    from_bytes = analyze(frame.tobytes(), 9, 8)
    from_flat = analyze(frame.reshape(-1), 9, 8)
    reference = analyze(frame, 9, 8)
    for data in (from_bytes, from_flat):
        np.testing.assert_array_equal(data.histogram.lum, reference.histogram.lum)
        np.testing.assert_array_equal(data.waveform.values, reference.waveform.values)


def test_deterministic():
    frame = _frame()
    a = analyze(frame, 80, 60)
    b = analyze(frame.copy(), 80, 60)
    np.testing.assert_array_equal(a.waveform.values, b.waveform.values)
    np.testing.assert_array_equal(a.parade.r, b.parade.r)
    np.testing.assert_array_equal(a.points.cb, b.points.cb)
    np.testing.assert_array_equal(a.points.cr, b.points.cr)
    np.testing.assert_array_equal(a.histogram.lum, b.histogram.lum)


def test_input_not_modified():
    frame = _frame()
    before = frame.copy()
    analyze(frame, 80, 60)
    np.testing.assert_array_equal(frame, before)


# --- Rejected input ---


@pytest.mark.parametrize(
    "pixels,w,h",
    [
        (np.zeros((0,), dtype=np.uint8), 0, 0),
        (np.zeros((10, 10, 4), dtype=np.uint8), 0, 10),
        (np.zeros((10, 10, 4), dtype=np.uint8), 10, -1),
        (np.zeros((10, 10, 4), dtype=np.uint8), 12, 10),
        (np.zeros((10 * 10 * 2,), dtype=np.uint8), 10, 10),
        (np.zeros((10, 10, 4), dtype=np.float32), 10, 10),
        (b"", 4, 4),
        (b"\x00" * 47, 4, 4),
        (None, 4, 4),
    ],
)
def test_invalid_input_skips_cycle(pixels, w, h):
    assert validate_frame(pixels, w, h)
    assert analyze(pixels, w, h) is None


def test_invalid_dimension_types():
    frame = np.zeros((4, 4, 3), dtype=np.uint8)
    assert validate_frame(frame, 4.0, 4)
    assert validate_frame(frame, True, 4)
    assert analyze(frame, "4", 4) is None


def test_valid_input_has_no_errors():
    assert validate_frame(_frame(), 80, 60) == []
    assert validate_frame(b"\x00" * 48, 4, 4) == []


def test_rejection_is_logged(caplog):
    with caplog.at_level("WARNING", logger="scopes.analyzer"):
        analyze(b"", 4, 4)
    assert "Skipping frame" in caplog.text
