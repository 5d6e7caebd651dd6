"""
Tests for the alpha mask module.
"""

import logging
import warnings

import cv2
import numpy as np
import pytest

from conftest import diamond_alpha, encode_capture
from watermark_tool.alpha_mask import (
    AlphaMask,
    CalibrationError,
    alpha_from_capture,
    decode_capture,
    load_alpha_masks,
    read_capture_file,
)


def test_alpha_mask_is_immutable():
    mask = AlphaMask(np.full((4, 6), 0.25, dtype=np.float32))
    assert (mask.width, mask.height) == (6, 4)
    with pytest.raises(ValueError):
        mask.values[0, 0] = 0.5


def test_alpha_mask_copies_input():
    source = np.zeros((3, 3), dtype=np.float32)
    mask = AlphaMask(source)
    source[0, 0] = 1.0
    assert mask.values[0, 0] == 0.0


@pytest.mark.parametrize(
    "values",
    [
        np.full((4, 4), 1.5),
        np.full((4, 4), -0.1),
        np.full((4, 4), np.nan),
        np.zeros((4, 4, 3)),
        np.zeros((0, 4)),
    ],
)
def test_alpha_mask_rejects_invalid_values(values):
    with pytest.raises(ValueError):
        AlphaMask(values)


def test_nan_mask_rejected_without_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        with pytest.raises(ValueError, match="NaN"):
            AlphaMask(np.full((4, 4), np.nan))


def test_load_alpha_masks_derives_normalized_intensity(small_capture, large_capture):
    small, large = load_alpha_masks(small_capture, large_capture)

    assert small.shape == (48, 48)
    assert large.shape == (96, 96)

    expected = np.rint(diamond_alpha(96) * 255.0) / 255.0
    np.testing.assert_allclose(large.values, expected, atol=1e-6)
    assert 0.0 <= float(large.values.min()) and float(large.values.max()) <= 1.0


def test_channel_average_is_used():
    capture = np.zeros((48, 48, 3), dtype=np.uint8)
    capture[..., 0] = 30
    capture[..., 1] = 60
    capture[..., 2] = 90
    mask = alpha_from_capture(capture, 48)
    np.testing.assert_allclose(mask.values, 60.0 / 255.0, atol=1e-6)


def test_wrong_resolution_is_resized_with_warning(caplog, large_capture):
    """A capture at the wrong size is a recoverable condition, not an error."""
    odd = encode_capture(diamond_alpha(64))

    with caplog.at_level(logging.WARNING, logger="watermark_tool.alpha_mask"):
        small, large = load_alpha_masks(odd, large_capture)

    assert small.shape == (48, 48)
    assert "expected 48x48" in caplog.text


def test_upscaled_capture_keeps_range():
    capture = cv2.cvtColor(np.full((20, 20), 200, dtype=np.uint8), cv2.COLOR_GRAY2BGR)
    mask = alpha_from_capture(capture, 96)
    assert mask.shape == (96, 96)
    np.testing.assert_allclose(mask.values, 200.0 / 255.0, atol=1e-5)


def test_decode_failure_is_fatal(large_capture):
    with pytest.raises(CalibrationError, match="small"):
        load_alpha_masks(b"not an image", large_capture)

    with pytest.raises(CalibrationError):
        decode_capture(b"")


def test_read_capture_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError, match="Background capture not found"):
        read_capture_file(tmp_path / "missing.png")


def test_read_capture_file(capture_files, small_capture):
    small_path, _ = capture_files
    assert read_capture_file(small_path) == small_capture
