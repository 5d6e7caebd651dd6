"""
Tests for the engine module.
"""

import cv2
import numpy as np
import pytest

from conftest import LOGO_VALUE, noisy_background, random_noise
from watermark_tool.alpha_mask import CalibrationError
from watermark_tool.config import EngineConfig
from watermark_tool.engine import WatermarkEngine
from watermark_tool.geometry import Region, WatermarkSize


def test_engine_masks(engine):
    assert engine.small_mask.shape == (48, 48)
    assert engine.large_mask.shape == (96, 96)
    assert engine.logo_value == LOGO_VALUE
    assert engine.alpha_mask(WatermarkSize.SMALL) is engine.small_mask
    assert engine.alpha_mask("large") is engine.large_mask
    with pytest.raises(ValueError, match="AUTO"):
        engine.alpha_mask(WatermarkSize.AUTO)


def test_bad_capture_bytes(large_capture):
    with pytest.raises(CalibrationError):
        WatermarkEngine(b"\x00\x01garbage", large_capture)


def test_logo_value_out_of_range(small_capture, large_capture):
    with pytest.raises(ValueError, match="logo_value"):
        WatermarkEngine(small_capture, large_capture, logo_value=300.0)


def test_from_files(capture_files, engine):
    small_path, large_path = capture_files
    loaded = WatermarkEngine.from_files(small_path, large_path)
    assert loaded.small_mask == engine.small_mask
    assert loaded.large_mask == engine.large_mask


def test_from_config(capture_files):
    small_path, large_path = capture_files
    config = EngineConfig(str(small_path), str(large_path), 200.0)
    assert WatermarkEngine.from_config(config).logo_value == 200.0


def test_from_config_missing_file(tmp_path):
    config = EngineConfig(str(tmp_path / "a.png"), str(tmp_path / "b.png"))
    with pytest.raises(FileNotFoundError):
        WatermarkEngine.from_config(config)


def test_bgr_is_edited_in_place(engine):
    image = noisy_background(512, 512)
    before = image.copy()

    result = engine.add_watermark(image)

    assert result is image
    assert not np.array_equal(image, before)
    # Only the 48x48 rectangle at (432, 432) changes
    changed = np.argwhere(np.any(image != before, axis=2))
    assert changed.min() >= 432 and changed.max() < 480


def test_bgra_and_gray_are_converted(engine):
    bgra = np.full((200, 200, 4), 50, dtype=np.uint8)
    gray = np.full((200, 200), 50, dtype=np.uint8)

    out_bgra = engine.add_watermark(bgra)
    out_gray = engine.remove_watermark(gray)

    assert out_bgra.shape == (200, 200, 3)
    assert out_gray.shape == (200, 200, 3)
    assert np.all(bgra == 50)
    assert np.all(gray == 50)


@pytest.mark.parametrize(
    "image, error",
    [
        ([[1, 2], [3, 4]], TypeError),
        (None, TypeError),
        (np.zeros((0, 0, 3), dtype=np.uint8), ValueError),
        (np.zeros((10, 10, 3), dtype=np.float32), ValueError),
        (np.zeros((10, 10, 2), dtype=np.uint8), ValueError),
        (np.zeros((2, 10, 10, 3), dtype=np.uint8), ValueError),
    ],
)
def test_invalid_images_rejected(engine, image, error):
    with pytest.raises(error):
        engine.remove_watermark(image)


def test_add_then_remove_round_trip(engine):
    original = noisy_background(1500, 2000, level=90)
    image = original.copy()

    engine.add_watermark(image)
    engine.remove_watermark(image)

    error = np.abs(image.astype(np.int16) - original.astype(np.int16))
    assert error.max() <= 2


def test_forced_size_uses_its_margins(engine):
    image = np.full((600, 600, 3), 40, dtype=np.uint8)
    before = image.copy()

    engine.add_watermark(image, WatermarkSize.LARGE)

    changed = np.argwhere(np.any(image != before, axis=2))
    # Large placement on 600x600: (600 - 64 - 96) = 440
    assert changed.min() >= 440 and changed.max() < 536


def test_detect_watermark(engine):
    marked = engine.add_watermark(noisy_background(512, 512))
    assert engine.detect_watermark(marked).detected
    assert engine.detect_watermark(marked, "small").mask_size_used == 48

    clean = random_noise(512, 512)
    assert not engine.detect_watermark(clean).detected

    empty = engine.detect_watermark(np.zeros((0, 0, 3), dtype=np.uint8))
    assert not empty.detected
    assert empty.confidence == 0.0


def test_detect_picks_large_mask_automatically(engine):
    """2000x1500 exceeds 1024 on both axes: AUTO adds and detects with 96x96."""
    image = engine.add_watermark(noisy_background(1500, 2000))

    result = engine.detect_watermark(image)

    assert result.detected
    assert result.mask_size_used == 96
    assert result.region == Region(1840, 1340, 96, 96)


def test_detect_rejects_non_array(engine):
    with pytest.raises(TypeError):
        engine.detect_watermark("image.png")


@pytest.mark.parametrize("size, standard", [(48, WatermarkSize.SMALL), (96, WatermarkSize.LARGE)])
def test_custom_region_fast_path_matches_standard(engine, size, standard):
    """A custom region at the standard spot and size is identical to the standard call."""
    base = noisy_background(2000, 2000, level=70)
    standard_image = engine.add_watermark(base.copy(), standard)

    margin = 32 if size == 48 else 64
    region = Region(2000 - margin - size, 2000 - margin - size, size, size)
    custom_image = engine.add_watermark_custom(base.copy(), region)

    assert np.array_equal(custom_image, standard_image)


def test_custom_region_resampled(engine):
    image = np.full((300, 300, 3), 30, dtype=np.uint8)
    before = image.copy()

    engine.add_watermark_custom(image, Region(10, 20, 120, 60))

    changed = np.argwhere(np.any(image != before, axis=2))
    assert changed[:, 0].min() >= 20 and changed[:, 0].max() < 80
    assert changed[:, 1].min() >= 10 and changed[:, 1].max() < 130


def test_custom_round_trip(engine):
    original = noisy_background(300, 300, level=120)
    image = original.copy()
    region = Region(50, 40, 64, 80)

    engine.add_watermark_custom(image, region)
    engine.remove_watermark_custom(image, region)

    error = np.abs(image.astype(np.int16) - original.astype(np.int16))
    assert error.max() <= 2


def test_custom_region_overhang_is_clipped(engine):
    image = np.full((100, 100, 3), 30, dtype=np.uint8)
    engine.add_watermark_custom(image, Region(80, 80, 48, 48))
    assert image.shape == (100, 100, 3)


def test_custom_region_too_small(engine):
    image = np.zeros((50, 50, 3), dtype=np.uint8)
    with pytest.raises(ValueError, match="too small"):
        engine.add_watermark_custom(image, Region(0, 0, 3, 10))


def test_interpolated_alpha(engine):
    mask = engine.create_interpolated_alpha(150, 70)
    assert mask.shape == (70, 150)


def test_encoded_round_trip_through_png(engine):
    """Watermarked output survives lossless encoding unchanged."""
    image = engine.add_watermark(noisy_background(256, 256))
    ok, buf = cv2.imencode(".png", image)
    assert ok
    decoded = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    assert np.array_equal(decoded, image)
