"""
Shared fixtures: synthetic calibration captures and a ready engine.

The captures are a diamond-shaped watermark over black, peaking at
alpha 0.5, generated and PNG-encoded in memory so no binary assets are
needed.
"""

import cv2
import numpy as np
import pytest

from watermark_tool.engine import WatermarkEngine

LOGO_VALUE = 255.0


def diamond_alpha(size: int, peak: float = 0.5) -> np.ndarray:
    """Diamond-shaped opacity plane of shape (size, size) peaking at `peak`."""
    coords = (np.arange(size, dtype=np.float32) + 0.5) / size * 2.0 - 1.0
    u, v = np.meshgrid(coords, coords)
    return peak * np.clip(1.0 - (np.abs(u) + np.abs(v)), 0.0, 1.0)


def encode_capture(alpha: np.ndarray) -> bytes:
    """Encode an alpha plane as the BGR capture it would produce over black."""
    gray = np.rint(alpha * 255.0).astype(np.uint8)
    ok, buf = cv2.imencode(".png", cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR))
    assert ok
    return buf.tobytes()


def noisy_background(height: int, width: int, level: int = 128, sigma: float = 3.0,
                     seed: int = 0) -> np.ndarray:
    """Near-flat BGR image with mild Gaussian noise."""
    rng = np.random.default_rng(seed)
    gray = rng.normal(level, sigma, size=(height, width))
    gray = np.clip(np.rint(gray), 0, 255).astype(np.uint8)
    return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)


def random_noise(height: int, width: int, seed: int = 1) -> np.ndarray:
    """Uniform random BGR noise."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


@pytest.fixture(scope="session")
def small_capture() -> bytes:
    return encode_capture(diamond_alpha(48))


@pytest.fixture(scope="session")
def large_capture() -> bytes:
    return encode_capture(diamond_alpha(96))


@pytest.fixture(scope="session")
def engine(small_capture, large_capture) -> WatermarkEngine:
    return WatermarkEngine(small_capture, large_capture, LOGO_VALUE)


@pytest.fixture
def capture_files(tmp_path, small_capture, large_capture):
    """Write the captures to disk and return (small_path, large_path)."""
    small = tmp_path / "bg_48.png"
    large = tmp_path / "bg_96.png"
    small.write_bytes(small_capture)
    large.write_bytes(large_capture)
    return small, large
