"""
Tests for the configuration module.
"""

import pytest

from watermark_tool.config import (
    AppConfig,
    DetectionConfig,
    OutputConfig,
    ProcessingConfig,
    _validate,
    load_config,
    resolve_path,
)


def test_load_defaults():
    """Test loading configuration without any file."""
    config = load_config(None)
    assert isinstance(config, AppConfig)
    assert config.engine.logo_value == 255.0
    assert config.detection.enabled is True
    assert config.detection.threshold == 0.25
    assert config.processing.mode == "remove"
    assert config.processing.force_size == "auto"
    assert config.output.jpeg_quality == 100


def test_validation_failure():
    """Test fail-fast validation."""
    with pytest.raises(ValueError, match="threshold"):
        _validate(AppConfig(detection=DetectionConfig(threshold=1.5)))

    with pytest.raises(ValueError, match="mode"):
        _validate(AppConfig(processing=ProcessingConfig(mode="erase")))

    with pytest.raises(ValueError, match="force_size"):
        _validate(AppConfig(processing=ProcessingConfig(force_size="medium")))

    with pytest.raises(ValueError, match="workers"):
        _validate(AppConfig(processing=ProcessingConfig(workers=0)))

    with pytest.raises(ValueError, match="png_compression"):
        _validate(AppConfig(output=OutputConfig(png_compression=12)))


def test_env_override(monkeypatch):
    """Test environment variable overrides."""
    monkeypatch.setenv("WATERMARK_TOOL_DETECTION_THRESHOLD", "0.4")
    monkeypatch.setenv("WATERMARK_TOOL_DETECTION_ENABLED", "false")
    monkeypatch.setenv("WATERMARK_TOOL_PROCESSING_FORCE_SIZE", "LARGE")

    config = load_config(None)

    assert config.detection.threshold == 0.4
    assert config.detection.enabled is False
    assert config.processing.force_size == "large"


def test_env_override_invalid_bool(monkeypatch):
    monkeypatch.setenv("WATERMARK_TOOL_DETECTION_ENABLED", "maybe")
    with pytest.raises(ValueError, match="boolean"):
        load_config(None)


def test_yaml_file(tmp_path, monkeypatch):
    """YAML values apply, and env vars take precedence over them."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "processing:\n"
        "  mode: add\n"
        "  workers: 3\n"
        "output:\n"
        "  jpeg_quality: 90\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("WATERMARK_TOOL_PROCESSING_WORKERS", "5")

    config = load_config(str(path))

    assert config.processing.mode == "add"
    assert config.processing.workers == 5
    assert config.output.jpeg_quality == 90
    assert config.output.png_compression == 6


def test_empty_yaml_file_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == AppConfig()


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_with_overrides():
    config = AppConfig()

    assert config.with_overrides("processing", mode=None) is config

    updated = config.with_overrides("detection", threshold=0.6, enabled=None)
    assert updated.detection.threshold == 0.6
    assert updated.detection.enabled is True
    assert config.detection.threshold == 0.25

    with pytest.raises(ValueError):
        config.with_overrides("detection", threshold=2.0)


def test_resolve_path(tmp_path):
    assert resolve_path(str(tmp_path)) == tmp_path
    assert resolve_path("assets/bg_48.png").is_absolute()
