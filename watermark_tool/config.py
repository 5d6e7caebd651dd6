"""
Configuration management for the watermark tool.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No blending, detection, or image I/O belongs here.

Non-goals:
    - No dynamic reloading.
    - No remote configuration.
"""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: watermark_tool/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


def resolve_path(path: str) -> Path:
    """Resolve a config path, treating relative paths as project-root relative."""
    resolved = Path(path)
    if not resolved.is_absolute():
        resolved = _PROJECT_ROOT / resolved
    return resolved


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineConfig:
    """Calibration inputs for the watermark engine.

    Attributes:
        small_capture_path: 48x48 watermark capture over black (relative to project root).
        large_capture_path: 96x96 watermark capture over black (relative to project root).
        logo_value: Constant foreground intensity of the watermark (0-255).
    """

    small_capture_path: str = "assets/bg_48.png"
    large_capture_path: str = "assets/bg_96.png"
    logo_value: float = 255.0


@dataclass(frozen=True)
class DetectionConfig:
    """Pre-removal watermark detection.

    Attributes:
        enabled: Run the detector before removing and skip clean images.
        threshold: Images scoring below this (and not detected) are skipped.
    """

    enabled: bool = True
    threshold: float = 0.25


@dataclass(frozen=True)
class ProcessingConfig:
    """What to do with each image.

    Attributes:
        mode: 'remove' or 'add'.
        force_size: 'auto', 'small' (48x48) or 'large' (96x96).
        workers: Number of images processed concurrently in batch mode.
    """

    mode: str = "remove"
    force_size: str = "auto"
    workers: int = 1


@dataclass(frozen=True)
class OutputConfig:
    """Encoder parameters, selected by output file extension.

    Attributes:
        jpeg_quality: JPEG quality (0-100).
        png_compression: PNG compression level (0-9).
        webp_quality: WebP quality (1-100; 101 selects lossless).
    """

    jpeg_quality: int = 100
    png_compression: int = 6
    webp_quality: int = 101


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    engine: EngineConfig = field(default_factory=EngineConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def with_overrides(self, section: str, **values) -> "AppConfig":
        """Return a validated copy with fields of one section replaced.

        None values are ignored so unset CLI flags can be passed through.
        """
        values = {k: v for k, v in values.items() if v is not None}
        if not values:
            return self
        updated = dataclasses.replace(getattr(self, section), **values)
        config = dataclasses.replace(self, **{section: updated})
        _validate(config)
        return config


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_MODES = {"remove", "add"}
_VALID_SIZES = {"auto", "small", "large"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if not (0.0 <= config.engine.logo_value <= 255.0):
        raise ValueError(
            f"engine.logo_value must be in [0, 255], "
            f"got {config.engine.logo_value}."
        )

    if not (0.0 <= config.detection.threshold <= 1.0):
        raise ValueError(
            f"detection.threshold must be in [0.0, 1.0], "
            f"got {config.detection.threshold}."
        )

    if config.processing.mode not in _VALID_MODES:
        raise ValueError(
            f"Invalid processing.mode: '{config.processing.mode}'. "
            f"Must be one of {_VALID_MODES}."
        )

    if config.processing.force_size not in _VALID_SIZES:
        raise ValueError(
            f"Invalid processing.force_size: '{config.processing.force_size}'. "
            f"Must be one of {_VALID_SIZES}."
        )

    if config.processing.workers < 1:
        raise ValueError(
            f"processing.workers must be at least 1, "
            f"got {config.processing.workers}."
        )

    if not (0 <= config.output.jpeg_quality <= 100):
        raise ValueError(
            f"output.jpeg_quality must be in [0, 100], "
            f"got {config.output.jpeg_quality}."
        )

    if not (0 <= config.output.png_compression <= 9):
        raise ValueError(
            f"output.png_compression must be in [0, 9], "
            f"got {config.output.png_compression}."
        )

    if not (1 <= config.output.webp_quality <= 101):
        raise ValueError(
            f"output.webp_quality must be in [1, 101], "
            f"got {config.output.webp_quality}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_bool(value) -> bool:
    """Interpret YAML booleans and env-var strings ('1', 'true', 'no', ...)."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Expected a boolean value, got '{value}'.")


def _build_engine_config(raw: dict) -> EngineConfig:
    """Build EngineConfig from a raw YAML dict."""
    kwargs = {}
    if "small_capture_path" in raw:
        kwargs["small_capture_path"] = str(raw["small_capture_path"])
    if "large_capture_path" in raw:
        kwargs["large_capture_path"] = str(raw["large_capture_path"])
    if "logo_value" in raw:
        kwargs["logo_value"] = float(raw["logo_value"])
    return EngineConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "enabled" in raw:
        kwargs["enabled"] = _parse_bool(raw["enabled"])
    if "threshold" in raw:
        kwargs["threshold"] = float(raw["threshold"])
    return DetectionConfig(**kwargs)


def _build_processing_config(raw: dict) -> ProcessingConfig:
    """Build ProcessingConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "force_size" in raw:
        kwargs["force_size"] = str(raw["force_size"]).lower()
    if "workers" in raw:
        kwargs["workers"] = int(raw["workers"])
    return ProcessingConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "jpeg_quality" in raw:
        kwargs["jpeg_quality"] = int(raw["jpeg_quality"])
    if "png_compression" in raw:
        kwargs["png_compression"] = int(raw["png_compression"])
    if "webp_quality" in raw:
        kwargs["webp_quality"] = int(raw["webp_quality"])
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "WATERMARK_TOOL_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        WATERMARK_TOOL_DETECTION_THRESHOLD=0.4
        WATERMARK_TOOL_PROCESSING_FORCE_SIZE=large

    The variable name maps to the nested config key: the section name
    followed by the field name, upper-cased.
    """
    env_map = {
        f"{_ENV_PREFIX}ENGINE_SMALL_CAPTURE_PATH": ("engine", "small_capture_path"),
        f"{_ENV_PREFIX}ENGINE_LARGE_CAPTURE_PATH": ("engine", "large_capture_path"),
        f"{_ENV_PREFIX}ENGINE_LOGO_VALUE": ("engine", "logo_value"),
        f"{_ENV_PREFIX}DETECTION_ENABLED": ("detection", "enabled"),
        f"{_ENV_PREFIX}DETECTION_THRESHOLD": ("detection", "threshold"),
        f"{_ENV_PREFIX}PROCESSING_MODE": ("processing", "mode"),
        f"{_ENV_PREFIX}PROCESSING_FORCE_SIZE": ("processing", "force_size"),
        f"{_ENV_PREFIX}PROCESSING_WORKERS": ("processing", "workers"),
        f"{_ENV_PREFIX}OUTPUT_JPEG_QUALITY": ("output", "jpeg_quality"),
        f"{_ENV_PREFIX}OUTPUT_PNG_COMPRESSION": ("output", "png_compression"),
        f"{_ENV_PREFIX}OUTPUT_WEBP_QUALITY": ("output", "webp_quality"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = resolve_path(config_path)

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        engine=_build_engine_config(raw.get("engine") or {}),
        detection=_build_detection_config(raw.get("detection") or {}),
        processing=_build_processing_config(raw.get("processing") or {}),
        output=_build_output_config(raw.get("output") or {}),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
