"""
Configuration management for the face blurring pipeline.

Provides a layered configuration system with the following precedence
(highest to lowest):

    Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No detection logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from faceblur.priors import REFERENCE_SIZE

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: faceblur/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model-related configuration.

    Attributes:
        model_path: Path to the RFB-640 .onnx file (relative to project root).
        backend: Compute backend — 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) of the network input.
        mean_value: Value subtracted from every channel sample.
        scale_factor: Multiplier applied after mean subtraction.
        score_output: Name of the network's class-score output.
        box_output: Name of the network's box-offset output.
    """

    model_path: str = "models/version-RFB-640.onnx"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (640, 480)
    mean_value: float = 127.0
    scale_factor: float = 1.0 / 128.0
    score_output: str = "scores"
    box_output: str = "boxes"


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds and prior decoding variances.

    Attributes:
        score_threshold: Face score an anchor must exceed to be decoded.
        iou_threshold: IoU above which NMS drops the lower-scoring box.
        center_variance: SSD variance for center offsets.
        size_variance: SSD variance for size offsets.
    """

    score_threshold: float = 0.4
    iou_threshold: float = 0.3
    center_variance: float = 0.1
    size_variance: float = 0.2


@dataclass(frozen=True)
class AnonymizeConfig:
    """How detected regions are anonymized.

    Attributes:
        mode: 'pixelate' (block averaging) or 'blur' (Gaussian).
        circular: Restrict the effect to each region's inscribed ellipse.
        min_block_size: Smallest pixelation block edge in pixels.
        block_divisor: Block edge is min(width, height) / block_divisor.
        blur_sigma: Gaussian sigma used in 'blur' mode.
    """

    mode: str = "pixelate"
    circular: bool = False
    min_block_size: int = 8
    block_divisor: int = 10
    blur_sigma: float = 20.0


@dataclass(frozen=True)
class OutputConfig:
    """Output encoding configuration.

    Attributes:
        image_format: File extension passed to the encoder ('.png', '.jpg', ...).
    """

    image_format: str = ".png"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    anonymize: AnonymizeConfig = field(default_factory=AnonymizeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_MODES = {"pixelate", "blur"}
_VALID_IMAGE_FORMATS = {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tiff", ".tif"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    # Feature maps and steps of the anchor generator are fixed to this size
    if tuple(config.model.input_size) != REFERENCE_SIZE:
        raise ValueError(
            f"model.input_size must be {REFERENCE_SIZE} to match the anchor "
            f"layout of the RFB-640 model, got {config.model.input_size}."
        )

    if config.model.scale_factor <= 0:
        raise ValueError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    for name in ("score_threshold", "iou_threshold"):
        value = getattr(config.detection, name)
        if not (0.0 <= value <= 1.0):
            raise ValueError(
                f"detection.{name} must be in [0.0, 1.0], got {value}."
            )

    for name in ("center_variance", "size_variance"):
        value = getattr(config.detection, name)
        if value <= 0:
            raise ValueError(
                f"detection.{name} must be positive, got {value}."
            )

    if config.anonymize.mode not in _VALID_MODES:
        raise ValueError(
            f"Invalid anonymize.mode: '{config.anonymize.mode}'. "
            f"Must be one of {_VALID_MODES}."
        )

    if config.anonymize.min_block_size < 1:
        raise ValueError(
            f"anonymize.min_block_size must be >= 1, "
            f"got {config.anonymize.min_block_size}."
        )

    if config.anonymize.block_divisor < 1:
        raise ValueError(
            f"anonymize.block_divisor must be >= 1, "
            f"got {config.anonymize.block_divisor}."
        )

    if config.anonymize.blur_sigma <= 0:
        raise ValueError(
            f"anonymize.blur_sigma must be positive, "
            f"got {config.anonymize.blur_sigma}."
        )

    if config.output.image_format not in _VALID_IMAGE_FORMATS:
        raise ValueError(
            f"Invalid output.image_format: '{config.output.image_format}'. "
            f"Must be one of {_VALID_IMAGE_FORMATS}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Accept YAML booleans as well as env-style strings ('true', '0', ...)."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Cannot interpret '{value}' as a boolean.")
    return bool(value)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "model_path" in raw:
        kwargs["model_path"] = str(raw["model_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_value" in raw:
        kwargs["mean_value"] = float(raw["mean_value"])
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    if "score_output" in raw:
        kwargs["score_output"] = str(raw["score_output"])
    if "box_output" in raw:
        kwargs["box_output"] = str(raw["box_output"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("score_threshold", "iou_threshold", "center_variance", "size_variance"):
        if key in raw:
            kwargs[key] = float(raw[key])
    return DetectionConfig(**kwargs)


def _build_anonymize_config(raw: dict) -> AnonymizeConfig:
    """Build AnonymizeConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "circular" in raw:
        kwargs["circular"] = _parse_bool(raw["circular"])
    if "min_block_size" in raw:
        kwargs["min_block_size"] = int(raw["min_block_size"])
    if "block_divisor" in raw:
        kwargs["block_divisor"] = int(raw["block_divisor"])
    if "blur_sigma" in raw:
        kwargs["blur_sigma"] = float(raw["blur_sigma"])
    return AnonymizeConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "image_format" in raw:
        fmt = str(raw["image_format"]).lower()
        kwargs["image_format"] = fmt if fmt.startswith(".") else f".{fmt}"
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "FACEBLUR_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        FACEBLUR_MODEL_BACKEND=cuda
        FACEBLUR_DETECTION_SCORE_THRESHOLD=0.6

    Every scalar setting has a variable; model.input_size and the
    network output names are YAML-only.
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_PATH": ("model", "model_path"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}MODEL_MEAN_VALUE": ("model", "mean_value"),
        f"{_ENV_PREFIX}MODEL_SCALE_FACTOR": ("model", "scale_factor"),
        f"{_ENV_PREFIX}DETECTION_SCORE_THRESHOLD": ("detection", "score_threshold"),
        f"{_ENV_PREFIX}DETECTION_IOU_THRESHOLD": ("detection", "iou_threshold"),
        f"{_ENV_PREFIX}DETECTION_CENTER_VARIANCE": ("detection", "center_variance"),
        f"{_ENV_PREFIX}DETECTION_SIZE_VARIANCE": ("detection", "size_variance"),
        f"{_ENV_PREFIX}ANONYMIZE_MODE": ("anonymize", "mode"),
        f"{_ENV_PREFIX}ANONYMIZE_CIRCULAR": ("anonymize", "circular"),
        f"{_ENV_PREFIX}ANONYMIZE_MIN_BLOCK_SIZE": ("anonymize", "min_block_size"),
        f"{_ENV_PREFIX}ANONYMIZE_BLOCK_DIVISOR": ("anonymize", "block_divisor"),
        f"{_ENV_PREFIX}ANONYMIZE_BLUR_SIGMA": ("anonymize", "blur_sigma"),
        f"{_ENV_PREFIX}OUTPUT_IMAGE_FORMAT": ("output", "image_format"),
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
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

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
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        anonymize=_build_anonymize_config(raw.get("anonymize", {})),
        output=_build_output_config(raw.get("output", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
