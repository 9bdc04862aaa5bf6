"""Configuration loading for the undistortion pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from calib.camera_info import model_from_params
from calib.camera_model import CameraModel
from configs.validator import validate_config
from exceptions import ConfigError, InvalidConfigError, InvalidModelError
from log_config.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UndistortConfig:
    input_camera_info_from_params: bool = False
    # "auto_generated", "match_input", "ros_params" or "camera_info"
    output_camera_info_source: str = "auto_generated"
    process_image: bool = True
    undistort_image: bool = True
    process_every_nth_frame: int = 1  # <= 1 processes every frame
    output_image_type: str = ""  # empty keeps the input encoding
    scale: float = 1.0
    publish_tf: bool = True
    output_frame: str = "output_camera"
    rename_radtan_plumb_bob: bool = False
    interpolation: str = "linear"


@dataclass(frozen=True)
class TelemetryConfig:
    latency_p95_ms_warn: float = 50.0


@dataclass(frozen=True)
class AppConfig:
    undistort: UndistortConfig
    telemetry: TelemetryConfig
    input_camera: Optional[CameraModel] = None
    output_camera: Optional[CameraModel] = None


def _camera_from_section(data: Dict[str, Any], key: str) -> Optional[CameraModel]:
    section = data.get(key)
    if section is None:
        return None
    try:
        return model_from_params(section)
    except InvalidModelError as e:
        raise InvalidConfigError(f"Invalid {key} parameters: {e}")


def parse_config(data: Dict[str, Any]) -> AppConfig:
    """Validate a configuration mapping and build an AppConfig.

    Raises:
        ConfigError: If the mapping is invalid
    """
    if not isinstance(data, dict):
        raise InvalidConfigError("Configuration root must be a mapping")

    validate_config(data)

    try:
        undistort = UndistortConfig(**data["undistort"])
        telemetry = TelemetryConfig(**data.get("telemetry", {}))
    except TypeError as e:
        raise InvalidConfigError(f"Invalid configuration value: {e}")

    input_camera = _camera_from_section(data, "input_camera")
    output_camera = _camera_from_section(data, "output_camera")

    if undistort.input_camera_info_from_params and input_camera is None:
        raise InvalidConfigError("input_camera_info_from_params is set but no input_camera section is given")
    if undistort.output_camera_info_source == "ros_params" and output_camera is None:
        raise InvalidConfigError("output_camera_info_source is 'ros_params' but no output_camera section is given")

    return AppConfig(
        undistort=undistort,
        telemetry=telemetry,
        input_camera=input_camera,
        output_camera=output_camera,
    )


def load_config(path: Path) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If configuration is invalid or cannot be loaded
    """
    logger.info(f"Loading configuration from {path}")
    if not path.exists():
        raise InvalidConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration: {e}")
        raise InvalidConfigError(f"Failed to parse configuration file: {e}")

    try:
        config = parse_config(data)
    except ConfigError:
        raise
    except Exception as e:
        logger.error(f"Failed to construct configuration objects: {e}")
        raise InvalidConfigError(f"Failed to construct configuration: {e}")

    logger.info(
        f"Configuration loaded successfully: output source '{config.undistort.output_camera_info_source}', "
        f"scale {config.undistort.scale}, every {config.undistort.process_every_nth_frame} frame(s)"
    )
    return config


__all__ = ["AppConfig", "TelemetryConfig", "UndistortConfig", "load_config", "parse_config"]
