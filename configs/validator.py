"""Configuration validation using JSON Schema."""

from __future__ import annotations

from typing import Any, Dict

import jsonschema
from jsonschema import Draft7Validator, validators

from exceptions import ConfigValidationError
from log_config.logger import get_logger

logger = get_logger(__name__)

_DISTORTION_MODELS = ["none", "pinhole", "radtan", "plumb_bob", "equidistant", "fisheye"]

CAMERA_SCHEMA = {
    "type": "object",
    "required": ["resolution", "intrinsics"],
    "properties": {
        "resolution": {
            "type": "array",
            "items": {"type": "integer", "minimum": 1},
            "minItems": 2,
            "maxItems": 2,
        },
        "intrinsics": {
            "type": "array",
            "items": {"type": "number"},
            "minItems": 4,
            "maxItems": 4,
        },
        "distortion_model": {"type": "string", "enum": _DISTORTION_MODELS, "default": "none"},
        "distortion_coeffs": {
            "type": "array",
            "items": {"type": "number"},
            "maxItems": 5,
            "default": [],
        },
        "T_cn_cnm1": {
            "type": ["array", "null"],
            "items": {"type": "array", "items": {"type": "number"}, "minItems": 4, "maxItems": 4},
            "minItems": 4,
            "maxItems": 4,
        },
        "rotation": {
            "type": ["array", "null"],
            "items": {"type": "array", "items": {"type": "number"}, "minItems": 3, "maxItems": 3},
            "minItems": 3,
            "maxItems": 3,
        },
        "translation": {
            "type": ["array", "null"],
            "items": {"type": "number"},
            "minItems": 3,
            "maxItems": 3,
        },
    },
}

# JSON Schema for default.yaml configuration
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["undistort"],
    "properties": {
        "undistort": {
            "type": "object",
            "properties": {
                "input_camera_info_from_params": {"type": "boolean", "default": False},
                "output_camera_info_source": {
                    "type": "string",
                    "enum": ["auto_generated", "match_input", "ros_params", "camera_info"],
                    "default": "auto_generated",
                },
                "process_image": {"type": "boolean", "default": True},
                "undistort_image": {"type": "boolean", "default": True},
                "process_every_nth_frame": {"type": "integer", "default": 1},
                "output_image_type": {
                    "type": "string",
                    "enum": ["", "mono8", "mono16", "bgr8", "rgb8", "bgra8", "rgba8", "GRAY8", "GRAY16", "RGB24", "BGR24"],
                    "default": "",
                },
                "scale": {"type": "number", "exclusiveMinimum": 0, "maximum": 16, "default": 1.0},
                "publish_tf": {"type": "boolean", "default": True},
                "output_frame": {"type": "string", "minLength": 1, "default": "output_camera"},
                "rename_radtan_plumb_bob": {"type": "boolean", "default": False},
                "interpolation": {
                    "type": "string",
                    "enum": ["nearest", "linear", "cubic", "lanczos"],
                    "default": "linear",
                },
            },
        },
        "input_camera": {"oneOf": [{"type": "null"}, CAMERA_SCHEMA]},
        "output_camera": {"oneOf": [{"type": "null"}, CAMERA_SCHEMA]},
        "telemetry": {
            "type": "object",
            "properties": {
                "latency_p95_ms_warn": {"type": "number", "minimum": 1, "maximum": 5000, "default": 50},
            },
        },
    },
}


def extend_with_default(validator_class):
    """Extend JSON Schema validator to set default values."""
    validate_properties = validator_class.VALIDATORS["properties"]

    def set_defaults(validator, properties, instance, schema):
        for prop, subschema in properties.items():
            if "default" in subschema:
                instance.setdefault(prop, subschema["default"])

        for error in validate_properties(validator, properties, instance, schema):
            yield error

    return validators.extend(validator_class, {"properties": set_defaults})


DefaultValidatingValidator = extend_with_default(Draft7Validator)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate configuration against JSON Schema, filling in defaults.

    Args:
        config: Configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    try:
        validator = DefaultValidatingValidator(CONFIG_SCHEMA)
        errors = list(validator.iter_errors(config))

        if errors:
            error_messages = []
            for error in errors:
                path = " -> ".join(str(p) for p in error.path) if error.path else "root"
                error_messages.append(f"{path}: {error.message}")

            logger.error(f"Configuration validation failed with {len(errors)} errors")
            for msg in error_messages:
                logger.error(f"  - {msg}")

            raise ConfigValidationError(
                f"Configuration validation failed with {len(errors)} error(s). See logs for details.",
                validation_errors=error_messages,
            )

        logger.info("Configuration validation passed")

    except jsonschema.exceptions.SchemaError as e:
        logger.error(f"Invalid schema: {e}")
        raise ConfigValidationError(f"Invalid schema definition: {e}")


__all__ = ["validate_config", "CONFIG_SCHEMA", "CAMERA_SCHEMA"]
