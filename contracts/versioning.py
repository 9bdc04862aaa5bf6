"""Schema and application version metadata for serialized contracts."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from .types import CameraInfo, RigidTransform

SCHEMA_VERSION = "1.0.0"
APP_VERSION = "0.3.0"


def make_envelope(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a payload with schema/app versions for serialization."""
    return {
        "schema_version": SCHEMA_VERSION,
        "app_version": APP_VERSION,
        "payload": payload,
    }


def camera_info_to_dict(info: CameraInfo) -> Dict[str, Any]:
    """Serialize a camera info descriptor into plain lists for YAML/JSON."""
    data = asdict(info)
    for key in ("D", "K", "R", "P"):
        data[key] = [float(value) for value in data[key]]
    return make_envelope({"camera_info": data})


def transform_to_dict(transform: RigidTransform) -> Dict[str, Any]:
    return make_envelope(
        {
            "transform": {
                "parent_frame": transform.parent_frame,
                "child_frame": transform.child_frame,
                "rotation": [list(row) for row in transform.rotation],
                "translation": list(transform.translation),
            }
        }
    )
