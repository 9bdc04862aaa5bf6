"""Camera models and camera descriptor conversion."""

from .camera_info import (
    distortion_kind_from_name,
    distortion_label,
    model_from_camera_info,
    model_from_params,
    model_to_camera_info,
)
from .camera_model import (
    COEFFICIENT_COUNTS,
    CameraModel,
    DistortionKind,
    UndistortResult,
)

__all__ = [
    "COEFFICIENT_COUNTS",
    "CameraModel",
    "DistortionKind",
    "UndistortResult",
    "distortion_kind_from_name",
    "distortion_label",
    "model_from_camera_info",
    "model_from_params",
    "model_to_camera_info",
]
