"""Shared data contracts for the undistortion pipeline."""

from .types import (
    IDENTITY_ROTATION,
    ZERO_TRANSLATION,
    CameraInfo,
    Frame,
    RigidTransform,
)

__all__ = [
    "IDENTITY_ROTATION",
    "ZERO_TRANSLATION",
    "CameraInfo",
    "Frame",
    "RigidTransform",
]
