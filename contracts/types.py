"""Core data contracts exchanged between capture, undistortion, and publishers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

Matrix3 = Tuple[Tuple[float, float, float], Tuple[float, float, float], Tuple[float, float, float]]
Vector3 = Tuple[float, float, float]

IDENTITY_ROTATION: Matrix3 = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))
ZERO_TRANSLATION: Vector3 = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class Frame:
    camera_id: str
    frame_index: int
    t_capture_monotonic_ns: int
    image: Any
    width: int
    height: int
    pixfmt: str


@dataclass(frozen=True)
class CameraInfo:
    """Camera metadata in the layout used by the camera_info message.

    K, R are row-major 3x3 and P is row-major 3x4. Translation of the camera
    relative to the reference frame is carried in the last column of P as K*t.
    """

    frame_id: str
    width: int
    height: int
    distortion_model: str
    D: Tuple[float, ...]
    K: Tuple[float, ...]
    R: Tuple[float, ...]
    P: Tuple[float, ...]


@dataclass(frozen=True)
class RigidTransform:
    """Pose of ``child_frame`` expressed in ``parent_frame``."""

    parent_frame: str
    child_frame: str
    rotation: Matrix3
    translation: Vector3
