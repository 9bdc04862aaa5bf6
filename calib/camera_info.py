"""Conversion between CameraModel and external camera descriptors."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import numpy as np

from calib.camera_model import CameraModel, DistortionKind
from contracts import CameraInfo
from exceptions import InvalidModelError

# Names used by the metadata ecosystem for each distortion kind.
_KIND_BY_NAME = {
    "": DistortionKind.NONE,
    "none": DistortionKind.NONE,
    "pinhole": DistortionKind.NONE,
    "radtan": DistortionKind.RADTAN,
    "plumb_bob": DistortionKind.RADTAN,
    "equidistant": DistortionKind.EQUIDISTANT,
    "fisheye": DistortionKind.EQUIDISTANT,
}


def distortion_kind_from_name(name: Optional[str]) -> DistortionKind:
    key = (name or "").strip().lower()
    if key not in _KIND_BY_NAME:
        raise InvalidModelError(f"Unsupported distortion model: {name!r}")
    return _KIND_BY_NAME[key]


def distortion_label(kind: DistortionKind, rename_radtan_plumb_bob: bool = False) -> str:
    """Name under which a distortion kind is reported downstream."""
    if kind is DistortionKind.RADTAN and rename_radtan_plumb_bob:
        return "plumb_bob"
    return kind.value


def _matrix(values: Any, rows: int, cols: int, name: str) -> np.ndarray:
    try:
        matrix = np.asarray(values, dtype=np.float64).reshape(rows, cols)
    except (TypeError, ValueError):
        raise InvalidModelError(f"{name} must have {rows * cols} values")
    return matrix


def model_from_camera_info(info: CameraInfo) -> CameraModel:
    """Build a CameraModel from a camera info descriptor.

    An all-zero R or P is treated as unset (identity rotation, zero translation).
    """
    K = _matrix(info.K, 3, 3, "K")
    R = _matrix(info.R, 3, 3, "R") if len(info.R) else np.zeros((3, 3))
    P = _matrix(info.P, 3, 4, "P") if len(info.P) else np.zeros((3, 4))

    if not R.any():
        R = np.eye(3)

    translation = np.zeros(3)
    if P.any():
        projection = P[:, :3]
        if abs(np.linalg.det(projection)) < 1e-12:
            raise InvalidModelError("Projection matrix P has a singular left 3x3 block")
        translation = np.linalg.solve(projection, P[:, 3])

    kind = distortion_kind_from_name(info.distortion_model)
    coeffs = tuple(info.D)
    # Pinhole descriptors commonly carry an all-zero plumb_bob vector.
    if kind is DistortionKind.NONE and not any(coeffs):
        coeffs = ()

    return CameraModel(
        width=info.width,
        height=info.height,
        fx=K[0, 0],
        fy=K[1, 1],
        cx=K[0, 2],
        cy=K[1, 2],
        distortion_kind=kind,
        distortion_coeffs=coeffs,
        rotation=R,
        translation=translation,
    )


def model_to_camera_info(
    model: CameraModel,
    frame_id: str,
    rename_radtan_plumb_bob: bool = False,
) -> CameraInfo:
    K = model.camera_matrix()
    P = np.hstack((K, (K @ model.translation_vector()).reshape(3, 1)))
    return CameraInfo(
        frame_id=frame_id,
        width=model.width,
        height=model.height,
        distortion_model=distortion_label(model.distortion_kind, rename_radtan_plumb_bob),
        D=tuple(model.distortion_coeffs),
        K=tuple(float(v) for v in K.ravel()),
        R=tuple(float(v) for v in model.rotation_matrix().ravel()),
        P=tuple(float(v) for v in P.ravel()),
    )


def model_from_params(params: Mapping[str, Any]) -> CameraModel:
    """Build a CameraModel from a Kalibr-style parameter mapping.

    Expected keys: ``resolution`` [w, h], ``intrinsics`` [fx, fy, cx, cy],
    ``distortion_model`` and ``distortion_coeffs``. The pose is taken from
    ``T_cn_cnm1`` (4x4) if present, else from ``rotation`` / ``translation``.
    """
    try:
        width, height = params["resolution"]
        fx, fy, cx, cy = params["intrinsics"]
    except KeyError as e:
        raise InvalidModelError(f"Missing camera parameter: {e}")
    except (TypeError, ValueError) as e:
        raise InvalidModelError(f"Malformed camera parameter: {e}")

    rotation = np.eye(3)
    translation = np.zeros(3)
    if params.get("T_cn_cnm1") is not None:
        T = _matrix(params["T_cn_cnm1"], 4, 4, "T_cn_cnm1")
        rotation = T[:3, :3]
        translation = T[:3, 3]
    else:
        if params.get("rotation") is not None:
            rotation = _matrix(params["rotation"], 3, 3, "rotation")
        if params.get("translation") is not None:
            translation = _matrix(params["translation"], 1, 3, "translation").ravel()

    return CameraModel(
        width=width,
        height=height,
        fx=fx,
        fy=fy,
        cx=cx,
        cy=cy,
        distortion_kind=distortion_kind_from_name(params.get("distortion_model", "none")),
        distortion_coeffs=tuple(params.get("distortion_coeffs") or ()),
        rotation=rotation,
        translation=translation,
    )
