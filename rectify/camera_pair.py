"""Input/output camera model pairing and output model synthesis.

The output model is derived from the input model by one of four policies.
AUTO_GENERATED and MATCH_INPUT derive it on every input update; ROS_PARAMS
and CAMERA_INFO expect it to be supplied from outside.
"""

from __future__ import annotations

import copy
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

import numpy as np

from calib.camera_info import distortion_label, model_to_camera_info
from calib.camera_model import CameraModel, DistortionKind
from contracts import IDENTITY_ROTATION, CameraInfo, RigidTransform
from exceptions import InvalidConfigError, InvalidModelError, PolicyMismatchError
from log_config.logger import get_logger, log_performance

logger = get_logger(__name__)

# AUTO_GENERATED sizing parameters
SIZING_BISECTION_STEPS = 48
SIZING_MAX_EXTENT = 1e3  # normalized units, ~89.94 degrees off axis
SIZING_MIN_PERIMETER_SAMPLES = 256
FOLD_TOLERANCE = 1e-6
# AUTO_GENERATED sizing time above which a slow-operation warning is logged
SIZING_SLOW_MS = 1000.0

ValidityFn = Callable[[np.ndarray], np.ndarray]


class OutputPolicy(str, Enum):
    AUTO_GENERATED = "auto_generated"
    MATCH_INPUT = "match_input"
    ROS_PARAMS = "ros_params"
    CAMERA_INFO = "camera_info"

    @property
    def derives_output(self) -> bool:
        return self in (OutputPolicy.AUTO_GENERATED, OutputPolicy.MATCH_INPUT)


@dataclass(frozen=True)
class PolicyParameters:
    scale: float = 1.0
    rename_radtan_plumb_bob: bool = False

    def __post_init__(self) -> None:
        if not math.isfinite(self.scale) or self.scale <= 0.0:
            raise InvalidConfigError(f"Scale must be positive, got {self.scale}")


@dataclass(frozen=True)
class PairSnapshot:
    """Read-only view of a complete camera pair."""

    input_model: CameraModel
    output_model: CameraModel

    @property
    def is_identity(self) -> bool:
        return self.input_model == self.output_model

    def relative_rotation(self) -> np.ndarray:
        """Rotation taking output-camera rays into the input camera frame."""
        return self.input_model.rotation_matrix() @ self.output_model.rotation_matrix().T

    def relative_transform(self, parent_frame: str, child_frame: str) -> RigidTransform:
        """Pose of the output camera expressed in the input camera frame."""
        rotation = self.relative_rotation()
        translation = self.input_model.translation_vector() - rotation @ self.output_model.translation_vector()
        return RigidTransform(
            parent_frame=parent_frame,
            child_frame=child_frame,
            rotation=tuple(tuple(float(v) for v in row) for row in rotation),
            translation=tuple(float(v) for v in translation),
        )


def _validity_fn(input_model: CameraModel, rotation: np.ndarray) -> ValidityFn:
    """Mask of output normalized points that land cleanly inside the input image.

    A point is accepted when its ray is in front of the input camera, projects
    within [0, w-1] x [0, h-1] so bilinear sampling has both neighbours, and
    lies before any fold of the distortion polynomial.
    """
    max_u = input_model.width - 1.0
    max_v = input_model.height - 1.0

    def valid(points: np.ndarray) -> np.ndarray:
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        rays = np.concatenate((points, np.ones((points.shape[0], 1))), axis=1) @ rotation.T
        with np.errstate(all="ignore"):
            pixels, in_front = input_model.project(rays)
            ideal = rays[:, :2] / rays[:, 2:3]
            recovered, converged = input_model.undistort_normalized(input_model.distort_normalized(ideal))
            unfolded = converged & np.all(np.abs(recovered - ideal) < FOLD_TOLERANCE, axis=1)
            inside = (
                (pixels[:, 0] >= 0.0)
                & (pixels[:, 0] <= max_u)
                & (pixels[:, 1] >= 0.0)
                & (pixels[:, 1] <= max_v)
            )
        return in_front & inside & unfolded

    return valid


def _max_extent(valid: ValidityFn, direction: Tuple[float, float]) -> float:
    step = np.asarray(direction, dtype=np.float64)
    lo = 0.0
    hi = 0.5
    while hi < SIZING_MAX_EXTENT and valid(hi * step)[0]:
        lo = hi
        hi *= 2.0
    if hi >= SIZING_MAX_EXTENT:
        return lo
    for _ in range(SIZING_BISECTION_STEPS):
        mid = 0.5 * (lo + hi)
        if valid(mid * step)[0]:
            lo = mid
        else:
            hi = mid
    return lo


def _rectangle_valid(valid: ValidityFn, half_w: float, half_h: float, samples: int) -> bool:
    t = np.linspace(-1.0, 1.0, samples)
    ones = np.ones_like(t)
    perimeter = np.concatenate(
        (
            np.stack((t * half_w, -half_h * ones), axis=1),
            np.stack((t * half_w, half_h * ones), axis=1),
            np.stack((-half_w * ones, t * half_h), axis=1),
            np.stack((half_w * ones, t * half_h), axis=1),
        )
    )
    return bool(valid(perimeter).all())


def _auto_generated_model(input_model: CameraModel, scale: float) -> CameraModel:
    """Pinhole output model covering the largest fully valid centred rectangle.

    The half extents along +-x and +-y are found by bisection on the normalized
    output plane. If the corners of that rectangle still fall outside the input
    image the rectangle is shrunk uniformly, again by bisection, until its
    sampled perimeter is entirely valid.
    """
    start = time.perf_counter()
    focal = scale * 0.5 * (input_model.fx + input_model.fy)
    valid = _validity_fn(input_model, input_model.rotation_matrix())

    if not valid(np.zeros(2))[0]:
        raise InvalidModelError("Output optical axis does not project into the input image")

    half_w = min(_max_extent(valid, (1.0, 0.0)), _max_extent(valid, (-1.0, 0.0)))
    half_h = min(_max_extent(valid, (0.0, 1.0)), _max_extent(valid, (0.0, -1.0)))
    samples = max(SIZING_MIN_PERIMETER_SAMPLES, int(2.0 * max(half_w, half_h) * focal) + 1)

    shrink = 1.0
    if not _rectangle_valid(valid, half_w, half_h, samples):
        lo, hi = 0.0, 1.0
        for _ in range(SIZING_BISECTION_STEPS):
            mid = 0.5 * (lo + hi)
            if _rectangle_valid(valid, mid * half_w, mid * half_h, samples):
                lo = mid
            else:
                hi = mid
        shrink = lo

    width = int(math.floor(2.0 * shrink * half_w * focal))
    height = int(math.floor(2.0 * shrink * half_h * focal))
    if width < 1 or height < 1:
        raise InvalidModelError(
            f"Auto-generated output has no valid area ({width}x{height}); check the input model"
        )

    log_performance(
        "auto-generated output sizing",
        (time.perf_counter() - start) * 1000.0,
        threshold_ms=SIZING_SLOW_MS,
    )
    logger.debug(f"Auto-generated output {width}x{height} f={focal:.3f} shrink={shrink:.4f}")

    return CameraModel(
        width=width,
        height=height,
        fx=focal,
        fy=focal,
        cx=width / 2.0,
        cy=height / 2.0,
        distortion_kind=DistortionKind.NONE,
        distortion_coeffs=(),
        rotation=IDENTITY_ROTATION,
        # Keep the horizontal baseline only.
        translation=(input_model.translation[0], 0.0, 0.0),
    )


def synthesize_output_model(
    input_model: CameraModel,
    policy: OutputPolicy,
    parameters: PolicyParameters,
) -> Optional[CameraModel]:
    """Derive the output model for ``policy``; None when it is supplied externally."""
    if policy is OutputPolicy.AUTO_GENERATED:
        return _auto_generated_model(input_model, parameters.scale)
    if policy is OutputPolicy.MATCH_INPUT:
        return input_model
    return None


class CameraParametersPair:
    """Owns the input model, the output model, and the policy linking them."""

    def __init__(
        self,
        policy: OutputPolicy = OutputPolicy.AUTO_GENERATED,
        parameters: Optional[PolicyParameters] = None,
    ) -> None:
        self._policy = OutputPolicy(policy)
        self._parameters = parameters or PolicyParameters()
        self._input_model: Optional[CameraModel] = None
        self._output_model: Optional[CameraModel] = None

    @property
    def policy(self) -> OutputPolicy:
        return self._policy

    @property
    def parameters(self) -> PolicyParameters:
        return self._parameters

    @property
    def input_model(self) -> Optional[CameraModel]:
        return self._input_model

    @property
    def output_model(self) -> Optional[CameraModel]:
        return self._output_model

    def valid(self) -> bool:
        return self._input_model is not None and self._output_model is not None

    def set_input_model(self, model: CameraModel) -> bool:
        """Install a new input model, re-deriving the output where the policy says so.

        Returns:
            True if either model changed

        Raises:
            InvalidModelError: If the output cannot be derived; the pair is unchanged
        """
        if not isinstance(model, CameraModel):
            raise InvalidModelError(f"Expected CameraModel, got {type(model).__name__}")
        if model == self._input_model:
            return False

        output = self._output_model
        if self._policy.derives_output:
            output = synthesize_output_model(model, self._policy, self._parameters)

        self._input_model = model
        self._output_model = output
        logger.debug(f"Input model updated ({model.width}x{model.height}, {model.distortion_kind.value})")
        return True

    def set_output_model(self, model: CameraModel) -> bool:
        """Install an externally supplied output model.

        Raises:
            PolicyMismatchError: If the policy derives the output itself
        """
        if self._policy.derives_output:
            raise PolicyMismatchError(
                f"Output model cannot be set under the '{self._policy.value}' policy",
                policy=self._policy.value,
            )
        if not isinstance(model, CameraModel):
            raise InvalidModelError(f"Expected CameraModel, got {type(model).__name__}")
        if model == self._output_model:
            return False
        self._output_model = model
        logger.debug(f"Output model updated ({model.width}x{model.height}, {model.distortion_kind.value})")
        return True

    def set_parameters(self, parameters: PolicyParameters) -> bool:
        if parameters == self._parameters:
            return False
        output = self._output_model
        if self._policy.derives_output and self._input_model is not None:
            output = synthesize_output_model(self._input_model, self._policy, parameters)
        self._parameters = parameters
        self._output_model = output
        return True

    def snapshot(self) -> Optional[PairSnapshot]:
        if not self.valid():
            return None
        return PairSnapshot(input_model=self._input_model, output_model=self._output_model)

    def copy(self) -> "CameraParametersPair":
        return copy.copy(self)

    def output_distortion_label(self) -> Optional[str]:
        if self._output_model is None:
            return None
        return distortion_label(self._output_model.distortion_kind, self._parameters.rename_radtan_plumb_bob)

    def output_camera_info(self, frame_id: str) -> Optional[CameraInfo]:
        if self._output_model is None:
            return None
        return model_to_camera_info(
            self._output_model,
            frame_id=frame_id,
            rename_radtan_plumb_bob=self._parameters.rename_radtan_plumb_bob,
        )
