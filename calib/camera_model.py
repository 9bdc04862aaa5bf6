"""Pinhole camera model with radial-tangential and equidistant distortion.

Three coordinate spaces are used throughout:

1) pixel coordinates ``(u, v)`` of an image, top left pixel is ``(0, 0)``
2) distorted normalized coordinates, ``((u - cx) / fx, (v - cy) / fy)``
3) ideal normalized coordinates ``(X / Z, Y / Z)`` of a ray in the camera frame

``distort_normalized`` maps 3) to 2) in closed form. ``undistort_normalized``
maps 2) back to 3) iteratively and reports which points converged.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Tuple

import numpy as np

from contracts.types import IDENTITY_ROTATION, ZERO_TRANSLATION, Matrix3, Vector3
from exceptions import InvalidModelError

Point = Tuple[float, float]

UNDISTORT_TOLERANCE = 1e-9
UNDISTORT_MAX_ITERATIONS = 30
_SMALL_RADIUS = 1e-12


class DistortionKind(str, Enum):
    NONE = "none"
    RADTAN = "radtan"
    EQUIDISTANT = "equidistant"


# Accepted coefficient counts per kind. RADTAN is (k1, k2, p1, p2[, k3]),
# EQUIDISTANT is (k1, k2, k3, k4).
COEFFICIENT_COUNTS: Dict[DistortionKind, Tuple[int, ...]] = {
    DistortionKind.NONE: (0,),
    DistortionKind.RADTAN: (4, 5),
    DistortionKind.EQUIDISTANT: (4,),
}


@dataclass(frozen=True)
class UndistortResult:
    """Outcome of inverting the distortion for a single point."""

    point: Point
    converged: bool
    residual: float
    iterations: int


def _radtan_terms(coeffs: Sequence[float]) -> Tuple[float, float, float, float, float]:
    k1, k2, p1, p2 = coeffs[:4]
    k3 = coeffs[4] if len(coeffs) > 4 else 0.0
    return k1, k2, p1, p2, k3


def _distort_radtan(x: np.ndarray, y: np.ndarray, coeffs: Sequence[float]):
    k1, k2, p1, p2, k3 = _radtan_terms(coeffs)
    r2 = x * x + y * y
    radial = 1.0 + r2 * (k1 + r2 * (k2 + r2 * k3))
    xd = x * radial + 2.0 * p1 * x * y + p2 * (r2 + 2.0 * x * x)
    yd = y * radial + p1 * (r2 + 2.0 * y * y) + 2.0 * p2 * x * y
    return xd, yd


def _radtan_jacobian(x: np.ndarray, y: np.ndarray, coeffs: Sequence[float]):
    k1, k2, p1, p2, k3 = _radtan_terms(coeffs)
    r2 = x * x + y * y
    radial = 1.0 + r2 * (k1 + r2 * (k2 + r2 * k3))
    d_radial = k1 + r2 * (2.0 * k2 + 3.0 * k3 * r2)
    cross = 2.0 * x * y * d_radial + 2.0 * p1 * x + 2.0 * p2 * y
    dxd_dx = radial + 2.0 * x * x * d_radial + 2.0 * p1 * y + 6.0 * p2 * x
    dyd_dy = radial + 2.0 * y * y * d_radial + 6.0 * p1 * y + 2.0 * p2 * x
    return dxd_dx, cross, cross, dyd_dy


def _equidistant_theta_d(theta: np.ndarray, coeffs: Sequence[float]) -> np.ndarray:
    k1, k2, k3, k4 = coeffs
    t2 = theta * theta
    return theta * (1.0 + t2 * (k1 + t2 * (k2 + t2 * (k3 + t2 * k4))))


def _equidistant_theta_d_derivative(theta: np.ndarray, coeffs: Sequence[float]) -> np.ndarray:
    k1, k2, k3, k4 = coeffs
    t2 = theta * theta
    return 1.0 + t2 * (3.0 * k1 + t2 * (5.0 * k2 + t2 * (7.0 * k3 + t2 * 9.0 * k4)))


def _distort_equidistant(x: np.ndarray, y: np.ndarray, coeffs: Sequence[float]):
    r = np.hypot(x, y)
    theta_d = _equidistant_theta_d(np.arctan(r), coeffs)
    with np.errstate(divide="ignore", invalid="ignore"):
        scale = np.where(r > _SMALL_RADIUS, theta_d / r, 1.0)
    return x * scale, y * scale


def _radtan_unfolded(x, y, xd, yd, coeffs):
    # Past the fold the Jacobian flips sign and roots land across the principal point.
    a, b, c, d = _radtan_jacobian(x, y, coeffs)
    return (a * d - b * c > 0.0) & (x * xd + y * yd >= 0.0)


def _equidistant_unfolded(x, y, coeffs):
    theta = np.arctan(np.hypot(x, y))
    return _equidistant_theta_d_derivative(theta, coeffs) > 0.0


def _invert_radtan(xd, yd, coeffs, max_iterations, tolerance):
    # Newton iteration on the 2x2 system, seeded with the distorted point.
    x = xd.copy()
    y = yd.copy()
    iterations = np.zeros(xd.shape, dtype=np.int32)
    with np.errstate(all="ignore"):
        for _ in range(max_iterations):
            px, py = _distort_radtan(x, y, coeffs)
            ex = px - xd
            ey = py - yd
            active = np.hypot(ex, ey) >= tolerance
            if not active.any():
                break
            a, b, c, d = _radtan_jacobian(x, y, coeffs)
            det = a * d - b * c
            x = np.where(active, x - (d * ex - b * ey) / det, x)
            y = np.where(active, y - (a * ey - c * ex) / det, y)
            iterations += active
    return x, y, iterations


def _invert_equidistant(xd, yd, coeffs, max_iterations, tolerance):
    # 1-D Newton iteration on theta, the angle of the ray to the optical axis.
    theta_d = np.hypot(xd, yd)
    theta = theta_d.copy()
    iterations = np.zeros(xd.shape, dtype=np.int32)
    with np.errstate(all="ignore"):
        for _ in range(max_iterations):
            err = _equidistant_theta_d(theta, coeffs) - theta_d
            active = np.abs(err) >= tolerance
            if not active.any():
                break
            step = err / _equidistant_theta_d_derivative(theta, coeffs)
            theta = np.where(active, theta - step, theta)
            iterations += active
        # Rays at or beyond 90 degrees have no pinhole projection.
        theta = np.where((theta >= 0.0) & (theta < np.pi / 2.0), theta, np.nan)
        scale = np.where(theta_d > _SMALL_RADIUS, np.tan(theta) / theta_d, 1.0)
    return xd * scale, yd * scale, iterations


@dataclass(frozen=True)
class CameraModel:
    """Immutable intrinsics, distortion, and pose of a camera.

    ``rotation`` and ``translation`` map points from a shared reference frame
    into this camera's frame: ``x_cam = R @ x_ref + t``.
    """

    width: int
    height: int
    fx: float
    fy: float
    cx: float
    cy: float
    distortion_kind: DistortionKind = DistortionKind.NONE
    distortion_coeffs: Tuple[float, ...] = ()
    rotation: Matrix3 = IDENTITY_ROTATION
    translation: Vector3 = ZERO_TRANSLATION

    def __post_init__(self) -> None:
        try:
            kind = DistortionKind(self.distortion_kind)
        except ValueError:
            raise InvalidModelError(f"Unknown distortion kind: {self.distortion_kind!r}")

        try:
            width = int(self.width)
            height = int(self.height)
            intrinsics = [float(v) for v in (self.fx, self.fy, self.cx, self.cy)]
            coeffs = tuple(float(c) for c in self.distortion_coeffs)
            rotation = np.asarray(self.rotation, dtype=np.float64)
            translation = np.asarray(self.translation, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidModelError(f"Malformed camera parameters: {e}")

        if width <= 0 or height <= 0 or width != self.width or height != self.height:
            raise InvalidModelError(f"Image size must be positive integers, got {self.width}x{self.height}")
        if not all(np.isfinite(intrinsics)):
            raise InvalidModelError(f"Intrinsics must be finite, got {intrinsics}")
        if intrinsics[0] <= 0.0 or intrinsics[1] <= 0.0:
            raise InvalidModelError(f"Focal lengths must be positive, got fx={intrinsics[0]} fy={intrinsics[1]}")
        if len(coeffs) not in COEFFICIENT_COUNTS[kind]:
            raise InvalidModelError(
                f"Distortion kind '{kind.value}' expects {' or '.join(map(str, COEFFICIENT_COUNTS[kind]))} "
                f"coefficients, got {len(coeffs)}"
            )
        if not all(np.isfinite(coeffs)):
            raise InvalidModelError(f"Distortion coefficients must be finite, got {coeffs}")
        if rotation.shape != (3, 3) or not np.all(np.isfinite(rotation)):
            raise InvalidModelError(f"Rotation must be a finite 3x3 matrix, got shape {rotation.shape}")
        if not np.allclose(rotation @ rotation.T, np.eye(3), atol=1e-6) or np.linalg.det(rotation) < 0.0:
            raise InvalidModelError("Rotation must be a proper orthonormal matrix")
        if translation.shape != (3,) or not np.all(np.isfinite(translation)):
            raise InvalidModelError(f"Translation must be a finite 3-vector, got shape {translation.shape}")

        object.__setattr__(self, "width", width)
        object.__setattr__(self, "height", height)
        object.__setattr__(self, "fx", intrinsics[0])
        object.__setattr__(self, "fy", intrinsics[1])
        object.__setattr__(self, "cx", intrinsics[2])
        object.__setattr__(self, "cy", intrinsics[3])
        object.__setattr__(self, "distortion_kind", kind)
        object.__setattr__(self, "distortion_coeffs", coeffs)
        object.__setattr__(self, "rotation", tuple(tuple(float(v) for v in row) for row in rotation))
        object.__setattr__(self, "translation", tuple(float(v) for v in translation))

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def is_distorted(self) -> bool:
        return self.distortion_kind is not DistortionKind.NONE

    def camera_matrix(self) -> np.ndarray:
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )

    def rotation_matrix(self) -> np.ndarray:
        return np.array(self.rotation, dtype=np.float64)

    def translation_vector(self) -> np.ndarray:
        return np.array(self.translation, dtype=np.float64)

    def contains(self, pixels: np.ndarray) -> np.ndarray:
        """Mask of pixel coordinates that fall inside [0, width) x [0, height)."""
        pixels = np.asarray(pixels, dtype=np.float64)
        u = pixels[..., 0]
        v = pixels[..., 1]
        return (u >= 0.0) & (u < self.width) & (v >= 0.0) & (v < self.height)

    def pixels_to_normalized(self, pixels: np.ndarray) -> np.ndarray:
        pixels = np.asarray(pixels, dtype=np.float64)
        return np.stack(
            ((pixels[..., 0] - self.cx) / self.fx, (pixels[..., 1] - self.cy) / self.fy),
            axis=-1,
        )

    def normalized_to_pixels(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=np.float64)
        return np.stack(
            (points[..., 0] * self.fx + self.cx, points[..., 1] * self.fy + self.cy),
            axis=-1,
        )

    def distort_normalized(self, points: np.ndarray) -> np.ndarray:
        """Apply the forward distortion to ideal normalized coordinates."""
        points = np.asarray(points, dtype=np.float64)
        x = points[..., 0]
        y = points[..., 1]
        if self.distortion_kind is DistortionKind.RADTAN:
            xd, yd = _distort_radtan(x, y, self.distortion_coeffs)
        elif self.distortion_kind is DistortionKind.EQUIDISTANT:
            xd, yd = _distort_equidistant(x, y, self.distortion_coeffs)
        else:
            return points.copy()
        return np.stack((xd, yd), axis=-1)

    def undistort_normalized(
        self,
        points: np.ndarray,
        max_iterations: int = UNDISTORT_MAX_ITERATIONS,
        tolerance: float = UNDISTORT_TOLERANCE,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Invert :meth:`distort_normalized`.

        Args:
            points: Distorted normalized coordinates, shape (..., 2)
            max_iterations: Iteration cap for the solver
            tolerance: Maximum residual of ``distort(result) - points``

        Returns:
            Tuple of (ideal normalized coordinates, converged mask). Points that
            failed to converge are still returned but must not be trusted.
        """
        solution, converged, _, _ = self._invert(points, max_iterations, tolerance)
        return solution, converged

    def _invert(self, points, max_iterations, tolerance):
        target = np.asarray(points, dtype=np.float64)
        if self.distortion_kind is DistortionKind.NONE:
            shape = target.shape[:-1]
            return target.copy(), np.ones(shape, dtype=bool), np.zeros(shape), np.zeros(shape, dtype=np.int32)

        xd = target[..., 0]
        yd = target[..., 1]
        with np.errstate(all="ignore"):
            if self.distortion_kind is DistortionKind.RADTAN:
                x, y, iterations = _invert_radtan(xd, yd, self.distortion_coeffs, max_iterations, tolerance)
                unfolded = _radtan_unfolded(x, y, xd, yd, self.distortion_coeffs)
            else:
                x, y, iterations = _invert_equidistant(xd, yd, self.distortion_coeffs, max_iterations, tolerance)
                unfolded = _equidistant_unfolded(x, y, self.distortion_coeffs)

            solution = np.stack((x, y), axis=-1)
            residual = np.hypot(*np.moveaxis(self.distort_normalized(solution) - target, -1, 0))
            converged = np.isfinite(residual) & (residual < tolerance) & unfolded
        return solution, converged, residual, iterations

    def distort(self, point: Point) -> Point:
        """Map an ideal (pinhole) pixel to where the lens actually images it."""
        normalized = self.pixels_to_normalized(np.asarray(point, dtype=np.float64))
        u, v = self.normalized_to_pixels(self.distort_normalized(normalized))
        return float(u), float(v)

    def undistort(
        self,
        point: Point,
        max_iterations: int = UNDISTORT_MAX_ITERATIONS,
        tolerance: float = UNDISTORT_TOLERANCE,
    ) -> UndistortResult:
        """Map a distorted pixel back to its ideal pinhole location."""
        normalized = self.pixels_to_normalized(np.asarray(point, dtype=np.float64))
        solution, converged, residual, iterations = self._invert(normalized, max_iterations, tolerance)
        u, v = self.normalized_to_pixels(solution)
        return UndistortResult(
            point=(float(u), float(v)),
            converged=bool(converged),
            residual=float(residual),
            iterations=int(iterations),
        )

    def back_project(self, pixels: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Rays (z = 1) in the camera frame for distorted pixels, with converged mask."""
        ideal, converged = self.undistort_normalized(self.pixels_to_normalized(pixels))
        rays = np.concatenate((ideal, np.ones(ideal.shape[:-1] + (1,))), axis=-1)
        return rays, converged

    def project(self, rays: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Distorted pixel coordinates of camera-frame rays, with in-front mask."""
        rays = np.asarray(rays, dtype=np.float64)
        z = rays[..., 2]
        in_front = z > _SMALL_RADIUS
        with np.errstate(divide="ignore", invalid="ignore"):
            ideal = np.stack((rays[..., 0] / z, rays[..., 1] / z), axis=-1)
        pixels = self.normalized_to_pixels(self.distort_normalized(ideal))
        return pixels, in_front & np.all(np.isfinite(pixels), axis=-1)
