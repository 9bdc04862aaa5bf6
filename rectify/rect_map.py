"""Dense remap tables from the rectified output canvas into the input image."""

from __future__ import annotations

import time
from dataclasses import dataclass

import numpy as np

from calib.camera_model import CameraModel
from log_config.logger import get_logger, log_performance
from rectify.camera_pair import PairSnapshot

logger = get_logger(__name__)

# Written into the map where no source pixel exists.
INVALID_COORDINATE = -1.0


@dataclass(frozen=True, eq=False)
class RectificationMap:
    """Source coordinate of every output pixel.

    ``map_x`` and ``map_y`` are float32 arrays of shape (height, width) in the
    layout ``cv2.remap`` expects. ``valid`` is False where the source falls
    outside the input image or the inverse distortion did not converge.
    """

    input_model: CameraModel
    output_model: CameraModel
    map_x: np.ndarray
    map_y: np.ndarray
    valid: np.ndarray

    @property
    def width(self) -> int:
        return int(self.map_x.shape[1])

    @property
    def height(self) -> int:
        return int(self.map_x.shape[0])

    @property
    def invalid_count(self) -> int:
        return int(self.valid.size - np.count_nonzero(self.valid))

    def matches(self, snapshot: PairSnapshot) -> bool:
        """True while this map is still correct for ``snapshot``."""
        return (
            self.input_model == snapshot.input_model
            and self.output_model == snapshot.output_model
            and (self.width, self.height) == snapshot.output_model.size
        )


class RectificationMapBuilder:
    def __init__(self, slow_build_ms: float = 250.0) -> None:
        self._slow_build_ms = slow_build_ms

    def source_coordinates(self, snapshot: PairSnapshot, pixels: np.ndarray):
        """Map output pixel coordinates to input pixel coordinates.

        Args:
            snapshot: Camera pair to map through
            pixels: Output pixel coordinates, shape (..., 2)

        Returns:
            Tuple of (input pixel coordinates, validity mask)
        """
        output_model = snapshot.output_model
        input_model = snapshot.input_model

        normalized = output_model.pixels_to_normalized(pixels)
        converged = np.ones(normalized.shape[:-1], dtype=bool)
        if output_model.is_distorted:
            normalized, converged = output_model.undistort_normalized(normalized)

        rays = np.concatenate((normalized, np.ones(normalized.shape[:-1] + (1,))), axis=-1)
        # Rays are directions, so translation between the frames drops out.
        rays = rays @ snapshot.relative_rotation().T

        with np.errstate(all="ignore"):
            source, in_front = input_model.project(rays)
        valid = converged & in_front & input_model.contains(source)
        return source, valid

    def build(self, snapshot: PairSnapshot) -> RectificationMap:
        start = time.perf_counter()
        output_model = snapshot.output_model

        u, v = np.meshgrid(
            np.arange(output_model.width, dtype=np.float64),
            np.arange(output_model.height, dtype=np.float64),
        )
        source, valid = self.source_coordinates(snapshot, np.stack((u, v), axis=-1))

        map_x = np.where(valid, source[..., 0], INVALID_COORDINATE).astype(np.float32)
        map_y = np.where(valid, source[..., 1], INVALID_COORDINATE).astype(np.float32)

        rect_map = RectificationMap(
            input_model=snapshot.input_model,
            output_model=output_model,
            map_x=map_x,
            map_y=map_y,
            valid=valid,
        )
        log_performance(
            f"rectification map build {output_model.width}x{output_model.height}",
            (time.perf_counter() - start) * 1000.0,
            threshold_ms=self._slow_build_ms,
        )
        if rect_map.invalid_count:
            logger.debug(f"Rectification map has {rect_map.invalid_count} invalid pixels")
        return rect_map
