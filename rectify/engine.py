"""Remap-based undistortion of frame buffers."""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from contracts import Frame
from exceptions import DimensionMismatchError, InvalidConfigError
from log_config.logger import get_logger
from rectify.camera_pair import PairSnapshot
from rectify.pixel_formats import convert_pixel_format, normalize_encoding
from rectify.rect_map import RectificationMap, RectificationMapBuilder
from rectify.rectifier import Rectifier

logger = get_logger(__name__)

INTERPOLATION_MODES = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "lanczos": cv2.INTER_LANCZOS4,
}

# Value written to output pixels without a source.
INVALID_PIXEL_VALUE = 0


class UndistortionEngine(Rectifier):
    """Applies a cached rectification map to frames.

    The engine owns the single cached map. A map is rebuilt only when the pair
    it was built from no longer equals the requested pair; the old map is
    dropped before the new one is built.
    """

    def __init__(
        self,
        builder: Optional[RectificationMapBuilder] = None,
        interpolation: str = "linear",
        output_encoding: Optional[str] = None,
        undistort_image: bool = True,
    ) -> None:
        if interpolation not in INTERPOLATION_MODES:
            raise InvalidConfigError(f"Unknown interpolation mode: {interpolation}")
        self._builder = builder or RectificationMapBuilder()
        self._interpolation = INTERPOLATION_MODES[interpolation]
        self._output_encoding = normalize_encoding(output_encoding)
        self._undistort_image = undistort_image
        self._map: Optional[RectificationMap] = None
        self._rebuild_count = 0

    @property
    def current_map(self) -> Optional[RectificationMap]:
        return self._map

    @property
    def rebuild_count(self) -> int:
        return self._rebuild_count

    def invalidate(self) -> None:
        self._map = None

    def is_identity(self, snapshot: PairSnapshot) -> bool:
        """True when frames for ``snapshot`` skip the remap entirely."""
        return not self._undistort_image or snapshot.is_identity

    def map_for(self, snapshot: PairSnapshot) -> RectificationMap:
        """Return the cached map for ``snapshot``, rebuilding it if stale."""
        if self._map is not None and self._map.matches(snapshot):
            return self._map
        self._map = None
        self._map = self._builder.build(snapshot)
        self._rebuild_count += 1
        logger.info(
            f"Rectification map rebuilt ({self._map.width}x{self._map.height}, "
            f"{self._map.invalid_count} invalid pixels)"
        )
        return self._map

    def prepare(self, snapshot: PairSnapshot) -> Optional[RectificationMap]:
        """Make sure a map exists for ``snapshot`` unless it takes the identity path."""
        if self.is_identity(snapshot):
            return None
        return self.map_for(snapshot)

    def rectify(self, frame: Frame, snapshot: PairSnapshot) -> Frame:
        if self.is_identity(snapshot):
            _check_dimensions(frame, snapshot.input_model.width, snapshot.input_model.height)
            return self._passthrough(frame)
        return self.process(frame, self.map_for(snapshot))

    def process(self, frame: Frame, rect_map: RectificationMap) -> Frame:
        """Remap ``frame`` through ``rect_map`` into a new output frame.

        Raises:
            DimensionMismatchError: If the frame does not match the map's input model
        """
        _check_dimensions(frame, rect_map.input_model.width, rect_map.input_model.height)
        if rect_map.input_model == rect_map.output_model:
            return self._passthrough(frame)

        image = cv2.remap(
            frame.image,
            rect_map.map_x,
            rect_map.map_y,
            self._interpolation,
            borderMode=cv2.BORDER_REPLICATE,
        )
        image[~rect_map.valid] = INVALID_PIXEL_VALUE
        image = self._convert(image, frame.pixfmt)
        return Frame(
            camera_id=frame.camera_id,
            frame_index=frame.frame_index,
            t_capture_monotonic_ns=frame.t_capture_monotonic_ns,
            image=image,
            width=rect_map.width,
            height=rect_map.height,
            pixfmt=self._output_encoding or frame.pixfmt,
        )

    def _passthrough(self, frame: Frame) -> Frame:
        if self._output_encoding is None:
            image = frame.image.copy()
        else:
            image = convert_pixel_format(frame.image, frame.pixfmt, self._output_encoding)
        return Frame(
            camera_id=frame.camera_id,
            frame_index=frame.frame_index,
            t_capture_monotonic_ns=frame.t_capture_monotonic_ns,
            image=image,
            width=frame.width,
            height=frame.height,
            pixfmt=self._output_encoding or frame.pixfmt,
        )

    def _convert(self, image: np.ndarray, pixfmt: str) -> np.ndarray:
        if self._output_encoding is None:
            return image
        return convert_pixel_format(image, pixfmt, self._output_encoding)


def _check_dimensions(frame: Frame, width: int, height: int) -> None:
    image_size = (int(frame.image.shape[1]), int(frame.image.shape[0]))
    if (frame.width, frame.height) != (width, height) or image_size != (width, height):
        actual = image_size if image_size != (width, height) else (frame.width, frame.height)
        raise DimensionMismatchError(expected=(width, height), actual=actual, camera_id=frame.camera_id)
