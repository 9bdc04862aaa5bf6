"""OpenCV video file / device frame source."""

from __future__ import annotations

import time
from typing import Optional, Union

import cv2

from contracts import Frame
from exceptions import FrameError
from log_config.logger import get_logger

from .frame_source import FrameSource

logger = get_logger(__name__)


class VideoFileSource(FrameSource):
    """Reads frames from a video file (or device index) with cv2.VideoCapture."""

    def __init__(self, path: Union[str, int], camera_id: str = "camera", grayscale: bool = False) -> None:
        self._camera_id = camera_id
        self._grayscale = grayscale
        self._frame_index = 0
        self._capture: Optional[cv2.VideoCapture] = cv2.VideoCapture(path)
        if not self._capture.isOpened():
            self._capture.release()
            self._capture = None
            raise FrameError(f"Could not open video source {path!r}", camera_id=camera_id)
        logger.info(
            f"Opened video source {path!r} "
            f"({int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))})"
        )

    @property
    def fps(self) -> float:
        if self._capture is None:
            return 0.0
        return float(self._capture.get(cv2.CAP_PROP_FPS) or 0.0)

    def read_frame(self) -> Optional[Frame]:
        if self._capture is None:
            return None
        ok, image = self._capture.read()
        if not ok or image is None:
            return None
        pixfmt = "bgr8"
        if self._grayscale:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
            pixfmt = "mono8"
        frame = Frame(
            camera_id=self._camera_id,
            frame_index=self._frame_index,
            t_capture_monotonic_ns=time.monotonic_ns(),
            image=image,
            width=int(image.shape[1]),
            height=int(image.shape[0]),
            pixfmt=pixfmt,
        )
        self._frame_index += 1
        return frame

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
