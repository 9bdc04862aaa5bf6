"""Simulated camera producing a lens-distorted checkerboard."""

from __future__ import annotations

import time
from typing import Optional

import numpy as np

from calib.camera_model import CameraModel
from contracts import Frame

from .frame_source import FrameSource


def render_checkerboard(model: CameraModel, square_px: float = 40.0, channels: int = 1) -> np.ndarray:
    """Render a checkerboard as ``model``'s lens would image it.

    The board is square in ideal pinhole pixels, so straight edges come out
    bent by the model's distortion.
    """
    u, v = np.meshgrid(
        np.arange(model.width, dtype=np.float64),
        np.arange(model.height, dtype=np.float64),
    )
    ideal, converged = model.undistort_normalized(model.pixels_to_normalized(np.stack((u, v), axis=-1)))
    x = ideal[..., 0] * model.fx / square_px
    y = ideal[..., 1] * model.fy / square_px
    with np.errstate(invalid="ignore"):
        board = ((np.floor(x) + np.floor(y)) % 2 == 0) & converged
    image = np.where(board, 220, 35).astype(np.uint8)
    if channels == 1:
        return image
    return np.repeat(image[:, :, None], channels, axis=2)


class SimulatedCamera(FrameSource):
    def __init__(
        self,
        model: CameraModel,
        camera_id: str = "sim",
        pixfmt: str = "mono8",
        fps: int = 0,
        max_frames: Optional[int] = None,
    ) -> None:
        self._model = model
        self._camera_id = camera_id
        self._pixfmt = pixfmt
        self._fps = fps
        self._max_frames = max_frames
        self._frame_index = 0
        self._last_frame_time = time.monotonic()
        channels = 1 if pixfmt == "mono8" else 3
        self._image = render_checkerboard(model, channels=channels)

    @property
    def fps(self) -> float:
        return float(self._fps)

    def read_frame(self) -> Optional[Frame]:
        if self._max_frames is not None and self._frame_index >= self._max_frames:
            return None
        if self._fps > 0:
            target_delay = 1.0 / self._fps
            now = time.monotonic()
            elapsed = now - self._last_frame_time
            if elapsed < target_delay:
                time.sleep(target_delay - elapsed)
        self._last_frame_time = time.monotonic()

        frame = Frame(
            camera_id=self._camera_id,
            frame_index=self._frame_index,
            t_capture_monotonic_ns=time.monotonic_ns(),
            image=self._image.copy(),
            width=self._model.width,
            height=self._model.height,
            pixfmt=self._pixfmt,
        )
        self._frame_index += 1
        return frame

    def close(self) -> None:
        return None
