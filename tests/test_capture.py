from pathlib import Path

import cv2
import numpy as np
import pytest

from calib.camera_model import CameraModel, DistortionKind
from capture import SimulatedCamera, VideoFileSource, render_checkerboard
from exceptions import FrameError


def distorted_model() -> CameraModel:
    return CameraModel(320, 240, 250.0, 250.0, 160.0, 120.0, DistortionKind.RADTAN, (-0.3, 0.1, 0.0, 0.0))


def test_simulated_camera_frames() -> None:
    with SimulatedCamera(distorted_model(), camera_id="sim0", max_frames=3) as camera:
        frames = list(camera.frames())

    assert [f.frame_index for f in frames] == [0, 1, 2]
    assert all(f.camera_id == "sim0" for f in frames)
    assert frames[0].image.shape == (240, 320)
    assert frames[0].image is not frames[1].image


def test_frames_limit() -> None:
    camera = SimulatedCamera(distorted_model())
    assert len(list(camera.frames(limit=4))) == 4


def test_color_simulated_camera() -> None:
    camera = SimulatedCamera(distorted_model(), pixfmt="bgr8", max_frames=1)
    frame = camera.read_frame()
    assert frame.image.shape == (240, 320, 3)
    assert frame.pixfmt == "bgr8"


def test_checkerboard_edges_bend_with_distortion() -> None:
    straight = render_checkerboard(CameraModel(320, 240, 250.0, 250.0, 160.0, 120.0))
    bent = render_checkerboard(distorted_model())

    assert set(np.unique(straight)) == {35, 220}
    assert not np.array_equal(straight, bent)
    # The centre is untouched by radial distortion.
    assert straight[120, 160] == bent[120, 160]


def test_video_file_source(tmp_path: Path) -> None:
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    for value in (0, 120, 240):
        writer.write(np.full((48, 64, 3), value, dtype=np.uint8))
    writer.release()

    with VideoFileSource(str(path), camera_id="file", grayscale=True) as source:
        frames = list(source.frames())

    assert len(frames) == 3
    assert frames[0].pixfmt == "mono8"
    assert (frames[0].width, frames[0].height) == (64, 48)
    assert frames[2].frame_index == 2


def test_video_file_source_missing(tmp_path: Path) -> None:
    with pytest.raises(FrameError):
        VideoFileSource(str(tmp_path / "missing.avi"))


def test_source_frame_rates(tmp_path: Path) -> None:
    assert SimulatedCamera(distorted_model(), fps=15).fps == 15.0
    assert SimulatedCamera(distorted_model()).fps == 0.0

    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 12.0, (64, 48))
    writer.write(np.zeros((48, 64, 3), dtype=np.uint8))
    writer.release()
    with VideoFileSource(str(path)) as source:
        assert source.fps == pytest.approx(12.0)
