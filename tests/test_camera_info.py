"""Tests for camera info and parameter conversion."""

from __future__ import annotations

import numpy as np
import pytest

from calib.camera_info import (
    distortion_kind_from_name,
    model_from_camera_info,
    model_from_params,
    model_to_camera_info,
)
from calib.camera_model import CameraModel, DistortionKind
from contracts import CameraInfo
from exceptions import InvalidModelError


@pytest.mark.parametrize(
    "name, kind",
    [
        ("radtan", DistortionKind.RADTAN),
        ("plumb_bob", DistortionKind.RADTAN),
        ("equidistant", DistortionKind.EQUIDISTANT),
        ("fisheye", DistortionKind.EQUIDISTANT),
        ("", DistortionKind.NONE),
        (None, DistortionKind.NONE),
        ("Pinhole", DistortionKind.NONE),
    ],
)
def test_distortion_names(name, kind):
    assert distortion_kind_from_name(name) is kind


def test_unknown_distortion_name():
    with pytest.raises(InvalidModelError, match="rational_polynomial"):
        distortion_kind_from_name("rational_polynomial")


def test_camera_info_round_trip():
    model = CameraModel(
        752, 480, 458.6, 457.3, 367.2, 248.4, DistortionKind.EQUIDISTANT,
        (-0.01, 0.02, -0.015, 0.004), translation=(-0.11, 0.002, 0.0),
    )
    info = model_to_camera_info(model, frame_id="cam1")

    assert info.frame_id == "cam1"
    assert info.distortion_model == "equidistant"
    assert len(info.K) == 9 and len(info.R) == 9 and len(info.P) == 12
    assert info.P[3] == pytest.approx(458.6 * -0.11 + 367.2 * 0.0)

    restored = model_from_camera_info(info)
    assert restored.size == model.size
    assert restored.distortion_coeffs == model.distortion_coeffs
    np.testing.assert_allclose(restored.translation, model.translation, atol=1e-12)


def test_zero_rotation_and_projection_mean_unset():
    info = CameraInfo(
        frame_id="cam0",
        width=640,
        height=480,
        distortion_model="plumb_bob",
        D=(-0.3, 0.1, 0.0, 0.0, 0.0),
        K=(500.0, 0.0, 320.0, 0.0, 500.0, 240.0, 0.0, 0.0, 1.0),
        R=(0.0,) * 9,
        P=(0.0,) * 12,
    )
    model = model_from_camera_info(info)

    assert model.distortion_kind is DistortionKind.RADTAN
    np.testing.assert_array_equal(model.rotation_matrix(), np.eye(3))
    np.testing.assert_array_equal(model.translation_vector(), np.zeros(3))


def test_zero_plumb_bob_vector_on_pinhole_dropped():
    info = CameraInfo(
        frame_id="cam0",
        width=640,
        height=480,
        distortion_model="none",
        D=(0.0, 0.0, 0.0, 0.0, 0.0),
        K=(500.0, 0.0, 320.0, 0.0, 500.0, 240.0, 0.0, 0.0, 1.0),
        R=(),
        P=(),
    )
    assert model_from_camera_info(info).distortion_coeffs == ()


def test_malformed_camera_matrix():
    info = CameraInfo("cam0", 640, 480, "none", (), (500.0, 0.0, 320.0), (), ())
    with pytest.raises(InvalidModelError, match="K"):
        model_from_camera_info(info)


def test_rename_applies_to_radtan_only():
    model = CameraModel(640, 480, 500.0, 500.0, 320.0, 240.0, DistortionKind.RADTAN, (-0.3, 0.1, 0.0, 0.0))
    assert model_to_camera_info(model, "cam0", rename_radtan_plumb_bob=True).distortion_model == "plumb_bob"
    assert model_to_camera_info(model, "cam0").distortion_model == "radtan"


class TestParams:
    def test_kalibr_layout(self):
        model = model_from_params(
            {
                "resolution": [752, 480],
                "intrinsics": [458.6, 457.3, 367.2, 248.4],
                "distortion_model": "radtan",
                "distortion_coeffs": [-0.28, 0.07, 0.0002, 0.00002],
                "T_cn_cnm1": [[1, 0, 0, -0.11], [0, 1, 0, 0.0004], [0, 0, 1, -0.0009], [0, 0, 0, 1]],
            }
        )
        assert model.size == (752, 480)
        assert model.cx == 367.2
        assert model.translation == (-0.11, 0.0004, -0.0009)

    def test_explicit_pose(self):
        model = model_from_params(
            {
                "resolution": [640, 480],
                "intrinsics": [500, 500, 320, 240],
                "rotation": [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
                "translation": [0.1, 0.0, 0.0],
            }
        )
        assert model.distortion_kind is DistortionKind.NONE
        assert model.translation == (0.1, 0.0, 0.0)

    def test_missing_key(self):
        with pytest.raises(InvalidModelError, match="intrinsics"):
            model_from_params({"resolution": [640, 480]})
