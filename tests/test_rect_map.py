"""Tests for rectification map construction."""

from __future__ import annotations

import numpy as np
import pytest

from calib.camera_model import CameraModel, DistortionKind
from rectify.camera_pair import CameraParametersPair, OutputPolicy, PairSnapshot
from rectify.rect_map import INVALID_COORDINATE, RectificationMapBuilder


def radtan_model() -> CameraModel:
    return CameraModel(640, 480, 500.0, 500.0, 320.0, 240.0, DistortionKind.RADTAN, (-0.3, 0.1, 0.0, 0.0))


def equidistant_model() -> CameraModel:
    return CameraModel(
        752, 480, 460.0, 458.0, 370.0, 245.0, DistortionKind.EQUIDISTANT, (-0.01, 0.02, -0.015, 0.004)
    )


def auto_snapshot(model: CameraModel) -> PairSnapshot:
    pair = CameraParametersPair(OutputPolicy.AUTO_GENERATED)
    pair.set_input_model(model)
    return pair.snapshot()


@pytest.fixture
def builder() -> RectificationMapBuilder:
    return RectificationMapBuilder()


@pytest.mark.parametrize("factory", [radtan_model, equidistant_model])
def test_auto_generated_has_no_invalid_pixels(builder, factory):
    snapshot = auto_snapshot(factory())
    rect_map = builder.build(snapshot)

    assert rect_map.invalid_count == 0
    assert rect_map.valid.all()
    assert rect_map.map_x.min() >= 0.0 and rect_map.map_x.max() < snapshot.input_model.width
    assert rect_map.map_y.min() >= 0.0 and rect_map.map_y.max() < snapshot.input_model.height


def test_map_layout(builder):
    snapshot = auto_snapshot(radtan_model())
    rect_map = builder.build(snapshot)

    shape = (snapshot.output_model.height, snapshot.output_model.width)
    assert rect_map.map_x.shape == shape
    assert rect_map.map_y.shape == shape
    assert rect_map.valid.shape == shape
    assert rect_map.map_x.dtype == np.float32
    assert (rect_map.width, rect_map.height) == snapshot.output_model.size


def test_rebuild_is_bit_identical(builder):
    snapshot = auto_snapshot(radtan_model())
    first = builder.build(snapshot)
    second = RectificationMapBuilder().build(auto_snapshot(radtan_model()))

    assert first.map_x.tobytes() == second.map_x.tobytes()
    assert first.map_y.tobytes() == second.map_y.tobytes()
    np.testing.assert_array_equal(first.valid, second.valid)


def test_matches_by_value(builder):
    snapshot = auto_snapshot(radtan_model())
    rect_map = builder.build(snapshot)

    assert rect_map.matches(auto_snapshot(radtan_model()))
    assert not rect_map.matches(PairSnapshot(radtan_model(), radtan_model()))


def test_oversized_output_marks_out_of_bounds_invalid(builder):
    output = CameraModel(1280, 960, 500.0, 500.0, 640.0, 480.0)
    rect_map = builder.build(PairSnapshot(radtan_model(), output))

    assert rect_map.invalid_count > 0
    assert not rect_map.valid[0, 0]
    assert rect_map.valid[480, 640]
    assert rect_map.map_x[0, 0] == INVALID_COORDINATE
    assert rect_map.map_y[0, 0] == INVALID_COORDINATE


def test_identity_pair_maps_pixels_onto_themselves(builder):
    model = radtan_model()
    rect_map = builder.build(PairSnapshot(model, model))

    np.testing.assert_allclose(rect_map.map_x[100, 200], 200.0, atol=1e-3)
    np.testing.assert_allclose(rect_map.map_y[100, 200], 100.0, atol=1e-3)
    assert rect_map.valid[100, 200]


def test_distorted_output_uses_inverse_distortion(builder):
    model = equidistant_model()
    output = CameraModel(752, 480, 460.0, 458.0, 370.0, 245.0)
    pixels = np.array([[10.0, 15.0], [700.0, 400.0]])

    source, valid = builder.source_coordinates(PairSnapshot(model, output), pixels)
    assert valid.all()
    for pixel, mapped in zip(pixels, source):
        np.testing.assert_allclose(mapped, model.distort(tuple(pixel)), atol=1e-9)

    back, back_valid = builder.source_coordinates(PairSnapshot(output, model), source)
    assert back_valid.all()
    np.testing.assert_allclose(back, pixels, atol=1e-6)


def test_translation_does_not_shift_map(builder):
    model = radtan_model()
    shifted = CameraModel(640, 480, 500.0, 500.0, 320.0, 240.0, translation=(0.2, 0.0, 0.0))
    plain = CameraModel(640, 480, 500.0, 500.0, 320.0, 240.0)

    a = builder.build(PairSnapshot(model, shifted))
    b = builder.build(PairSnapshot(model, plain))
    np.testing.assert_array_equal(a.map_x, b.map_x)


def test_pixels_past_distortion_fold_are_invalid(builder):
    input_model = CameraModel(640, 480, 150.0, 150.0, 320.0, 240.0)
    output_model = CameraModel(640, 480, 150.0, 150.0, 320.0, 240.0, DistortionKind.RADTAN, (-0.6, 0.0, 0.0, 0.0))
    rect_map = builder.build(PairSnapshot(input_model, output_model))

    assert not rect_map.valid[0, 0]
    assert rect_map.map_x[0, 0] == INVALID_COORDINATE
    assert rect_map.valid[240, 320]

    # Every valid source stays on the same side of the principal point.
    v, u = np.nonzero(rect_map.valid)
    du = u - 320.0
    dv = v - 240.0
    assert (du * (rect_map.map_x[v, u] - 320.0) + dv * (rect_map.map_y[v, u] - 240.0) >= -1e-3).all()
