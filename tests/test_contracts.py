from contracts import IDENTITY_ROTATION, CameraInfo, Frame, RigidTransform
from contracts.versioning import SCHEMA_VERSION, camera_info_to_dict, transform_to_dict


def test_contracts_instantiation() -> None:
    frame = Frame(
        camera_id="left",
        frame_index=1,
        t_capture_monotonic_ns=123,
        image=None,
        width=640,
        height=480,
        pixfmt="mono8",
    )
    info = CameraInfo(
        frame_id="left",
        width=640,
        height=480,
        distortion_model="radtan",
        D=(-0.3, 0.1, 0.0, 0.0),
        K=(500.0, 0.0, 320.0, 0.0, 500.0, 240.0, 0.0, 0.0, 1.0),
        R=(1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0),
        P=(500.0, 0.0, 320.0, 0.0, 0.0, 500.0, 240.0, 0.0, 0.0, 0.0, 1.0, 0.0),
    )
    transform = RigidTransform(
        parent_frame="left",
        child_frame="output_camera",
        rotation=IDENTITY_ROTATION,
        translation=(0.0, 0.0, 0.0),
    )

    assert frame.camera_id == "left"
    assert info.width == 640
    assert transform.child_frame == "output_camera"


def test_serialized_envelopes() -> None:
    info = CameraInfo(
        frame_id="rect",
        width=2,
        height=1,
        distortion_model="none",
        D=(),
        K=(1.0, 0.0, 1.0, 0.0, 1.0, 0.5, 0.0, 0.0, 1.0),
        R=(1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0),
        P=(1.0, 0.0, 1.0, 0.0, 0.0, 1.0, 0.5, 0.0, 0.0, 0.0, 1.0, 0.0),
    )
    data = camera_info_to_dict(info)

    assert data["schema_version"] == SCHEMA_VERSION
    assert data["payload"]["camera_info"]["K"][0] == 1.0
    assert data["payload"]["camera_info"]["D"] == []

    transform = RigidTransform("cam", "rect", IDENTITY_ROTATION, (-0.1, 0.0, 0.0))
    payload = transform_to_dict(transform)["payload"]["transform"]
    assert payload["rotation"][0] == [1.0, 0.0, 0.0]
    assert payload["translation"] == [-0.1, 0.0, 0.0]
