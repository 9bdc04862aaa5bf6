"""Per-stream orchestration of camera metadata and frame undistortion.

The gate is the single owner of the camera pair. Metadata updates and frames
are serialized through one lock, so a frame is always remapped with the pair
that was current when it arrived and never with a half-applied update.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from calib.camera_info import model_from_camera_info
from calib.camera_model import CameraModel
from configs.settings import AppConfig, UndistortConfig
from contracts import CameraInfo, Frame, RigidTransform
from exceptions import DimensionMismatchError, InvalidModelError, PolicyMismatchError
from log_config.logger import get_logger
from rectify.camera_pair import CameraParametersPair, OutputPolicy, PairSnapshot, PolicyParameters
from rectify.engine import UndistortionEngine
from telemetry.monitor import TelemetryMonitor

logger = get_logger(__name__)

# Processed frames between latency checks
LATENCY_CHECK_INTERVAL = 100


class GateState(str, Enum):
    WAITING_FOR_INFO = "waiting_for_info"
    READY = "ready"
    STALE = "stale"


@dataclass(frozen=True)
class GateOutput:
    """Everything emitted for one processed frame."""

    frame: Optional[Frame]
    camera_info: CameraInfo
    camera_info_changed: bool
    transform: Optional[RigidTransform]


class FrameGate:
    def __init__(
        self,
        config: UndistortConfig,
        engine: Optional[UndistortionEngine] = None,
        telemetry: Optional[TelemetryMonitor] = None,
        latency_p95_ms_warn: float = 50.0,
    ) -> None:
        self._config = config
        self._pair = CameraParametersPair(
            OutputPolicy(config.output_camera_info_source),
            PolicyParameters(scale=config.scale, rename_radtan_plumb_bob=config.rename_radtan_plumb_bob),
        )
        self._engine = engine or UndistortionEngine(
            interpolation=config.interpolation,
            output_encoding=config.output_image_type,
            undistort_image=config.undistort_image,
        )
        self._telemetry = telemetry or TelemetryMonitor()
        self._latency_p95_ms_warn = latency_p95_ms_warn
        self._skip_factor = max(1, config.process_every_nth_frame)

        self._state = GateState.WAITING_FOR_INFO
        self._pending_pair: Optional[CameraParametersPair] = None
        self._frame_counter = 0
        self._last_camera_info: Optional[CameraInfo] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, app_config: AppConfig, **kwargs) -> "FrameGate":
        """Build a gate and install any camera models given in the configuration."""
        gate = cls(
            app_config.undistort,
            latency_p95_ms_warn=app_config.telemetry.latency_p95_ms_warn,
            **kwargs,
        )
        policy = OutputPolicy(app_config.undistort.output_camera_info_source)
        if policy is OutputPolicy.ROS_PARAMS and app_config.output_camera is not None:
            gate.update_output_model(app_config.output_camera)
        if app_config.undistort.input_camera_info_from_params and app_config.input_camera is not None:
            gate.update_input_model(app_config.input_camera)
        return gate

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def telemetry(self) -> TelemetryMonitor:
        return self._telemetry

    @property
    def engine(self) -> UndistortionEngine:
        return self._engine

    def snapshot(self) -> Optional[PairSnapshot]:
        """Read-only view of the pair frames are currently processed with."""
        with self._lock:
            return self._pair.snapshot()

    def update_input_model(self, model: CameraModel) -> GateState:
        with self._lock:
            self._receive(input_model=model)
            return self._state

    def update_output_model(self, model: CameraModel) -> GateState:
        with self._lock:
            self._receive(output_model=model)
            return self._state

    def update_camera_info(self, info: CameraInfo) -> GateState:
        return self.update_input_model(model_from_camera_info(info))

    def update_output_camera_info(self, info: CameraInfo) -> GateState:
        return self.update_output_model(model_from_camera_info(info))

    def process_frame(self, frame: Frame, input_model: Optional[CameraModel] = None) -> Optional[GateOutput]:
        """Handle one incoming frame, optionally paired with its camera model.

        Returns:
            GateOutput, or None if the frame was skipped or no camera info is known yet

        Raises:
            InvalidModelError: If the paired model is rejected; the frame is dropped
            DimensionMismatchError: If the frame does not match the input model
        """
        with self._lock:
            index = self._frame_counter
            self._frame_counter += 1
            self._telemetry.record_received()

            if input_model is not None:
                self._receive(input_model=input_model)

            if index % self._skip_factor != 0:
                self._telemetry.record_skipped()
                logger.debug(f"Skipping frame {index} (every {self._skip_factor})")
                return None

            if self._state is GateState.WAITING_FOR_INFO:
                self._telemetry.record_skipped()
                logger.debug(f"Dropping frame {index}: waiting for camera info")
                return None

            if self._state is GateState.STALE:
                self._apply_pending()

            return self._emit(frame)

    def _receive(self, input_model: Optional[CameraModel] = None, output_model: Optional[CameraModel] = None) -> None:
        base = self._pending_pair or self._pair
        candidate = base.copy()
        try:
            changed = False
            if input_model is not None:
                changed |= candidate.set_input_model(input_model)
            if output_model is not None:
                changed |= candidate.set_output_model(output_model)
        except (InvalidModelError, PolicyMismatchError) as e:
            logger.warning(f"Rejected camera update in state {self._state.value}: {e}")
            raise

        if not changed:
            return

        if self._state is GateState.WAITING_FOR_INFO:
            self._pair = candidate
            if candidate.valid():
                self._activate()
            return

        self._pending_pair = candidate
        if self._state is not GateState.STALE:
            logger.info("Camera model changed, rectification map marked stale")
        self._state = GateState.STALE

    def _activate(self) -> None:
        snapshot = self._pair.snapshot()
        self._prepare_map(snapshot)
        self._state = GateState.READY
        logger.info(
            f"Camera pair ready: input {snapshot.input_model.width}x{snapshot.input_model.height} -> "
            f"output {snapshot.output_model.width}x{snapshot.output_model.height} "
            f"({self._pair.policy.value})"
        )

    def _apply_pending(self) -> None:
        if self._pending_pair is not None:
            self._pair = self._pending_pair
            self._pending_pair = None
        self._activate()

    def _prepare_map(self, snapshot: PairSnapshot) -> None:
        rebuilds = self._engine.rebuild_count
        self._engine.prepare(snapshot)
        if self._engine.rebuild_count != rebuilds:
            self._telemetry.record_map_rebuild()

    def _emit(self, frame: Frame) -> GateOutput:
        start = time.perf_counter()
        snapshot = self._pair.snapshot()

        output_frame = None
        if self._config.process_image:
            try:
                output_frame = self._engine.rectify(frame, snapshot)
            except DimensionMismatchError as e:
                self._telemetry.record_rejected()
                logger.warning(f"Dropping frame {frame.frame_index} from {frame.camera_id}: {e}")
                raise
            output_frame = replace(output_frame, camera_id=self._config.output_frame)

        camera_info = self._pair.output_camera_info(self._config.output_frame)
        changed = camera_info != self._last_camera_info
        self._last_camera_info = camera_info

        transform = None
        if self._config.publish_tf:
            transform = snapshot.relative_transform(frame.camera_id, self._config.output_frame)

        self._telemetry.record_processed((time.perf_counter() - start) * 1000.0)
        self._check_latency()
        return GateOutput(
            frame=output_frame,
            camera_info=camera_info,
            camera_info_changed=changed,
            transform=transform,
        )

    def _check_latency(self) -> None:
        if self._telemetry.frames_processed % LATENCY_CHECK_INTERVAL != 0:
            return
        stats = self._telemetry.summarize()
        if stats.p95_ms > self._latency_p95_ms_warn:
            logger.warning(
                f"Undistortion latency p95 {stats.p95_ms:.1f}ms exceeds {self._latency_p95_ms_warn:.1f}ms"
            )
