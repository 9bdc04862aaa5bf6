"""Pipeline runner wiring a frame source, the frame gate, and an output writer."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import cv2
import yaml

from capture import FrameSource, SimulatedCamera, VideoFileSource
from configs.settings import AppConfig, load_config
from contracts import Frame
from contracts.versioning import camera_info_to_dict, transform_to_dict
from exceptions import ConfigError, FrameError, InvalidModelError
from log_config.logger import enable_file_logging, get_logger
from rectify import FrameGate, GateOutput, GateState

logger = get_logger(__name__)

# Frames produced by the simulated camera when --frames is not given
SIMULATED_FRAMES = 100
# Output video rate when the source does not report one
DEFAULT_OUTPUT_FPS = 30.0


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Undistort a camera stream.")
    parser.add_argument("--config", type=Path, default=Path("configs/default.yaml"))
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--video", type=str, help="Video file to undistort.")
    source.add_argument(
        "--simulate",
        action="store_true",
        help="Use a simulated camera rendered from the configured input camera.",
    )
    parser.add_argument("--frames", type=int, default=None, help="Stop after this many input frames.")
    parser.add_argument("--output", type=Path, default=None, help="Write undistorted frames to this video.")
    parser.add_argument(
        "--camera-info-out",
        type=Path,
        default=None,
        help="Write the final output camera info (and transform) as YAML.",
    )
    parser.add_argument("--logs-dir", type=Path, default=None, help="Also log to files in this directory.")
    return parser.parse_args(argv)


def build_source(args: argparse.Namespace, config: AppConfig) -> FrameSource:
    if args.video:
        return VideoFileSource(args.video, camera_id="camera")
    if config.input_camera is None:
        raise ConfigError("A simulated camera needs an input_camera section in the configuration")
    return SimulatedCamera(config.input_camera, camera_id="camera", max_frames=args.frames or SIMULATED_FRAMES)


class VideoSink:
    """Lazily opened cv2.VideoWriter sized from the first frame."""

    def __init__(self, path: Path, fps: float = DEFAULT_OUTPUT_FPS) -> None:
        self._path = path
        self._fps = fps
        self._writer: Optional[cv2.VideoWriter] = None

    def write(self, frame: Frame) -> None:
        image = frame.image
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        if self._writer is None:
            fourcc = cv2.VideoWriter_fourcc(*"MJPG")
            self._writer = cv2.VideoWriter(str(self._path), fourcc, self._fps, (frame.width, frame.height))
            if not self._writer.isOpened():
                raise FrameError(f"Could not open video writer for {self._path}")
            logger.info(f"Writing undistorted video to {self._path} ({frame.width}x{frame.height})")
        self._writer.write(image)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None


def write_camera_info(path: Path, output: GateOutput) -> None:
    document = {"camera_info": camera_info_to_dict(output.camera_info)}
    if output.transform is not None:
        document["transform"] = transform_to_dict(output.transform)
    path.write_text(yaml.safe_dump(document, sort_keys=False))
    logger.info(f"Wrote output camera info to {path}")


def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    gate = FrameGate.from_config(config)
    if gate.state is GateState.WAITING_FOR_INFO:
        logger.warning("No camera info available from configuration; frames are dropped until it arrives")

    sink: Optional[VideoSink] = None
    last_output: Optional[GateOutput] = None
    try:
        with build_source(args, config) as source:
            if args.output:
                sink = VideoSink(args.output, fps=source.fps or DEFAULT_OUTPUT_FPS)
            for frame in source.frames(limit=args.frames):
                try:
                    output = gate.process_frame(frame)
                except (FrameError, InvalidModelError) as e:
                    logger.warning(f"Frame {frame.frame_index} dropped: {e}")
                    continue
                if output is None:
                    continue
                last_output = output
                if output.camera_info_changed:
                    logger.info(
                        f"Output camera: {output.camera_info.width}x{output.camera_info.height} "
                        f"({output.camera_info.distortion_model})"
                    )
                if sink is not None and output.frame is not None:
                    sink.write(output.frame)
    finally:
        if sink is not None:
            sink.close()

    stats = gate.telemetry.snapshot()
    logger.info(
        f"Processed {stats.frames_processed}/{stats.frames_received} frames "
        f"(skipped {stats.frames_skipped}, rejected {stats.frames_rejected}, "
        f"map rebuilds {stats.map_rebuilds}, p95 {stats.latency.p95_ms:.1f}ms)"
    )

    if args.camera_info_out is not None and last_output is not None:
        write_camera_info(args.camera_info_out, last_output)
    return 0


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    if args.logs_dir is not None:
        enable_file_logging(args.logs_dir)
    try:
        return run(args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except InvalidModelError as e:
        logger.error(f"Camera model rejected: {e}")
        return 2
    except FrameError as e:
        logger.error(f"Frame source error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
