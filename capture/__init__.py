"""Capture module."""

from .frame_source import FrameSource
from .simulated_camera import SimulatedCamera, render_checkerboard
from .video_source import VideoFileSource

__all__ = ["FrameSource", "SimulatedCamera", "VideoFileSource", "render_checkerboard"]
