"""Rectification: camera pairing, remap tables, and frame undistortion."""

from .camera_pair import (
    CameraParametersPair,
    OutputPolicy,
    PairSnapshot,
    PolicyParameters,
    synthesize_output_model,
)
from .engine import UndistortionEngine
from .frame_gate import FrameGate, GateOutput, GateState
from .rect_map import RectificationMap, RectificationMapBuilder
from .rectifier import Rectifier

__all__ = [
    "CameraParametersPair",
    "FrameGate",
    "GateOutput",
    "GateState",
    "OutputPolicy",
    "PairSnapshot",
    "PolicyParameters",
    "RectificationMap",
    "RectificationMapBuilder",
    "Rectifier",
    "UndistortionEngine",
    "synthesize_output_model",
]
