"""Custom exception classes for the undistortion engine."""

from __future__ import annotations

from typing import Optional, Tuple


class UndistortError(Exception):
    """Base exception for all undistortion errors."""

    pass


class CameraModelError(UndistortError):
    """Base exception for camera-model errors."""

    pass


class InvalidModelError(CameraModelError):
    """Raised when intrinsics or distortion parameters are malformed."""

    pass


class PolicyMismatchError(UndistortError):
    """Raised when an output model is supplied under a policy that derives it."""

    def __init__(self, message: str, policy: Optional[str] = None):
        self.policy = policy
        super().__init__(message)


class FrameError(UndistortError):
    """Base exception for frame-related errors."""

    def __init__(self, message: str, camera_id: Optional[str] = None):
        self.camera_id = camera_id
        super().__init__(message)


class DimensionMismatchError(FrameError):
    """Raised when a frame does not match the input camera model size."""

    def __init__(
        self,
        expected: Tuple[int, int],
        actual: Tuple[int, int],
        camera_id: Optional[str] = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Frame size {actual[0]}x{actual[1]} does not match camera model "
            f"size {expected[0]}x{expected[1]}",
            camera_id=camera_id,
        )


class UnsupportedPixelFormatError(FrameError):
    """Raised when a pixel format conversion is not supported."""

    pass


class ConfigError(UndistortError):
    """Base exception for configuration errors."""

    pass


class InvalidConfigError(ConfigError):
    """Raised when configuration file is invalid or corrupted."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration fails schema validation."""

    def __init__(self, message: str, validation_errors: Optional[list] = None):
        self.validation_errors = validation_errors or []
        super().__init__(message)
