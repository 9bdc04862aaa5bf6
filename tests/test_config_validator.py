"""Unit tests for configuration schema validation."""

import copy
import unittest

from configs.validator import validate_config
from exceptions import ConfigValidationError

VALID_CAMERA = {
    "resolution": [640, 480],
    "intrinsics": [500.0, 500.0, 320.0, 240.0],
    "distortion_model": "radtan",
    "distortion_coeffs": [-0.3, 0.1, 0.0, 0.0],
}


class TestConfigValidator(unittest.TestCase):
    """Test configuration validator."""

    def setUp(self):
        self.config = {
            "undistort": {"input_camera_info_from_params": True},
            "input_camera": copy.deepcopy(VALID_CAMERA),
            "output_camera": None,
        }

    def test_valid_config_passes(self):
        validate_config(self.config)

    def test_defaults_are_filled(self):
        validate_config(self.config)
        self.assertEqual(self.config["undistort"]["output_camera_info_source"], "auto_generated")
        self.assertEqual(self.config["undistort"]["scale"], 1.0)
        self.assertEqual(self.config["undistort"]["rename_radtan_plumb_bob"], False)

    def test_unknown_policy(self):
        self.config["undistort"]["output_camera_info_source"] = "manual"
        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config(self.config)
        self.assertTrue(any("output_camera_info_source" in e for e in ctx.exception.validation_errors))

    def test_scale_must_be_positive(self):
        self.config["undistort"]["scale"] = 0
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_unknown_output_image_type(self):
        self.config["undistort"]["output_image_type"] = "yuv422"
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_image_type_aliases_accepted(self):
        self.config["undistort"]["output_image_type"] = "BGR24"
        validate_config(self.config)

    def test_camera_needs_four_intrinsics(self):
        self.config["input_camera"]["intrinsics"] = [500.0, 500.0, 320.0]
        with self.assertRaises(ConfigValidationError) as ctx:
            validate_config(self.config)
        self.assertTrue(any("input_camera" in e for e in ctx.exception.validation_errors))

    def test_camera_resolution_positive(self):
        self.config["input_camera"]["resolution"] = [0, 480]
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_unknown_distortion_model(self):
        self.config["input_camera"]["distortion_model"] = "rational_polynomial"
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)

    def test_telemetry_threshold_range(self):
        self.config["telemetry"] = {"latency_p95_ms_warn": 0}
        with self.assertRaises(ConfigValidationError):
            validate_config(self.config)


if __name__ == "__main__":
    unittest.main()
