"""Pixel format (image encoding) conversion for output frames."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from exceptions import UnsupportedPixelFormatError

# Channel count and dtype per encoding
ENCODINGS: Dict[str, Tuple[int, type]] = {
    "mono8": (1, np.uint8),
    "mono16": (1, np.uint16),
    "bgr8": (3, np.uint8),
    "rgb8": (3, np.uint8),
    "bgra8": (4, np.uint8),
    "rgba8": (4, np.uint8),
}

ALIASES = {
    "GRAY8": "mono8",
    "GRAY16": "mono16",
    "RGB24": "rgb8",
    "BGR24": "bgr8",
}

_COLOR_CONVERSIONS = {
    ("mono8", "bgr8"): cv2.COLOR_GRAY2BGR,
    ("mono8", "rgb8"): cv2.COLOR_GRAY2RGB,
    ("mono8", "bgra8"): cv2.COLOR_GRAY2BGRA,
    ("mono8", "rgba8"): cv2.COLOR_GRAY2RGBA,
    ("bgr8", "mono8"): cv2.COLOR_BGR2GRAY,
    ("bgr8", "rgb8"): cv2.COLOR_BGR2RGB,
    ("bgr8", "bgra8"): cv2.COLOR_BGR2BGRA,
    ("bgr8", "rgba8"): cv2.COLOR_BGR2RGBA,
    ("rgb8", "mono8"): cv2.COLOR_RGB2GRAY,
    ("rgb8", "bgr8"): cv2.COLOR_RGB2BGR,
    ("rgb8", "bgra8"): cv2.COLOR_RGB2BGRA,
    ("rgb8", "rgba8"): cv2.COLOR_RGB2RGBA,
    ("bgra8", "mono8"): cv2.COLOR_BGRA2GRAY,
    ("bgra8", "bgr8"): cv2.COLOR_BGRA2BGR,
    ("bgra8", "rgb8"): cv2.COLOR_BGRA2RGB,
    ("bgra8", "rgba8"): cv2.COLOR_BGRA2RGBA,
    ("rgba8", "mono8"): cv2.COLOR_RGBA2GRAY,
    ("rgba8", "bgr8"): cv2.COLOR_RGBA2BGR,
    ("rgba8", "rgb8"): cv2.COLOR_RGBA2RGB,
    ("rgba8", "bgra8"): cv2.COLOR_RGBA2BGRA,
}


def normalize_encoding(encoding: Optional[str]) -> Optional[str]:
    """Canonical encoding name, or None for "keep the input format"."""
    if not encoding:
        return None
    name = ALIASES.get(encoding, encoding).lower()
    if name not in ENCODINGS:
        raise UnsupportedPixelFormatError(f"Unsupported pixel format: {encoding}")
    return name


def convert_pixel_format(image: np.ndarray, source: str, target: Optional[str]) -> np.ndarray:
    """Convert ``image`` from ``source`` to ``target`` encoding.

    Always returns a new array; the input image is never modified.
    """
    src = normalize_encoding(source)
    dst = normalize_encoding(target)
    if src is None:
        raise UnsupportedPixelFormatError("Source pixel format must be set")
    if dst is None or dst == src:
        return image.copy()

    # Depth changes go through mono8 first.
    if src == "mono16":
        image = (image >> 8).astype(np.uint8)
        src = "mono8"
        if dst == src:
            return image
    if dst == "mono16":
        if src != "mono8":
            image = cv2.cvtColor(image, _COLOR_CONVERSIONS[(src, "mono8")])
        return image.astype(np.uint16) << 8

    return cv2.cvtColor(image, _COLOR_CONVERSIONS[(src, dst)])
