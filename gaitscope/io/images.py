"""OpenCV-backed image decoding and lossy re-encoding.

The host application re-encodes the lossless SEI as JPEG before handing it to
the classifier; these helpers reproduce that step for command-line and HTTP
use.
"""

from __future__ import annotations

import cv2
import numpy as np

from gaitscope.quality.failures import InputError


def decode_image(data: bytes) -> np.ndarray:
    """Decode PNG/JPEG bytes into an ``(H, W, 3)`` RGB uint8 array."""
    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if image is None:
        raise InputError("Could not decode image bytes")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def decode_greyscale(data: bytes) -> np.ndarray:
    """Decode image bytes into an ``(H, W)`` uint8 array without conversion loss."""
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_GRAYSCALE)
    if image is None:
        raise InputError("Could not decode image bytes")
    return image


def reencode_jpeg(data: bytes, quality: int = 100) -> bytes:
    """Re-encode any decodable image as JPEG at ``quality`` (0-100)."""
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise InputError("Could not decode image bytes")
    ok, encoded = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise InputError("JPEG encoding failed")
    return encoded.tobytes()


def resize_bilinear(image: np.ndarray, size: int) -> np.ndarray:
    return cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR)
