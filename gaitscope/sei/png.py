"""Minimal lossless PNG writer for 8-bit greyscale buffers.

The IDAT payload is a zlib stream made of *stored* deflate blocks, so no
compressor is involved: the file is larger than a compressed PNG but valid
for any standards-compliant reader. Only the checksums come from ``zlib``.
"""

from __future__ import annotations

import struct
import zlib
from typing import Optional, Union

import numpy as np

from gaitscope.quality.failures import EncodingError

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
MAX_STORED_BLOCK = 0xFFFF

# zlib header: deflate, 32K window, no preset dictionary, fastest level.
ZLIB_HEADER = b"\x78\x01"

BIT_DEPTH = 8
COLOR_TYPE_GREYSCALE = 0


def png_chunk(chunk_type: bytes, payload: bytes) -> bytes:
    """Length + type + payload + CRC-32 over type and payload."""
    crc = zlib.crc32(chunk_type + payload) & 0xFFFFFFFF
    return struct.pack(">I", len(payload)) + chunk_type + payload + struct.pack(">I", crc)


def stored_zlib_stream(raw: bytes) -> bytes:
    """Wrap ``raw`` in a zlib stream of uncompressed deflate blocks."""
    out = bytearray(ZLIB_HEADER)
    blocks = range(0, max(len(raw), 1), MAX_STORED_BLOCK)
    last_start = blocks[-1]
    for start in blocks:
        block = raw[start : start + MAX_STORED_BLOCK]
        length = len(block)
        out.append(1 if start == last_start else 0)
        out += struct.pack("<HH", length, length ^ 0xFFFF)
        out += block
    out += struct.pack(">I", zlib.adler32(raw) & 0xFFFFFFFF)
    return bytes(out)


def _as_pixel_grid(
    pixels: Union[np.ndarray, bytes, bytearray], width: Optional[int], height: Optional[int]
) -> np.ndarray:
    if isinstance(pixels, (bytes, bytearray)):
        if width is None or height is None:
            raise EncodingError("width and height are required for a flat byte buffer")
        if len(pixels) != width * height:
            raise EncodingError(
                f"buffer holds {len(pixels)} bytes, expected {width}x{height}={width * height}"
            )
        return np.frombuffer(bytes(pixels), dtype=np.uint8).reshape(height, width)

    grid = np.asarray(pixels)
    if grid.dtype != np.uint8:
        raise EncodingError(f"expected uint8 pixels, got {grid.dtype}")
    if grid.ndim == 1 and width is not None and height is not None:
        if grid.size != width * height:
            raise EncodingError(f"buffer holds {grid.size} pixels, expected {width * height}")
        grid = grid.reshape(height, width)
    if grid.ndim != 2:
        raise EncodingError(f"expected a 2D greyscale grid, got shape {grid.shape}")
    return grid


def encode_greyscale_png(
    pixels: Union[np.ndarray, bytes, bytearray],
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> bytes:
    """Encode 8-bit greyscale pixels (row-major) as PNG bytes.

    Args:
        pixels: ``(height, width)`` uint8 array, or a flat buffer together
            with ``width`` and ``height``.
        width: Image width for flat buffers.
        height: Image height for flat buffers.

    Raises:
        EncodingError: if the buffer does not describe a non-empty 8-bit image.
    """

    grid = _as_pixel_grid(pixels, width, height)
    rows, cols = grid.shape
    if rows == 0 or cols == 0:
        raise EncodingError("cannot encode an empty image")

    header = struct.pack(">IIBBBBB", cols, rows, BIT_DEPTH, COLOR_TYPE_GREYSCALE, 0, 0, 0)
    # Filter type 0 (None) in front of every scanline.
    scanlines = np.hstack((np.zeros((rows, 1), dtype=np.uint8), grid)).tobytes()

    return b"".join(
        (
            PNG_SIGNATURE,
            png_chunk(b"IHDR", header),
            png_chunk(b"IDAT", stored_zlib_stream(scanlines)),
            png_chunk(b"IEND", b""),
        )
    )
