"""Sliding-window segmentation of a normalized feature sequence."""

from __future__ import annotations

import logging
import math
from typing import List

import numpy as np

from gaitscope.quality.failures import too_short_error

logger = logging.getLogger(__name__)


def window_stride(sequence_length: int, overlap: float) -> int:
    return max(1, math.floor(sequence_length * (1 - overlap)))


def window_starts(total_frames: int, sequence_length: int, stride: int) -> List[int]:
    """Start indices of every full window, in order."""
    if total_frames < sequence_length:
        return []
    return list(range(0, total_frames - sequence_length + 1, stride))


def create_windows(
    features: np.ndarray, sequence_length: int = 60, overlap: float = 0.5
) -> np.ndarray:
    """Slice ``(frames, features)`` into ``(windows, sequence_length, features)``.

    Raises:
        InputError: if the sequence is shorter than one window.
    """

    matrix = np.asarray(features, dtype=float)
    total = matrix.shape[0]
    stride = window_stride(sequence_length, overlap)
    starts = window_starts(total, sequence_length, stride)
    if not starts:
        raise too_short_error(total, sequence_length)

    windows = np.stack([matrix[s : s + sequence_length] for s in starts])
    logger.info(
        "created %d windows (%d frames, %d%% overlap)",
        len(starts),
        sequence_length,
        round(overlap * 100),
    )
    return windows
