"""Gap filling and moving-average smoothing of feature channels."""

from __future__ import annotations

import logging

import numpy as np

from gaitscope.config import NanFillPolicy

logger = logging.getLogger(__name__)


def interpolate_nan(channel: np.ndarray, policy: NanFillPolicy = NanFillPolicy.PROPAGATE) -> np.ndarray:
    """Fill NaNs linearly between the nearest valid neighbours.

    Leading and trailing gaps copy the nearest valid value. A channel with no
    valid sample is returned as NaN or zeros depending on ``policy``.
    """

    values = np.asarray(channel, dtype=float)
    valid = ~np.isnan(values)
    if valid.all():
        return values.copy()
    if not valid.any():
        if policy is NanFillPolicy.ZEROS:
            return np.zeros_like(values)
        return values.copy()

    positions = np.arange(values.size)
    return np.interp(positions, positions[valid], values[valid])


def moving_average(channel: np.ndarray, window: int = 5) -> np.ndarray:
    """Centered moving average whose edge windows shrink instead of wrapping.

    Signals shorter than the window are returned unchanged.
    """

    values = np.asarray(channel, dtype=float)
    if values.size < window:
        return values.copy()

    half = window // 2
    kernel = np.ones(2 * half + 1)
    sums = np.convolve(values, kernel, mode="same")
    counts = np.convolve(np.ones_like(values), kernel, mode="same")
    return sums / counts


def clean_features(
    features: np.ndarray,
    *,
    window: int = 5,
    policy: NanFillPolicy = NanFillPolicy.PROPAGATE,
) -> np.ndarray:
    """Interpolate then smooth every channel of a ``(frames, features)`` matrix."""
    matrix = np.asarray(features, dtype=float)
    cleaned = np.empty_like(matrix)
    for idx, channel in enumerate(matrix.T):
        if np.isnan(channel).all():
            logger.warning("feature channel %d has no valid sample (policy=%s)", idx, policy.value)
        cleaned[:, idx] = moving_average(interpolate_nan(channel, policy), window)
    return cleaned
