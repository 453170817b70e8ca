"""Z-score normalization of feature channels."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from gaitscope.config import NormalizationPolicy, NormalizationStats

logger = logging.getLogger(__name__)

# Below this a channel is constant up to smoothing round-off.
STD_EPSILON = 1e-10


def per_sequence_stats(features: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Population mean/std per channel; vanishing or NaN std becomes 1.0."""
    matrix = np.asarray(features, dtype=float)
    mean = matrix.mean(axis=0)
    std = matrix.std(axis=0)
    std = np.where(std > STD_EPSILON, std, 1.0)
    return mean, std


def normalize_features(
    features: np.ndarray,
    policy: NormalizationPolicy = NormalizationPolicy.PER_SEQUENCE,
    stats: Optional[NormalizationStats] = None,
) -> np.ndarray:
    """Return ``(features - mean) / std`` with the same shape as the input."""
    matrix = np.asarray(features, dtype=float)
    if policy is NormalizationPolicy.GLOBAL:
        if stats is None:
            raise ValueError("global normalization requires training statistics")
        mean = np.asarray(stats.mean)
        std = np.asarray(stats.std)
    else:
        mean, std = per_sequence_stats(matrix)

    logger.debug(
        "normalizing (%s) mean[:3]=%s std[:3]=%s",
        policy.value,
        np.round(mean[:3], 4),
        np.round(std[:3], 4),
    )
    return (matrix - mean) / std
