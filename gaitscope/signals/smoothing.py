"""Temporal Gaussian smoothing of per-joint pixel trajectories."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.ndimage import gaussian_filter1d

Point = Tuple[float, float]


def gaussian_smooth(values: Sequence[float], sigma: float) -> np.ndarray:
    """1D Gaussian filter with radius ``ceil(3 * sigma)``.

    Boundaries mirror about the edge sample (``d c b | a b c d``).
    """

    data = np.asarray(values, dtype=float)
    if sigma <= 0 or data.size < 2:
        return data.copy()
    radius = math.ceil(3 * sigma)
    return gaussian_filter1d(data, sigma, mode="mirror", radius=radius)


def smooth_trajectories(
    keypoints: Sequence[Sequence[Optional[Point]]], sigma: float
) -> List[List[Optional[Point]]]:
    """Smooth each joint's x/y track over the frames where it was detected.

    ``keypoints`` is indexed ``[frame][joint]``. Samples where a joint is
    missing are skipped rather than filled, so the filter runs over the
    detected samples back to back; the missing slots stay None.
    """

    num_frames = len(keypoints)
    num_joints = max((len(frame) for frame in keypoints), default=0)
    smoothed: List[List[Optional[Point]]] = [[None] * num_joints for _ in range(num_frames)]

    for joint in range(num_joints):
        indices = [
            f for f in range(num_frames) if joint < len(keypoints[f]) and keypoints[f][joint] is not None
        ]
        if not indices:
            continue
        xs = [keypoints[f][joint][0] for f in indices]
        ys = [keypoints[f][joint][1] for f in indices]
        if len(indices) > 1:
            xs = gaussian_smooth(xs, sigma)
            ys = gaussian_smooth(ys, sigma)
        for f, x, y in zip(indices, xs, ys):
            smoothed[f][joint] = (float(x), float(y))
    return smoothed
