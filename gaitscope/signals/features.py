"""Gait feature extraction: 8 lower-body joints -> 16 channels per frame."""

from __future__ import annotations

import logging
import math

import numpy as np

from gaitscope.config import GAIT_JOINTS, NUM_FEATURES, POSE_LANDMARK_COUNT
from gaitscope.io.pose_document import PoseFrame, PoseSequence
from gaitscope.quality.failures import InputError

logger = logging.getLogger(__name__)


def frame_features(frame: PoseFrame) -> np.ndarray:
    """Return the 16-channel vector of one frame.

    A frame with fewer than 33 slots is a missing frame and yields all NaN.
    An absent slot inside a full frame yields NaN for that joint only.
    """

    if len(frame.landmarks) < POSE_LANDMARK_COUNT:
        return np.full(NUM_FEATURES, np.nan)

    values = []
    for joint in GAIT_JOINTS:
        lm = frame.landmark(joint)
        if lm is None:
            values.extend((math.nan, math.nan))
        else:
            values.extend((lm.x, lm.y))
    return np.asarray(values, dtype=float)


def extract_features(sequence: PoseSequence) -> np.ndarray:
    """Build the ``(frames, 16)`` feature matrix in training channel order."""
    if not sequence.frames:
        raise InputError("No frames found in pose data")

    features = np.vstack([frame_features(frame) for frame in sequence.frames])
    missing = int(np.isnan(features).all(axis=1).sum())
    logger.info(
        "extracted %d frames x %d features (%d missing frames)",
        features.shape[0],
        NUM_FEATURES,
        missing,
    )
    return features
