"""Pose sequence -> autoencoder anomaly verdict."""

from __future__ import annotations

import logging
import time

import numpy as np

from gaitscope.anomaly.classifier import AnomalyResult, classify_errors
from gaitscope.anomaly.scoring import score_windows
from gaitscope.config import AnomalyConfig
from gaitscope.io.pose_document import PoseSequence
from gaitscope.models.session import ModelSession
from gaitscope.signals.cleaning import clean_features
from gaitscope.signals.features import extract_features
from gaitscope.signals.standardize import normalize_features
from gaitscope.signals.windows import create_windows

logger = logging.getLogger(__name__)


def prepare_windows(sequence: PoseSequence, config: AnomalyConfig) -> np.ndarray:
    """Run the deterministic preprocessing chain up to the model input batch."""
    features = extract_features(sequence)
    cleaned = clean_features(features, window=config.smoothing_window, policy=config.nan_fill)
    normalized = normalize_features(cleaned, config.normalization, config.normalization_stats)
    return create_windows(normalized, config.sequence_length, config.overlap)


async def detect_gait_anomaly(
    sequence: PoseSequence,
    session: ModelSession,
    config: AnomalyConfig = AnomalyConfig(),
) -> AnomalyResult:
    """Score ``sequence`` against the autoencoder and return the per-joint verdict.

    The model readiness check happens before any preprocessing so an
    initializing session fails fast.
    """

    session.require_ready()
    started = time.perf_counter()
    windows = prepare_windows(sequence, config)
    errors = await score_windows(windows, session)
    result = classify_errors(errors, config)
    logger.info("anomaly detection finished in %.0f ms", (time.perf_counter() - started) * 1000)
    return result
