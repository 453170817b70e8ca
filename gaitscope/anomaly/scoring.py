"""Reconstruction-error statistics of an autoencoder over feature windows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

import numpy as np

from gaitscope.config import GAIT_JOINTS, Joint
from gaitscope.models.session import ModelSession, scoped_tensors
from gaitscope.quality.failures import InferenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconstructionErrors:
    """Squared reconstruction error reduced along each axis of interest.

    Attributes:
        window_errors: Mean over (time, feature) for each window.
        feature_errors: Mean over (window, time) for each of the 16 channels.
    """

    window_errors: np.ndarray
    feature_errors: np.ndarray

    @property
    def num_windows(self) -> int:
        return int(self.window_errors.size)

    @property
    def mean_error(self) -> float:
        return float(self.window_errors.mean())

    @property
    def max_error(self) -> float:
        return float(self.window_errors.max())

    def joint_axis_errors(self) -> Dict[Joint, tuple[float, float]]:
        """Pair channels back into ``joint -> (x_error, y_error)``."""
        return {
            joint: (float(self.feature_errors[2 * i]), float(self.feature_errors[2 * i + 1]))
            for i, joint in enumerate(GAIT_JOINTS)
        }


def reconstruction_errors(windows: np.ndarray, reconstruction: np.ndarray) -> ReconstructionErrors:
    """Reduce ``(windows - reconstruction) ** 2`` to window and channel errors."""
    original = np.asarray(windows, dtype=float)
    rebuilt = np.asarray(reconstruction, dtype=float)
    if rebuilt.shape != original.shape:
        raise InferenceError(
            f"autoencoder returned shape {rebuilt.shape}, expected {original.shape}"
        )
    squared = np.square(original - rebuilt)
    return ReconstructionErrors(
        # A channel that was never observed stays NaN; windows average the rest.
        window_errors=np.nanmean(squared, axis=(1, 2)),
        feature_errors=squared.mean(axis=(0, 1)),
    )


async def score_windows(windows: np.ndarray, session: ModelSession) -> ReconstructionErrors:
    """Reconstruct ``windows`` with the autoencoder and measure the error."""
    with scoped_tensors() as scope:
        batch = scope.track(np.ascontiguousarray(windows, dtype=np.float32))
        logger.debug("autoencoder input shape %s", batch.shape)
        reconstruction = await session.predict(batch, scope)
        errors = reconstruction_errors(batch, reconstruction)
    logger.info(
        "scored %d windows: mean=%.6f max=%.6f",
        errors.num_windows,
        errors.mean_error,
        errors.max_error,
    )
    return errors
