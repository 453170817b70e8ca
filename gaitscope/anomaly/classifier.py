"""Per-joint thresholding of reconstruction errors into a gait verdict."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from gaitscope.anomaly.scoring import ReconstructionErrors
from gaitscope.config import AnomalyConfig, Joint
from gaitscope.quality.failures import InputError

logger = logging.getLogger(__name__)


def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


@dataclass(frozen=True)
class JointError:
    """Reconstruction error of one joint against its own threshold."""

    joint: Joint
    error: float
    threshold: float
    is_abnormal: bool
    x_error: float
    y_error: float

    @property
    def threshold_ratio(self) -> float:
        return self.error / self.threshold

    def to_dict(self) -> dict:
        return {
            "joint": self.joint.name,
            "error": _finite_or_none(self.error),
            "threshold": self.threshold,
            "isAbnormal": self.is_abnormal,
            "xError": _finite_or_none(self.x_error),
            "yError": _finite_or_none(self.y_error),
        }


@dataclass(frozen=True)
class AnomalyResult:
    """Gait verdict of one sequence.

    ``joint_errors`` is sorted by descending error and includes the joints
    excluded from the vote; ``worst_joint`` and ``abnormal_joint_count`` only
    consider voting joints.
    """

    is_abnormal: bool
    mean_error: float
    max_error: float
    num_windows: int
    confidence: float
    joint_errors: Tuple[JointError, ...]
    worst_joint: Joint
    worst_joint_error: float
    abnormal_joint_count: int
    global_threshold: float

    def to_dict(self) -> dict:
        return {
            "isAbnormal": self.is_abnormal,
            "meanError": self.mean_error,
            "maxError": self.max_error,
            "numWindows": self.num_windows,
            "confidence": self.confidence,
            "jointErrors": [je.to_dict() for je in self.joint_errors],
            "worstJoint": self.worst_joint.name,
            "worstJointError": self.worst_joint_error,
            "abnormalJointCount": self.abnormal_joint_count,
            "globalThreshold": self.global_threshold,
        }


def threshold_confidence(error: float, threshold: float) -> float:
    """Map a joint's signed distance from its threshold onto [50, 100]."""
    if error >= threshold:
        ratio = (error - threshold) / threshold
    else:
        ratio = (threshold - error) / threshold
    return min(100.0, 50.0 + 50.0 * ratio)


def joint_errors(errors: ReconstructionErrors, config: AnomalyConfig) -> List[JointError]:
    """Average x/y channel errors per joint and compare to the joint threshold."""
    results = []
    for joint, (x_error, y_error) in errors.joint_axis_errors().items():
        error = (x_error + y_error) / 2
        threshold = config.threshold_for(joint)
        results.append(
            JointError(
                joint=joint,
                error=error,
                threshold=threshold,
                is_abnormal=math.isfinite(error) and error >= threshold,
                x_error=x_error,
                y_error=y_error,
            )
        )
    return results


def _sort_key(je: JointError) -> Tuple[bool, float]:
    # Non-finite errors sink to the end.
    finite = math.isfinite(je.error)
    return (not finite, -je.error if finite else 0.0)


def classify_errors(errors: ReconstructionErrors, config: AnomalyConfig) -> AnomalyResult:
    """Turn reconstruction errors into an :class:`AnomalyResult`.

    Raises:
        InputError: if no voting joint has a finite error.
    """

    ranked = sorted(joint_errors(errors, config), key=_sort_key)
    voters = [
        je for je in ranked if je.joint not in config.excluded_joints and math.isfinite(je.error)
    ]
    if not voters:
        raise InputError("No usable lower-limb signal: every voting joint error is undefined")

    abnormal_count = sum(1 for je in voters if je.is_abnormal)
    worst = voters[0]
    result = AnomalyResult(
        is_abnormal=abnormal_count > 0,
        mean_error=errors.mean_error,
        max_error=errors.max_error,
        num_windows=errors.num_windows,
        confidence=threshold_confidence(worst.error, worst.threshold),
        joint_errors=tuple(ranked),
        worst_joint=worst.joint,
        worst_joint_error=worst.error,
        abnormal_joint_count=abnormal_count,
        global_threshold=config.global_threshold,
    )

    logger.info(
        "gait %s (%d windows, %d/%d abnormal voting joints, confidence %.1f%%)",
        "ABNORMAL" if result.is_abnormal else "NORMAL",
        result.num_windows,
        abnormal_count,
        len(voters),
        result.confidence,
    )
    for rank, je in enumerate(voters, start=1):
        logger.debug(
            "%d. %-18s error=%.6f (%.1f%% of threshold %.6f)%s",
            rank,
            je.joint.name,
            je.error,
            je.threshold_ratio * 100,
            je.threshold,
            " ABNORMAL" if je.is_abnormal else "",
        )
    return result
