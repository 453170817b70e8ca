"""Failure taxonomy and the advisory pose-quality gate.

Every failure the pipelines surface derives from :class:`GaitScopeError` so
callers can catch the family at once. Per-frame landmark gaps are not failures;
they are absorbed by interpolation and skip policies downstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from gaitscope.config import POSE_LANDMARK_COUNT, QualityConfig

if TYPE_CHECKING:  # pragma: no cover
    from gaitscope.io.pose_document import PoseSequence


class GaitScopeError(RuntimeError):
    """Base class for typed pipeline failures."""


class InputError(GaitScopeError, ValueError):
    """The pose sequence cannot be analyzed (empty, too short, malformed)."""


class ModelNotReadyError(GaitScopeError):
    """Inference was requested before the model session reached READY."""


class DegenerateFrameError(GaitScopeError):
    """No frame of the sequence could be rasterized."""


class EncodingError(GaitScopeError):
    """The image encoder was handed a buffer that violates its contract."""


class InferenceError(GaitScopeError):
    """The external model failed to load, raised, or returned a bad shape."""


def too_short_error(actual: int, required: int) -> InputError:
    return InputError(
        f"Video too short. Need at least {required} frames, got {actual}"
    )


@dataclass(frozen=True)
class PoseQualityReport:
    """Coverage summary of a pose sequence.

    Attributes:
        valid: Whether the sequence passes both the length and quality bars.
        valid_frame_count: Frames with a full, mostly visible landmark set.
        total_frame_count: Frames in the sequence.
        quality_percentage: ``valid_frame_count / total_frame_count * 100``.
        message: Human-readable verdict suitable for the host UI.
    """

    valid: bool
    valid_frame_count: int
    total_frame_count: int
    quality_percentage: float
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "validFrameCount": self.valid_frame_count,
            "totalFrameCount": self.total_frame_count,
            "qualityPercentage": self.quality_percentage,
            "message": self.message,
        }


def _frame_is_valid(landmarks, config: QualityConfig) -> bool:
    if len(landmarks) < POSE_LANDMARK_COUNT:
        return False
    visible = sum(
        1
        for lm in landmarks
        if lm is not None and (lm.visibility or 0.0) > config.visibility_threshold
    )
    return visible >= len(landmarks) * config.min_visible_fraction


def assess_pose_quality(
    sequence: "PoseSequence", config: QualityConfig = QualityConfig()
) -> PoseQualityReport:
    """Check that a sequence is long and clean enough to be worth analyzing.

    The gate never raises; callers decide whether to proceed on an invalid
    report.
    """

    total = len(sequence.frames)
    valid_count = sum(1 for frame in sequence.frames if _frame_is_valid(frame.landmarks, config))
    quality = (valid_count / total) * 100 if total else 0.0

    if total < config.min_frames:
        message = f"Insufficient frames: {total} frames (need at least {config.min_frames})"
        return PoseQualityReport(False, valid_count, total, quality, message)

    if quality < config.min_quality:
        message = (
            f"Poor pose detection quality: {quality:.1f}% valid frames "
            f"(need at least {config.min_quality:g}%)"
        )
        return PoseQualityReport(False, valid_count, total, quality, message)

    return PoseQualityReport(
        True, valid_count, total, quality, f"Good quality: {quality:.1f}% valid frames"
    )
