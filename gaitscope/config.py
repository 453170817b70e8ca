"""Shared configuration and constants used across the analysis pipelines."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

POSE_LANDMARK_COUNT = 33


class Joint(IntEnum):
    """Body landmark slots of the 33-point pose topology (value = slot index)."""

    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


# Channel order must match the order the autoencoder was trained with.
GAIT_JOINTS: Tuple[Joint, ...] = (
    Joint.LEFT_HIP,
    Joint.RIGHT_HIP,
    Joint.LEFT_KNEE,
    Joint.RIGHT_KNEE,
    Joint.LEFT_ANKLE,
    Joint.RIGHT_ANKLE,
    Joint.LEFT_FOOT_INDEX,
    Joint.RIGHT_FOOT_INDEX,
)

FEATURE_NAMES: Tuple[str, ...] = tuple(
    f"{joint.name}_{axis}" for joint in GAIT_JOINTS for axis in ("x", "y")
)

NUM_FEATURES = len(FEATURE_NAMES)

HIP_JOINTS = frozenset({Joint.LEFT_HIP, Joint.RIGHT_HIP})

DEFAULT_JOINT_THRESHOLDS: Dict[Joint, float] = {
    Joint.LEFT_HIP: 0.5543604445155327,
    Joint.RIGHT_HIP: 0.6172293541221003,
    Joint.LEFT_KNEE: 0.5403470171983461,
    Joint.RIGHT_KNEE: 0.5625000450807769,
    Joint.LEFT_ANKLE: 0.5979195635077637,
    Joint.RIGHT_ANKLE: 0.6394362561662352,
    Joint.LEFT_FOOT_INDEX: 0.5445324308178958,
    Joint.RIGHT_FOOT_INDEX: 0.6486219410648343,
}

# Single window-level threshold of the first model release; reported only.
LEGACY_GLOBAL_THRESHOLD = 0.1768068329674364

GAIT_CLASS_LABELS: Tuple[str, ...] = (
    "DIPLEGIC",
    "HEMIPLEGIC",
    "NEUROPATHIC",
    "NORMAL",
    "PARKINSON",
)


class NanFillPolicy(str, Enum):
    """What the temporal cleaner does with a channel that has no valid sample."""

    PROPAGATE = "propagate"
    ZEROS = "zeros"


class NormalizationPolicy(str, Enum):
    """Where z-score statistics come from."""

    PER_SEQUENCE = "per-sequence"
    GLOBAL = "global"


def _safe_std(values: Sequence[float]) -> Tuple[float, ...]:
    return tuple(1.0 if (not math.isfinite(v) or v == 0) else float(v) for v in values)


@dataclass(frozen=True)
class NormalizationStats:
    """Per-channel mean/std captured once from the training corpus."""

    mean: Tuple[float, ...]
    std: Tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.mean) != NUM_FEATURES or len(self.std) != NUM_FEATURES:
            raise ValueError(
                f"normalization stats need {NUM_FEATURES} means and stds, "
                f"got {len(self.mean)} and {len(self.std)}"
            )
        object.__setattr__(self, "mean", tuple(float(v) for v in self.mean))
        object.__setattr__(self, "std", _safe_std(self.std))

    @classmethod
    def from_json(cls, path: str | Path) -> "NormalizationStats":
        """Load a ``{"mean": [...], "std": [...]}`` document."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        try:
            return cls(mean=tuple(payload["mean"]), std=tuple(payload["std"]))
        except KeyError as exc:
            raise ValueError(f"normalization stats missing key: {exc}") from exc


@dataclass(frozen=True)
class AnomalyConfig:
    """Configuration of the autoencoder anomaly-scoring chain.

    Attributes:
        sequence_length: Frames per window; fixed by the model input shape.
        overlap: Fraction of a window shared with the next one, in [0, 1).
        smoothing_window: Width of the centered moving average.
        nan_fill: Policy for channels without a single valid sample.
        normalization: Where the z-score statistics come from.
        normalization_stats: Training statistics, required for ``GLOBAL``.
        joint_thresholds: Fixed error threshold per gait joint.
        global_threshold: Legacy window-level threshold, reported only.
        excluded_joints: Joints reported but kept out of the abnormal vote.
    """

    sequence_length: int = 60
    overlap: float = 0.5
    smoothing_window: int = 5
    nan_fill: NanFillPolicy = NanFillPolicy.PROPAGATE
    normalization: NormalizationPolicy = NormalizationPolicy.PER_SEQUENCE
    normalization_stats: Optional[NormalizationStats] = None
    joint_thresholds: Dict[Joint, float] = field(
        default_factory=lambda: dict(DEFAULT_JOINT_THRESHOLDS)
    )
    global_threshold: float = LEGACY_GLOBAL_THRESHOLD
    excluded_joints: frozenset = HIP_JOINTS

    def __post_init__(self) -> None:
        if self.sequence_length <= 0:
            raise ValueError("sequence_length must be positive")
        if not 0 <= self.overlap < 1:
            raise ValueError("overlap must be in [0, 1)")
        if self.smoothing_window <= 0:
            raise ValueError("smoothing_window must be positive")
        if self.normalization is NormalizationPolicy.GLOBAL and self.normalization_stats is None:
            raise ValueError("global normalization requires normalization_stats")
        missing = [j.name for j in GAIT_JOINTS if j not in self.joint_thresholds]
        if missing:
            raise ValueError(f"missing joint thresholds: {', '.join(missing)}")
        invalid = [
            j.name
            for j in GAIT_JOINTS
            if not (math.isfinite(self.joint_thresholds[j]) and self.joint_thresholds[j] > 0)
        ]
        if invalid:
            raise ValueError(f"joint thresholds must be positive: {', '.join(invalid)}")

    @property
    def stride(self) -> int:
        """Frames between consecutive window starts."""
        return max(1, math.floor(self.sequence_length * (1 - self.overlap)))

    def threshold_for(self, joint: Joint) -> float:
        return self.joint_thresholds[joint]


@dataclass(frozen=True)
class SeiConfig:
    """Rendering parameters for the skeleton energy image."""

    size: int = 224
    line_thickness: float = 6.0
    smooth_sigma: float = 0.1
    padding_ratio: float = 0.95
    min_span: float = 1.0

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise ValueError("size must be positive")
        if self.line_thickness <= 0:
            raise ValueError("line_thickness must be positive")


@dataclass(frozen=True)
class ClassifierConfig:
    """Input geometry and label order of the SEI classifier."""

    input_size: int = 224
    labels: Tuple[str, ...] = GAIT_CLASS_LABELS

    @property
    def input_shape(self) -> Tuple[int, int, int, int]:
        return (1, self.input_size, self.input_size, 3)


@dataclass(frozen=True)
class QualityConfig:
    """Thresholds for the advisory pose-quality gate."""

    min_frames: int = 60
    min_quality: float = 70.0
    visibility_threshold: float = 0.5
    min_visible_fraction: float = 0.5
