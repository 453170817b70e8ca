"""Pose-sequence document model and JSON I/O.

The document is produced by an external pose extractor and looks like::

    {"metadata": {"width": 1080, "height": 1920, "frame_count": 90, "fps": 30},
     "frames": [{"landmarks": [{"x": 0.5, "y": 0.4, "z": -0.1, "visibility": 0.98}, ...]}]}

Landmark slots may be ``null`` and frames may carry fewer than 33 slots; both
are kept as-is here and handled by the consumers.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple

from gaitscope.quality.failures import InputError

logger = logging.getLogger(__name__)


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return _as_float(value)


@dataclass(frozen=True)
class PoseLandmark:
    """Single body keypoint; ``visibility`` is in [0, 1] when present."""

    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = None

    @property
    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def to_dict(self) -> dict:
        payload = {"x": self.x, "y": self.y}
        if self.z is not None:
            payload["z"] = self.z
        if self.visibility is not None:
            payload["visibility"] = self.visibility
        return payload


@dataclass(frozen=True)
class PoseFrame:
    """Landmarks of one frame, indexed by body-topology slot."""

    landmarks: Tuple[Optional[PoseLandmark], ...] = ()

    def landmark(self, index: int) -> Optional[PoseLandmark]:
        """Return the landmark at ``index`` or None when the slot is absent."""
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None


@dataclass(frozen=True)
class PoseMetadata:
    """Source-video facts reported by the extractor; any field may be missing."""

    width: Optional[float] = None
    height: Optional[float] = None
    frame_count: Optional[int] = None
    fps: Optional[float] = None


@dataclass(frozen=True)
class PoseSequence:
    """Time-ordered pose frames plus the metadata of the source clip."""

    metadata: PoseMetadata = field(default_factory=PoseMetadata)
    frames: Tuple[PoseFrame, ...] = ()

    def __len__(self) -> int:
        return len(self.frames)

    def pixel_scale(self, normalized_input: bool = True) -> Tuple[float, float]:
        """Multipliers mapping landmark coordinates to pixel coordinates.

        Normalized landmarks are scaled by the frame size (1 when unknown);
        pixel landmarks are left untouched.
        """
        if not normalized_input:
            return (1.0, 1.0)
        return (self.metadata.width or 1.0, self.metadata.height or 1.0)

    def unit_scale(self, normalized_input: bool = True) -> Tuple[float, float]:
        """Multipliers mapping landmark coordinates into [0, 1] frame space."""
        if normalized_input:
            return (1.0, 1.0)
        return (1.0 / (self.metadata.width or 1.0), 1.0 / (self.metadata.height or 1.0))

    @classmethod
    def from_dict(cls, payload: Any) -> "PoseSequence":
        """Parse the extractor document, tolerating gaps and loose metadata."""
        if not isinstance(payload, dict):
            raise InputError("pose document must be a JSON object")
        raw_frames = payload.get("frames")
        if not isinstance(raw_frames, list):
            raise InputError("pose document has no 'frames' list")

        meta = payload.get("metadata") or {}
        frame_count = meta.get("frame_count")
        metadata = PoseMetadata(
            width=_as_optional_float(meta.get("width")),
            height=_as_optional_float(meta.get("height")),
            frame_count=int(frame_count) if isinstance(frame_count, (int, float)) else None,
            fps=_as_optional_float(meta.get("fps")),
        )

        frames = tuple(_frame_from_obj(obj) for obj in raw_frames)
        if metadata.frame_count is not None and metadata.frame_count != len(frames):
            logger.warning(
                "metadata frame_count=%d does not match %d frames; using frames",
                metadata.frame_count,
                len(frames),
            )
        return cls(metadata=metadata, frames=frames)

    def to_dict(self) -> dict:
        meta = {
            key: value
            for key, value in (
                ("width", self.metadata.width),
                ("height", self.metadata.height),
                ("frame_count", self.metadata.frame_count),
                ("fps", self.metadata.fps),
            )
            if value is not None
        }
        return {
            "metadata": meta,
            "frames": [
                {"landmarks": [lm.to_dict() if lm else None for lm in frame.landmarks]}
                for frame in self.frames
            ],
        }


def _landmark_from_obj(obj: Any) -> Optional[PoseLandmark]:
    if not isinstance(obj, dict):
        return None
    return PoseLandmark(
        x=_as_float(obj.get("x")),
        y=_as_float(obj.get("y")),
        z=_as_optional_float(obj.get("z")),
        visibility=_as_optional_float(obj.get("visibility")),
    )


def _frame_from_obj(obj: Any) -> PoseFrame:
    landmarks = obj.get("landmarks") if isinstance(obj, dict) else None
    if not isinstance(landmarks, list):
        return PoseFrame()
    return PoseFrame(landmarks=tuple(_landmark_from_obj(lm) for lm in landmarks))


def load_pose_sequence(path: str | Path) -> PoseSequence:
    """Read a pose document from a JSON file."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InputError(f"Invalid pose JSON: {exc}") from exc
    return PoseSequence.from_dict(payload)


def save_pose_sequence(
    path: str | Path, sequence: PoseSequence, *, overwrite: bool = True
) -> Path:
    """Write a pose document to a JSON file.

    Args:
        path: Destination path.
        sequence: Sequence to serialize.
        overwrite: Whether to overwrite an existing file.
    """

    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    if dest.exists() and not overwrite:
        raise FileExistsError(f"Pose document already exists: {dest}")
    with dest.open("w", encoding="utf-8") as fh:
        json.dump(sequence.to_dict(), fh)
    return dest
