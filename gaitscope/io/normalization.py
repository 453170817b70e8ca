"""Square-crop normalization of landmark coordinates.

Each frame gets its own square box around its finite landmarks; coordinates
are then expressed in [0, 1] relative to that box. This gives a
position-and-scale invariant view of the pose for rasterization and
inspection while keeping the ability to map results back to frame space.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from gaitscope.io.pose_document import PoseSequence

Point = Tuple[float, float]

MIN_CROP_SIDE = 1e-6
CENTER: Point = (0.5, 0.5)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class CropBox:
    """Square region of [0, 1] frame space.

    ``left``/``top`` are the upper-left corner and ``side`` the edge length,
    all in frame-relative units.
    """

    left: float
    top: float
    side: float

    @classmethod
    def around(cls, points: Iterable[Point]) -> Optional["CropBox"]:
        """Smallest square centered on the points' bbox, shifted inside [0, 1].

        Returns None when no point is finite.
        """
        finite = [(x, y) for x, y in points if math.isfinite(x) and math.isfinite(y)]
        if not finite:
            return None
        xs = [p[0] for p in finite]
        ys = [p[1] for p in finite]
        min_x, max_x, min_y, max_y = min(xs), max(xs), min(ys), max(ys)

        side = max(max_x - min_x, max_y - min_y, MIN_CROP_SIDE)
        left = (min_x + max_x) / 2 - side / 2
        top = (min_y + max_y) / 2 - side / 2
        left = max(left, 0.0)
        top = max(top, 0.0)
        if left + side > 1:
            left = max(0.0, 1 - side)
        if top + side > 1:
            top = max(0.0, 1 - side)
        return cls(left=left, top=top, side=side)

    def to_normalized(self, point: Point) -> Point:
        """Map a frame-space point into the box, clamped to [0, 1]."""
        x, y = point
        return (clamp((x - self.left) / self.side), clamp((y - self.top) / self.side))

    def to_original(self, point: Point) -> Point:
        """Map a box-relative point back to frame space."""
        x, y = point
        return (self.left + x * self.side, self.top + y * self.side)


@dataclass(frozen=True)
class NormalizedFrame:
    """Landmarks of one frame in its own crop box, one point per input slot."""

    landmarks: Tuple[Point, ...]
    crop: Optional[CropBox] = None


def normalize_frame(points: Sequence[Optional[Point]]) -> NormalizedFrame:
    """Crop-normalize one frame; absent or non-finite slots map to the center."""
    crop = CropBox.around(p for p in points if p is not None)
    if crop is None:
        return NormalizedFrame(landmarks=tuple(CENTER for _ in points))

    mapped = []
    for point in points:
        if point is None or not (math.isfinite(point[0]) and math.isfinite(point[1])):
            mapped.append(CENTER)
        else:
            mapped.append(crop.to_normalized(point))
    return NormalizedFrame(landmarks=tuple(mapped), crop=crop)


def normalize_frames(sequence: PoseSequence, normalized_input: bool = True) -> List[NormalizedFrame]:
    """Crop-normalize every frame of ``sequence``.

    Args:
        sequence: Pose sequence to normalize.
        normalized_input: True when landmarks are already in [0, 1] frame
            units; False when they are pixels (divided by the metadata size).
    """

    sx, sy = sequence.unit_scale(normalized_input)
    frames = []
    for frame in sequence.frames:
        points = [None if lm is None else (lm.x * sx, lm.y * sy) for lm in frame.landmarks]
        frames.append(normalize_frame(points))
    return frames
