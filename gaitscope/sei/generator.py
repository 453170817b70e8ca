"""Skeleton energy image (SEI) generation.

Per frame: landmarks are converted to pixels, smoothed over time per joint,
extended with torso top/bottom midpoints, scaled so the body's vertical span
fills ``padding_ratio`` of the canvas, centered on the torso, and drawn as a
skeleton mask. The masks of all drawable frames are averaged into one image.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from gaitscope.config import POSE_LANDMARK_COUNT, Joint, SeiConfig
from gaitscope.io.pose_document import PoseSequence
from gaitscope.quality.failures import DegenerateFrameError, InputError
from gaitscope.sei.png import encode_greyscale_png
from gaitscope.sei.raster import TORSO_BOTTOM, TORSO_TOP, rasterize_skeleton
from gaitscope.signals.smoothing import smooth_trajectories

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


@dataclass(frozen=True)
class SeiImage:
    """Averaged skeleton masks of one clip."""

    pixels: np.ndarray
    frames_used: int
    frames_total: int

    @property
    def size(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def png(self) -> bytes:
        """Lossless PNG encoding of ``pixels``."""
        return encode_greyscale_png(self.pixels)


def pixel_keypoints(sequence: PoseSequence, normalized_input: bool = True) -> List[List[Optional[Point]]]:
    """``[frame][slot]`` pixel coordinates of the 33 body slots; None where absent."""
    sx, sy = sequence.pixel_scale(normalized_input)
    keypoints = []
    for frame in sequence.frames:
        row: List[Optional[Point]] = []
        for index in range(POSE_LANDMARK_COUNT):
            lm = frame.landmark(index)
            row.append((lm.x * sx, lm.y * sy) if lm is not None and lm.is_finite else None)
        keypoints.append(row)
    return keypoints


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def with_torso_points(keypoints: Sequence[Optional[Point]]) -> Optional[List[Optional[Point]]]:
    """Append shoulder and hip midpoints; None when a shoulder or hip is missing."""
    shoulders = (keypoints[Joint.LEFT_SHOULDER], keypoints[Joint.RIGHT_SHOULDER])
    hips = (keypoints[Joint.LEFT_HIP], keypoints[Joint.RIGHT_HIP])
    if any(p is None for p in shoulders + hips):
        return None
    points = list(keypoints[:POSE_LANDMARK_COUNT])
    points += [None] * (POSE_LANDMARK_COUNT - len(points))
    points.append(_midpoint(*shoulders))
    points.append(_midpoint(*hips))
    return points


def place_skeleton(
    points: Sequence[Optional[Point]],
    size: int,
    padding_ratio: float = 0.95,
    min_span: float = 1.0,
) -> Optional[List[Optional[Point]]]:
    """Scale and translate one frame's points onto a ``size`` x ``size`` canvas.

    ``points`` must carry the torso top/bottom at :data:`TORSO_TOP` and
    :data:`TORSO_BOTTOM`. Returns None for a degenerate frame whose vertical
    span is below ``min_span`` pixels.
    """

    ys = [p[1] for p in points if p is not None and math.isfinite(p[1])]
    if not ys:
        return None
    min_y, max_y = min(ys), max(ys)
    span = max_y - min_y
    if span < min_span:
        return None

    scale = size * padding_ratio / span
    top, bottom = points[TORSO_TOP], points[TORSO_BOTTOM]
    torso_mid_x = (top[0] + bottom[0]) / 2 * scale
    dx = size / 2 - torso_mid_x
    dy = (size - span * scale) / 2 - min_y * scale

    return [None if p is None else (p[0] * scale + dx, p[1] * scale + dy) for p in points]


def generate_sei(
    sequence: PoseSequence,
    config: SeiConfig = SeiConfig(),
    normalized_input: bool = True,
) -> SeiImage:
    """Render and average the skeleton of every drawable frame.

    Raises:
        InputError: if the sequence has no frames.
        DegenerateFrameError: if no frame could be rasterized.
    """

    if not sequence.frames:
        raise InputError("No frames to generate SEI")

    smoothed = smooth_trajectories(pixel_keypoints(sequence, normalized_input), config.smooth_sigma)
    accum = np.zeros((config.size, config.size), dtype=np.float64)
    used = 0
    for keypoints in smoothed:
        points = with_torso_points(keypoints)
        if points is None:
            continue
        placed = place_skeleton(points, config.size, config.padding_ratio, config.min_span)
        if placed is None:
            continue
        accum += rasterize_skeleton(placed, config.size, config.line_thickness)
        used += 1

    skipped = len(smoothed) - used
    if used == 0:
        raise DegenerateFrameError("No valid frames rasterized")
    if skipped:
        logger.warning("skipped %d of %d frames without a drawable torso", skipped, len(smoothed))

    pixels = np.floor(np.clip(accum / used, 0, 255) + 0.5).astype(np.uint8)
    logger.info("SEI %dx%d averaged over %d frames", config.size, config.size, used)
    return SeiImage(pixels=pixels, frames_used=used, frames_total=len(smoothed))
