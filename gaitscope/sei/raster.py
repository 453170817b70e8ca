"""Anti-aliased skeleton rasterization into square byte masks.

Lines are drawn by stamping discs along the segment, so every line gets
rounded caps and a one-pixel linear falloff at its boundary. Pixel values
combine with ``max`` so overlapping strokes never exceed full intensity.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from gaitscope.config import POSE_LANDMARK_COUNT, Joint
from gaitscope.io.normalization import NormalizedFrame, clamp

Point = Tuple[float, float]

# Synthetic points appended after the 33 body slots.
TORSO_TOP = POSE_LANDMARK_COUNT
TORSO_BOTTOM = POSE_LANDMARK_COUNT + 1

POSE_CONNECTIONS: Tuple[Tuple[int, int], ...] = (
    (TORSO_TOP, TORSO_BOTTOM),
    (Joint.NOSE, TORSO_TOP),
    (Joint.LEFT_SHOULDER, TORSO_TOP),
    (Joint.RIGHT_SHOULDER, TORSO_TOP),
    (Joint.LEFT_HIP, TORSO_BOTTOM),
    (Joint.RIGHT_HIP, TORSO_BOTTOM),
    # arms
    (Joint.LEFT_SHOULDER, Joint.LEFT_ELBOW),
    (Joint.LEFT_ELBOW, Joint.LEFT_WRIST),
    (Joint.RIGHT_SHOULDER, Joint.RIGHT_ELBOW),
    (Joint.RIGHT_ELBOW, Joint.RIGHT_WRIST),
    # legs
    (Joint.LEFT_HIP, Joint.LEFT_KNEE),
    (Joint.LEFT_KNEE, Joint.LEFT_ANKLE),
    (Joint.LEFT_ANKLE, Joint.LEFT_FOOT_INDEX),
    (Joint.RIGHT_HIP, Joint.RIGHT_KNEE),
    (Joint.RIGHT_KNEE, Joint.RIGHT_ANKLE),
    (Joint.RIGHT_ANKLE, Joint.RIGHT_FOOT_INDEX),
    # eyes
    (Joint.NOSE, Joint.LEFT_EYE_INNER),
    (Joint.NOSE, Joint.LEFT_EYE),
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _coverage(distance: np.ndarray, radius: float, value: int) -> np.ndarray:
    """Intensity for a distance from the stroke center: full inside, linear ramp over 1px."""
    ramp = np.floor(value * (1 - (distance - radius)) + 0.5)
    return np.where(distance <= radius, value, np.where(distance <= radius + 1, ramp, 0)).astype(
        np.uint8
    )


def _stamp(mask: np.ndarray, centers: np.ndarray, radius: float, value: int) -> None:
    """Max-composite discs of ``radius`` at every ``(x, y)`` row of ``centers``."""
    h, w = mask.shape
    x0 = max(0, math.floor(centers[:, 0].min() - radius - 1))
    x1 = min(w - 1, math.ceil(centers[:, 0].max() + radius + 1))
    y0 = max(0, math.floor(centers[:, 1].min() - radius - 1))
    y1 = min(h - 1, math.ceil(centers[:, 1].max() + radius + 1))
    if x0 > x1 or y0 > y1:
        return

    ys, xs = np.mgrid[y0 : y1 + 1, x0 : x1 + 1]
    nearest = np.full(xs.shape, np.inf)
    for cx, cy in centers:
        np.minimum(nearest, np.hypot(xs - cx, ys - cy), out=nearest)

    region = mask[y0 : y1 + 1, x0 : x1 + 1]
    np.maximum(region, _coverage(nearest, radius, value), out=region)


def draw_disc(mask: np.ndarray, cx: float, cy: float, radius: float, value: int = 255) -> None:
    """Draw an anti-aliased filled disc in place."""
    _stamp(mask, np.array([[cx, cy]], dtype=float), radius, value)


def draw_line(
    mask: np.ndarray,
    x0: float,
    y0: float,
    x1: float,
    y1: float,
    thickness: float,
    value: int = 255,
) -> None:
    """Draw a thick anti-aliased line with rounded caps in place."""
    dx = x1 - x0
    dy = y1 - y0
    length = math.hypot(dx, dy)
    radius = thickness / 2
    if length < 0.5:
        draw_disc(mask, x0, y0, radius, value)
        return

    steps = math.ceil(length)
    t = np.arange(steps + 1) / steps
    centers = np.column_stack((x0 + dx * t, y0 + dy * t))
    _stamp(mask, centers, radius, value)


def rasterize_skeleton(
    points: Sequence[Optional[Point]],
    size: int,
    thickness: float,
    connections: Iterable[Tuple[int, int]] = POSE_CONNECTIONS,
) -> np.ndarray:
    """Draw the connections between placed pixel-space points.

    Endpoints are snapped to whole pixels before drawing; connections with an
    absent endpoint are skipped.
    """

    mask = np.zeros((size, size), dtype=np.uint8)
    for start, end in connections:
        if not (0 <= start < len(points) and 0 <= end < len(points)):
            continue
        a, b = points[start], points[end]
        if a is None or b is None:
            continue
        draw_line(
            mask,
            round_half_up(a[0]),
            round_half_up(a[1]),
            round_half_up(b[0]),
            round_half_up(b[1]),
            thickness,
        )
    return mask


def rasterize_frame(
    frame: NormalizedFrame,
    size: int = 224,
    connections: Optional[Iterable[Tuple[int, int]]] = None,
    line_thickness: float = 3,
    joint_radius: float = 3,
) -> np.ndarray:
    """Render a crop-normalized frame: connection lines first, then joint discs."""
    mask = np.zeros((size, size), dtype=np.uint8)
    scale = size - 1

    def to_pixel(point: Point) -> Point:
        return (round_half_up(clamp(point[0]) * scale), round_half_up(clamp(point[1]) * scale))

    for start, end in connections or ():
        if not (0 <= start < len(frame.landmarks) and 0 <= end < len(frame.landmarks)):
            continue
        ax, ay = to_pixel(frame.landmarks[start])
        bx, by = to_pixel(frame.landmarks[end])
        draw_line(mask, ax, ay, bx, by, line_thickness)

    for point in frame.landmarks:
        cx, cy = to_pixel(point)
        draw_disc(mask, cx, cy, joint_radius)
    return mask
