"""Sanity checks for crop normalization and SEI rendering on a synthetic walk."""

import math
import sys
from pathlib import Path

# Allow running this script directly without installing the package.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gaitscope.io.normalization import CropBox  # noqa: E402
from gaitscope.io.pose_document import PoseSequence  # noqa: E402
from gaitscope.sei.generator import generate_sei  # noqa: E402

# Slot -> (x, y) of a rough standing pose; missing slots stay null.
POSE = {
    0: (0.50, 0.10),
    11: (0.45, 0.25),
    12: (0.55, 0.25),
    23: (0.47, 0.50),
    24: (0.53, 0.50),
    25: (0.47, 0.68),
    26: (0.53, 0.68),
    27: (0.47, 0.85),
    28: (0.53, 0.85),
}


def synthetic_walk(num_frames: int = 60) -> PoseSequence:
    frames = []
    for f in range(num_frames):
        swing = 0.04 * math.sin(2 * math.pi * f / 30)
        landmarks = [None] * 33
        for slot, (x, y) in POSE.items():
            dx = swing if slot in (25, 27) else -swing if slot in (26, 28) else 0.0
            landmarks[slot] = {"x": x + dx, "y": y, "visibility": 0.9}
        frames.append({"landmarks": landmarks})
    return PoseSequence.from_dict(
        {"metadata": {"width": 1080, "height": 1920, "frame_count": num_frames}, "frames": frames}
    )


def run_examples() -> None:
    crop = CropBox.around(POSE.values())
    print(f"crop left={crop.left:.3f} top={crop.top:.3f} side={crop.side:.3f}")
    for point in list(POSE.values())[:3]:
        back = crop.to_original(crop.to_normalized(point))
        assert (round(back[0], 6), round(back[1], 6)) == point, "Roundtrip mismatch"
    print("Roundtrip checks passed.")

    sei = generate_sei(synthetic_walk())
    print(f"SEI {sei.size}x{sei.size} from {sei.frames_used}/{sei.frames_total} frames")
    out = ROOT / "sei_example.png"
    out.write_bytes(sei.png)
    print(f"Wrote {out}")


if __name__ == "__main__":
    run_examples()
