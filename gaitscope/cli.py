"""Command-line interface for the gait analysis pipelines.

Usage:
    gaitscope quality pose.json
    gaitscope sei pose.json -o sei.png [--jpeg sei.jpg] [--size 224]
    gaitscope analyze pose.json --model-factory mypkg.models:load \
        [--export-json report.json] [--sei sei.png]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from gaitscope.analysis import analyze_sequence
from gaitscope.config import (
    AnomalyConfig,
    NanFillPolicy,
    NormalizationPolicy,
    NormalizationStats,
    SeiConfig,
)
from gaitscope.io.images import reencode_jpeg
from gaitscope.io.pose_document import load_pose_sequence
from gaitscope.models.session import AnalysisContext, load_model_factory
from gaitscope.quality.failures import GaitScopeError, assess_pose_quality
from gaitscope.sei.generator import generate_sei


def eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="gaitscope",
        description="Gait anomaly scoring and skeleton energy images from pose-landmark JSON.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    q = sub.add_parser("quality", help="Check pose coverage before analysis")
    q.add_argument("pose", help="Pose JSON document")

    s = sub.add_parser("sei", help="Render the skeleton energy image")
    s.add_argument("pose", help="Pose JSON document")
    s.add_argument("-o", "--output", required=True, help="Output PNG path")
    s.add_argument("--jpeg", default=None, help="Also write the JPEG re-encode here")
    s.add_argument("--size", type=int, default=224, help="Canvas size in pixels (default: 224)")
    s.add_argument("--pixel-coords", action="store_true",
                   help="Landmarks are pixel coordinates rather than [0,1] fractions")

    a = sub.add_parser("analyze", help="Run anomaly detection, SEI and classification")
    a.add_argument("pose", help="Pose JSON document")
    a.add_argument("--model-factory", required=True,
                   help="'package.module:callable' returning (reconstruct_loader, classify_loader)")
    a.add_argument("--export-json", default=None, help="Write the report JSON here")
    a.add_argument("--sei", default=None, help="Write the SEI PNG here")
    a.add_argument("--normalization", choices=[m.value for m in NormalizationPolicy],
                   default=NormalizationPolicy.PER_SEQUENCE.value,
                   help="Z-score statistics source (default: per-sequence)")
    a.add_argument("--stats", default=None, help="Training normalization stats JSON (global mode)")
    a.add_argument("--nan-fill", choices=[m.value for m in NanFillPolicy],
                   default=NanFillPolicy.PROPAGATE.value,
                   help="Policy for channels with no valid sample (default: propagate)")
    a.add_argument("--pixel-coords", action="store_true",
                   help="Landmarks are pixel coordinates rather than [0,1] fractions")

    return p.parse_args(argv)


def _anomaly_config(args: argparse.Namespace) -> AnomalyConfig:
    stats = NormalizationStats.from_json(args.stats) if args.stats else None
    return AnomalyConfig(
        nan_fill=NanFillPolicy(args.nan_fill),
        normalization=NormalizationPolicy(args.normalization),
        normalization_stats=stats,
    )


def run_quality(args: argparse.Namespace) -> int:
    report = assess_pose_quality(load_pose_sequence(args.pose))
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.valid else 1


def run_sei(args: argparse.Namespace) -> int:
    sequence = load_pose_sequence(args.pose)
    sei = generate_sei(sequence, SeiConfig(size=args.size), normalized_input=not args.pixel_coords)
    out_path = Path(args.output).expanduser()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(sei.png)
    print(f"Done. Wrote: {out_path} ({sei.frames_used}/{sei.frames_total} frames)")
    if args.jpeg:
        jpeg_path = Path(args.jpeg).expanduser()
        jpeg_path.write_bytes(reencode_jpeg(sei.png))
        print(f"Done. Wrote: {jpeg_path}")
    return 0


async def _analyze(args: argparse.Namespace) -> int:
    sequence = load_pose_sequence(args.pose)
    reconstruct_loader, classify_loader = load_model_factory(args.model_factory)
    context = AnalysisContext.from_loaders(
        reconstruct_loader, classify_loader, anomaly_config=_anomaly_config(args)
    )
    try:
        await context.load()
        report = await analyze_sequence(sequence, context, normalized_input=not args.pixel_coords)
    finally:
        context.dispose()

    payload = report.to_dict()
    if args.export_json:
        Path(args.export_json).expanduser().write_text(json.dumps(payload, indent=2, allow_nan=False))
    if args.sei:
        Path(args.sei).expanduser().write_bytes(report.sei.png)
    print(json.dumps(payload, indent=2, allow_nan=False))
    return 0


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "quality":
            return run_quality(args)
        if args.command == "sei":
            return run_sei(args)
        return asyncio.run(_analyze(args))
    except (GaitScopeError, OSError, ValueError) as ex:
        eprint(f"Error: {ex}")
        return 2


def main(argv: Optional[List[str]] = None) -> int:
    return run(parse_args(argv))


if __name__ == "__main__":
    raise SystemExit(main())
