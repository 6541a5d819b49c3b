from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

from dashverdict.core.config import settings
from dashverdict.core.errors import ConfigurationError, InsufficientSamples
from dashverdict.services.analysis_service import load_prompts
from dashverdict.services.consensus import POLICIES
from dashverdict.services.oracle_client import OracleClient
from dashverdict.services.pipeline import AnalysisPipeline, RunResult
from dashverdict.services.report_writer import write_report_json, write_report_pdf
from dashverdict.services.video_payload import VideoPayload, probe_duration

EXIT_INSUFFICIENT_SAMPLES = 2
EXIT_CONFIGURATION = 3


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Estimate collision time and fault from a dashcam video")
    parser.add_argument("--video", required=True, help="Path to the video file")
    parser.add_argument("--duration", type=float, default=None, help="Video duration in seconds (probed if omitted)")
    parser.add_argument("--samples", type=int, default=settings.sample_count, help="Number of independent estimates")
    parser.add_argument("--policy", choices=POLICIES, default=settings.verdict_policy)
    parser.add_argument("--outdir", default=settings.report_dir, help="Directory where the report is written")
    args = parser.parse_args(argv)
    if not 1 <= args.samples <= 25:
        parser.error("--samples must be between 1 and 25")
    return args


async def _run(args: argparse.Namespace, video_path: Path, duration: float) -> RunResult:
    client = OracleClient()
    try:
        pipeline = AnalysisPipeline(client, load_prompts(), sample_count=args.samples, policy=args.policy)
        return await pipeline.run(VideoPayload.from_path(video_path), duration)
    finally:
        await client.close()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=settings.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    video_path = Path(args.video)
    if not video_path.exists():
        print(f"Video not found: {video_path}", file=sys.stderr)
        return 1
    duration = args.duration or probe_duration(video_path)
    if duration <= 0:
        print("Could not determine video duration; pass --duration", file=sys.stderr)
        return 1

    try:
        result = asyncio.run(_run(args, video_path, duration))
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except InsufficientSamples as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_INSUFFICIENT_SAMPLES

    timestamp = datetime.utcnow().strftime("%Y%m%d_%H%M%S")
    out_dir = Path(args.outdir) / f"cli_{timestamp}"
    meta = {"filename": video_path.name, "duration_seconds": duration}
    write_report_json(result.report, out_dir / "report.json", meta)
    write_report_pdf(result.report, out_dir / "report.pdf", title=f"Collision Report: {video_path.name}")

    aggregated = result.report.aggregated
    summary = {
        "video": str(video_path),
        "duration_seconds": duration,
        "samples": len(result.outcomes),
        "accepted": len(aggregated.samples),
        "collision_time": aggregated.robust_time,
        "contact_window": list(aggregated.robust_window),
        "verdict": aggregated.verdict,
        "sections": {d.section: d.status.value for d in result.report.descriptions},
        "output_dir": str(out_dir.resolve()),
    }
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
