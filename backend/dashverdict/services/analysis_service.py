from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Sequence

from sqlalchemy.orm import Session

from dashverdict.core.config import settings
from dashverdict.core.errors import ConfigurationError, InsufficientSamples, StaleRun
from dashverdict.db import SessionLocal
from dashverdict.models import AnalysisRecord, SampleRecord, SectionRecord
from dashverdict.schemas.analysis import Report, RunStatus
from dashverdict.services.oracle_client import OracleClient
from dashverdict.services.pipeline import AnalysisPipeline, RunResult
from dashverdict.services.prompts import PromptBook
from dashverdict.services.report_writer import write_report_json, write_report_pdf
from dashverdict.services.run_registry import RunToken, run_registry
from dashverdict.services.sampler import Errored, SampleOutcome
from dashverdict.services.validator import Accepted, Rejected
from dashverdict.services.video_payload import VideoPayload, probe_duration

logger = logging.getLogger(__name__)


STAGE_MESSAGES = {
    RunStatus.SAMPLING: "Collecting collision estimates",
    RunStatus.AGGREGATING: "Building consensus",
    RunStatus.SECTIONIZING: "Splitting the timeline",
    RunStatus.DESCRIBING: "Describing sections",
    RunStatus.COMPLETE: "Analysis complete",
}


def load_prompts() -> PromptBook:
    return PromptBook.load(Path(settings.prompts_path), fallback_verdict=settings.fallback_verdict)


def _store_samples(db: Session, record: AnalysisRecord, outcomes: Sequence[SampleOutcome]) -> None:
    db.query(SampleRecord).filter(SampleRecord.analysis_id == record.id).delete()
    for idx, outcome in enumerate(outcomes):
        row = SampleRecord(analysis_id=record.id, idx=idx, outcome="errored")
        if isinstance(outcome, Accepted):
            est = outcome.estimate
            row.outcome = "accepted"
            row.time = est.time
            row.window_start, row.window_end = est.window
            row.verdict = est.verdict
        elif isinstance(outcome, Rejected):
            row.outcome = "rejected"
            row.detail = outcome.reason
        elif isinstance(outcome, Errored):
            row.detail = outcome.detail
        db.add(row)

    record.sample_count = len(outcomes)
    record.accepted_count = sum(isinstance(o, Accepted) for o in outcomes)
    record.rejected_count = sum(isinstance(o, Rejected) for o in outcomes)
    record.errored_count = sum(isinstance(o, Errored) for o in outcomes)


def _store_report(db: Session, record: AnalysisRecord, report: Report) -> None:
    aggregated = report.aggregated
    record.robust_time = aggregated.robust_time
    record.robust_window_start, record.robust_window_end = aggregated.robust_window
    record.verdict = aggregated.verdict

    db.query(SectionRecord).filter(SectionRecord.analysis_id == record.id).delete()
    descriptions = {d.section: d for d in report.descriptions}
    for idx, section in enumerate(report.sections):
        desc = descriptions[section.name]
        db.add(
            SectionRecord(
                analysis_id=record.id,
                idx=idx,
                name=section.name,
                start_sec=section.start,
                end_sec=section.end,
                status=desc.status.value,
                content_json=json.dumps(desc.content),
                error_detail=desc.error_detail,
            )
        )

    report_root = Path(settings.report_dir) / record.id
    meta = {
        "analysis_id": record.id,
        "filename": record.filename,
        "duration_seconds": record.duration_seconds,
    }
    json_path = write_report_json(report, report_root / "report.json", meta)
    pdf_path = write_report_pdf(report, report_root / "report.pdf", title=f"Collision Report: {record.filename}")
    record.report_json_url = f"/reports/{record.id}/{json_path.name}"
    record.report_pdf_url = f"/reports/{record.id}/{pdf_path.name}" if pdf_path.exists() else None


def _fail(db: Session, record: AnalysisRecord, message: str, error: str) -> None:
    record.status = RunStatus.FAILED.value
    record.message = message
    record.error = error
    db.commit()


async def _run_pipeline(
    pipeline: AnalysisPipeline,
    client: OracleClient,
    video_path: Path,
    duration: float,
    token: RunToken,
) -> RunResult:
    try:
        return await pipeline.run(VideoPayload.from_path(video_path), duration, token=token)
    finally:
        await client.close()


def process_analysis(analysis_id: str) -> None:
    """Background task for one upload.

    Sync so Starlette runs it in the threadpool; the oracle calls get their own
    event loop through asyncio.run.
    """
    db = SessionLocal()
    token: RunToken | None = None
    try:
        record = db.get(AnalysisRecord, analysis_id)
        if not record:
            return
        token = RunToken(slot=record.slot, generation=record.generation, run_id=record.id)
        if not run_registry.is_current(token):
            record.status = RunStatus.SUPERSEDED.value
            record.message = "Superseded by a newer analysis"
            db.commit()
            return

        video_path = Path(record.upload_dir) / record.filename
        if not record.duration_seconds:
            record.duration_seconds = round(probe_duration(video_path), 3)
            db.commit()
        if record.duration_seconds <= 0:
            _fail(db, record, "Analysis failed", "Could not determine video duration")
            return

        try:
            prompts = load_prompts()
            client = OracleClient()
        except ConfigurationError as exc:
            logger.error("[analysis] %s: configuration error: %s", analysis_id, exc)
            _fail(db, record, "Configuration error", str(exc))
            return

        def on_stage(status: RunStatus) -> None:
            record.status = status.value
            record.message = STAGE_MESSAGES.get(status, status.value)
            db.commit()

        pipeline = AnalysisPipeline(
            client,
            prompts,
            sample_count=record.sample_count or settings.sample_count,
            registry=run_registry,
            on_stage=on_stage,
        )
        try:
            result = asyncio.run(_run_pipeline(pipeline, client, video_path, record.duration_seconds, token))
        except StaleRun:
            logger.info("[analysis] %s superseded; discarding results", analysis_id)
            record.status = RunStatus.SUPERSEDED.value
            record.message = "Superseded by a newer analysis"
            db.commit()
            return
        except InsufficientSamples as exc:
            logger.warning("[analysis] %s: %s", analysis_id, exc)
            _store_samples(db, record, exc.outcomes)
            _fail(db, record, "No usable collision estimates", str(exc))
            return

        _store_samples(db, record, result.outcomes)
        _store_report(db, record, result.report)
        record.status = RunStatus.COMPLETE.value
        record.message = STAGE_MESSAGES[RunStatus.COMPLETE]
        record.error = None
        db.commit()
        logger.info("[analysis] %s complete: verdict=%s", analysis_id, record.verdict)

    except Exception as exc:  # pragma: no cover
        logger.exception("[analysis] %s crashed", analysis_id)
        db.rollback()
        record = db.get(AnalysisRecord, analysis_id)
        if record:
            _fail(db, record, "Analysis crashed", str(exc))
    finally:
        if token is not None:
            run_registry.release(token)
        db.close()


def report_from_record(record: AnalysisRecord) -> dict | None:
    if not record.report_json_url:
        return None
    path = Path(settings.report_dir) / record.id / "report.json"
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))
