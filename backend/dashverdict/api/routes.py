from __future__ import annotations

import shutil
import uuid
from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from dashverdict.core.config import settings
from dashverdict.db import get_db
from dashverdict.models import AnalysisRecord
from dashverdict.schemas.analysis import (
    TERMINAL_STATUSES,
    AnalysisCreateResponse,
    AnalysisOut,
    RunStatus,
    SampleOut,
)
from dashverdict.services.analysis_service import process_analysis, report_from_record
from dashverdict.services.run_registry import run_registry
from dashverdict.services.video_payload import is_video_filename

router = APIRouter()


def _analysis_to_out(record: AnalysisRecord) -> AnalysisOut:
    window = None
    if record.robust_window_start is not None and record.robust_window_end is not None:
        window = (record.robust_window_start, record.robust_window_end)
    return AnalysisOut(
        id=record.id,
        created_at=record.created_at,
        status=RunStatus(record.status),
        slot=record.slot,
        generation=record.generation,
        filename=record.filename,
        duration_seconds=record.duration_seconds,
        sample_count=record.sample_count,
        accepted_count=record.accepted_count,
        rejected_count=record.rejected_count,
        errored_count=record.errored_count,
        robust_time=record.robust_time,
        robust_window=window,
        verdict=record.verdict,
        message=record.message,
        error=record.error,
        report_json_url=record.report_json_url,
        report_pdf_url=record.report_pdf_url,
    )


def _get_or_404(db: Session, analysis_id: str) -> AnalysisRecord:
    record = db.get(AnalysisRecord, analysis_id)
    if not record:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return record


@router.post("/analyses", response_model=AnalysisCreateResponse)
def create_analysis(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    slot: str = Form("default"),
    samples: int | None = Form(None),
    duration_seconds: float | None = Form(None),
    db: Session = Depends(get_db),
) -> AnalysisCreateResponse:
    if not is_video_filename(file.filename):
        raise HTTPException(status_code=400, detail="A video file (.mp4, .mov, .webm, .mkv, .avi, .m4v) is required")
    if duration_seconds is not None and duration_seconds <= 0:
        raise HTTPException(status_code=400, detail="duration_seconds must be positive")
    if samples is not None and not 1 <= samples <= 25:
        raise HTTPException(status_code=400, detail="samples must be between 1 and 25")

    analysis_id = str(uuid.uuid4())
    upload_root = Path(settings.upload_dir) / "analyses" / analysis_id
    upload_root.mkdir(parents=True, exist_ok=True)
    filename = Path(file.filename).name
    with (upload_root / filename).open("wb") as handle:
        shutil.copyfileobj(file.file, handle)

    token, previous = run_registry.begin(slot, analysis_id)

    superseded: list[str] = []
    if previous is not None:
        older = db.get(AnalysisRecord, previous.run_id)
        if older and RunStatus(older.status) not in TERMINAL_STATUSES:
            older.status = RunStatus.SUPERSEDED.value
            older.message = "Superseded by a newer analysis"
            superseded.append(older.id)

    record = AnalysisRecord(
        id=analysis_id,
        status=RunStatus.QUEUED.value,
        slot=slot,
        generation=token.generation,
        filename=filename,
        upload_dir=str(upload_root.resolve()),
        duration_seconds=duration_seconds or 0.0,
        sample_count=samples or settings.sample_count,
        message="Queued for analysis",
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    background_tasks.add_task(process_analysis, analysis_id)
    return AnalysisCreateResponse(analysis=_analysis_to_out(record), superseded=superseded)


@router.get("/analyses", response_model=list[AnalysisOut])
def list_analyses(limit: int = 50, db: Session = Depends(get_db)) -> list[AnalysisOut]:
    rows = (
        db.execute(select(AnalysisRecord).order_by(desc(AnalysisRecord.created_at)).limit(max(1, min(limit, 500))))
        .scalars()
        .all()
    )
    return [_analysis_to_out(r) for r in rows]


@router.get("/analyses/{analysis_id}", response_model=AnalysisOut)
def get_analysis(analysis_id: str, db: Session = Depends(get_db)) -> AnalysisOut:
    return _analysis_to_out(_get_or_404(db, analysis_id))


@router.get("/analyses/{analysis_id}/samples", response_model=list[SampleOut])
def get_analysis_samples(analysis_id: str, db: Session = Depends(get_db)) -> list[SampleOut]:
    record = _get_or_404(db, analysis_id)
    out: list[SampleOut] = []
    for row in record.samples:
        window = None
        if row.window_start is not None and row.window_end is not None:
            window = (row.window_start, row.window_end)
        out.append(
            SampleOut(
                index=row.idx,
                outcome=row.outcome,
                time=row.time,
                window=window,
                verdict=row.verdict,
                detail=row.detail,
            )
        )
    return out


@router.get("/analyses/{analysis_id}/report")
def get_analysis_report(analysis_id: str, db: Session = Depends(get_db)) -> dict:
    record = _get_or_404(db, analysis_id)
    status = RunStatus(record.status)
    if status in {RunStatus.FAILED, RunStatus.SUPERSEDED}:
        raise HTTPException(status_code=409, detail=f"Analysis {status.value}: {record.error or record.message}")
    if status is not RunStatus.COMPLETE:
        raise HTTPException(status_code=404, detail="Report not ready")

    report = report_from_record(record)
    if report is None:
        raise HTTPException(status_code=404, detail="Report artifact missing")
    return report


def _delete_analysis_files(analysis_id: str, upload_dir_path: str | None) -> None:
    if upload_dir_path:
        shutil.rmtree(upload_dir_path, ignore_errors=True)
    shutil.rmtree(Path(settings.report_dir) / analysis_id, ignore_errors=True)


@router.delete("/analyses/{analysis_id}")
def delete_analysis(analysis_id: str, db: Session = Depends(get_db)) -> dict:
    """Delete an analysis with its samples, sections, upload and report files."""
    record = _get_or_404(db, analysis_id)
    token = run_registry.current(record.slot)
    if token is not None and token.run_id == analysis_id:
        run_registry.release(token)
    upload_dir_path = record.upload_dir
    db.delete(record)
    db.commit()
    _delete_analysis_files(analysis_id, upload_dir_path)
    return {"deleted": analysis_id}
