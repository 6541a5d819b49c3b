from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dashverdict.db import Base


class AnalysisRecord(Base):
    __tablename__ = "analyses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="queued", nullable=False, index=True)

    slot: Mapped[str] = mapped_column(String(64), default="default", nullable=False, index=True)
    generation: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    upload_dir: Mapped[str] = mapped_column(Text, nullable=False)
    duration_seconds: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    sample_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    accepted_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rejected_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errored_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    robust_time: Mapped[float | None] = mapped_column(Float, nullable=True)
    robust_window_start: Mapped[float | None] = mapped_column(Float, nullable=True)
    robust_window_end: Mapped[float | None] = mapped_column(Float, nullable=True)
    verdict: Mapped[str | None] = mapped_column(String(16), nullable=True)

    message: Mapped[str] = mapped_column(Text, default="", nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    report_json_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    report_pdf_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    samples: Mapped[list[SampleRecord]] = relationship(
        back_populates="analysis", cascade="all, delete-orphan", order_by="SampleRecord.idx"
    )
    sections: Mapped[list[SectionRecord]] = relationship(
        back_populates="analysis", cascade="all, delete-orphan", order_by="SectionRecord.idx"
    )


class SampleRecord(Base):
    __tablename__ = "samples"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    analysis_id: Mapped[str] = mapped_column(
        ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    idx: Mapped[int] = mapped_column(Integer, nullable=False)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)  # accepted|rejected|errored

    time: Mapped[float | None] = mapped_column(Float, nullable=True)
    window_start: Mapped[float | None] = mapped_column(Float, nullable=True)
    window_end: Mapped[float | None] = mapped_column(Float, nullable=True)
    verdict: Mapped[str | None] = mapped_column(String(16), nullable=True)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    analysis: Mapped[AnalysisRecord] = relationship(back_populates="samples")


class SectionRecord(Base):
    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    analysis_id: Mapped[str] = mapped_column(
        ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    idx: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(16), nullable=False)
    start_sec: Mapped[float] = mapped_column(Float, nullable=False)
    end_sec: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    content_json: Mapped[str] = mapped_column(Text, default="{}", nullable=False)
    error_detail: Mapped[str | None] = mapped_column(Text, nullable=True)

    analysis: Mapped[AnalysisRecord] = relationship(back_populates="sections")
