from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


Verdict = Literal["victim", "offender", "witness"]
SectionName = Literal["ante", "event", "post"]

VERDICTS: tuple[str, ...] = ("victim", "offender", "witness")
SECTION_NAMES: tuple[str, ...] = ("ante", "event", "post")


class SectionStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class RunStatus(str, Enum):
    QUEUED = "queued"
    SAMPLING = "sampling"
    AGGREGATING = "aggregating"
    SECTIONIZING = "sectionizing"
    DESCRIBING = "describing"
    COMPLETE = "complete"
    FAILED = "failed"
    SUPERSEDED = "superseded"


TERMINAL_STATUSES = {RunStatus.COMPLETE, RunStatus.FAILED, RunStatus.SUPERSEDED}


class ValidatedEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: float = Field(ge=0.0)
    window: tuple[float, float]
    verdict: Verdict


class AggregatedResult(BaseModel):
    """Consensus over the accepted samples of one run.

    ``robust_window`` is the median of window starts and the median of window
    ends, computed independently of ``robust_time``; the time may fall outside it.
    """

    model_config = ConfigDict(frozen=True)

    samples: tuple[ValidatedEstimate, ...]
    robust_time: float
    robust_window: tuple[float, float]
    verdict: Verdict


class VideoSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: SectionName
    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start


class SectionDescription(BaseModel):
    model_config = ConfigDict(frozen=True)

    section: SectionName
    content: dict[str, str] = Field(default_factory=dict)
    status: SectionStatus = SectionStatus.PENDING
    error_detail: str | None = None


class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    aggregated: AggregatedResult
    sections: tuple[VideoSection, ...]
    descriptions: tuple[SectionDescription, ...]

    @property
    def is_final(self) -> bool:
        return all(d.status is not SectionStatus.PENDING for d in self.descriptions)


class AnalysisOut(BaseModel):
    id: str
    created_at: datetime
    status: RunStatus
    slot: str
    generation: int
    filename: str
    duration_seconds: float = 0.0
    sample_count: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    errored_count: int = 0
    robust_time: float | None = None
    robust_window: tuple[float, float] | None = None
    verdict: Verdict | None = None
    message: str = ""
    error: str | None = None
    report_json_url: str | None = None
    report_pdf_url: str | None = None


class SampleOut(BaseModel):
    index: int
    outcome: Literal["accepted", "rejected", "errored"]
    time: float | None = None
    window: tuple[float, float] | None = None
    verdict: Verdict | None = None
    detail: str | None = None


class AnalysisCreateResponse(BaseModel):
    analysis: AnalysisOut
    superseded: list[str] = Field(default_factory=list)
