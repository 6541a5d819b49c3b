from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from dashverdict.core.config import settings
from dashverdict.core.errors import InsufficientSamples, StaleRun
from dashverdict.schemas.analysis import Report, RunStatus
from dashverdict.services.consensus import aggregate
from dashverdict.services.describer import assemble, describe_all
from dashverdict.services.oracle_client import OracleClient
from dashverdict.services.prompts import PromptBook
from dashverdict.services.run_registry import RunRegistry, RunToken
from dashverdict.services.sampler import Errored, SampleOutcome, accepted_estimates, collect_samples
from dashverdict.services.sectionizer import sectionize
from dashverdict.services.validator import Rejected
from dashverdict.services.video_payload import VideoPayload

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RunResult:
    report: Report
    outcomes: tuple[SampleOutcome, ...]


class AnalysisPipeline:
    """Sampling -> aggregation -> sectioning -> describing for one video.

    When given a registry and a token, the pipeline checks the token between
    stages and raises StaleRun as soon as a newer run has begun in the same
    slot, so superseded results never reach the caller.
    """

    def __init__(
        self,
        client: OracleClient,
        prompts: PromptBook,
        *,
        sample_count: int | None = None,
        half_width: float | None = None,
        policy: str | None = None,
        threshold: float | None = None,
        registry: RunRegistry | None = None,
        on_stage: Callable[[RunStatus], None] | None = None,
    ) -> None:
        self.client = client
        self.prompts = prompts
        self.sample_count = settings.sample_count if sample_count is None else sample_count
        if self.sample_count < 1:
            raise ValueError(f"sample_count must be at least 1, got {self.sample_count}")
        self.half_width = settings.event_half_width_sec if half_width is None else half_width
        self.policy = policy or settings.verdict_policy
        self.threshold = settings.supermajority_threshold if threshold is None else threshold
        self.registry = registry
        self.on_stage = on_stage

    def _enter(self, status: RunStatus, token: RunToken | None) -> None:
        self._check(token)
        logger.info("[pipeline] %s", status.value)
        if self.on_stage:
            self.on_stage(status)

    def _check(self, token: RunToken | None) -> None:
        if token is None or self.registry is None:
            return
        if not self.registry.is_current(token):
            raise StaleRun(token.slot, token.generation)

    async def run(self, video: VideoPayload, duration: float, token: RunToken | None = None) -> RunResult:
        if duration <= 0:
            raise ValueError(f"Video duration must be positive, got {duration}")

        self._enter(RunStatus.SAMPLING, token)
        outcomes = await collect_samples(self.client, video, self.sample_count)

        self._enter(RunStatus.AGGREGATING, token)
        estimates = accepted_estimates(outcomes)
        if not estimates:
            raise InsufficientSamples(
                total=len(outcomes),
                rejected=sum(isinstance(o, Rejected) for o in outcomes),
                errored=sum(isinstance(o, Errored) for o in outcomes),
                outcomes=outcomes,
            )
        aggregated = aggregate(estimates, policy=self.policy, threshold=self.threshold)
        logger.info(
            "[pipeline] consensus from %d/%d samples: t=%.2f window=%s verdict=%s",
            len(estimates),
            len(outcomes),
            aggregated.robust_time,
            aggregated.robust_window,
            aggregated.verdict,
        )

        self._enter(RunStatus.SECTIONIZING, token)
        sections = sectionize(aggregated.robust_time, duration, self.half_width)

        self._enter(RunStatus.DESCRIBING, token)
        descriptions = await describe_all(self.client, video, sections, aggregated.verdict, self.prompts)

        self._check(token)
        report = assemble(aggregated, sections, descriptions)
        logger.info("[pipeline] %s", RunStatus.COMPLETE.value)
        return RunResult(report=report, outcomes=tuple(outcomes))
