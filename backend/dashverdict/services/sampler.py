from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Union

from dashverdict.core.errors import OracleError
from dashverdict.schemas.analysis import ValidatedEstimate
from dashverdict.services.oracle_client import OracleClient
from dashverdict.services.prompts import SAMPLING_PROMPT
from dashverdict.services.validator import Accepted, Rejected, validate
from dashverdict.services.video_payload import VideoPayload

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Errored:
    detail: str


SampleOutcome = Union[Accepted, Rejected, Errored]


async def request_sample(client: OracleClient, video: VideoPayload, index: int) -> SampleOutcome:
    try:
        raw = await client.complete(SAMPLING_PROMPT, video, json_mode=True)
    except OracleError as exc:
        logger.warning("[sampler] sample %d: oracle call failed: %s", index, exc)
        return Errored(str(exc))

    outcome = validate(raw)
    if isinstance(outcome, Rejected):
        logger.info("[sampler] sample %d rejected: %s (raw=%.80r)", index, outcome.reason, raw)
    else:
        logger.info(
            "[sampler] sample %d accepted: t=%.2f window=%s verdict=%s",
            index,
            outcome.estimate.time,
            outcome.estimate.window,
            outcome.estimate.verdict,
        )
    return outcome


async def collect_samples(client: OracleClient, video: VideoPayload, count: int) -> list[SampleOutcome]:
    """Fire ``count`` sampling calls at once and wait for all of them to settle.

    Outcomes are returned in request order regardless of arrival order.
    """
    results = await asyncio.gather(
        *(request_sample(client, video, idx) for idx in range(count)),
        return_exceptions=True,
    )
    outcomes: list[SampleOutcome] = []
    for idx, result in enumerate(results):
        if isinstance(result, Exception):
            logger.exception("[sampler] sample %d crashed", idx, exc_info=result)
            outcomes.append(Errored(f"{type(result).__name__}: {result}"))
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes.append(result)
    return outcomes


def accepted_estimates(outcomes: Iterable[SampleOutcome]) -> list[ValidatedEstimate]:
    return [o.estimate for o in outcomes if isinstance(o, Accepted)]
