from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from dashverdict.core.errors import OracleError, SectionDescribeFailure
from dashverdict.schemas.analysis import (
    AggregatedResult,
    Report,
    SectionDescription,
    SectionStatus,
    VideoSection,
)
from dashverdict.services.oracle_client import OracleClient
from dashverdict.services.prompts import PromptBook
from dashverdict.services.validator import extract_first_object
from dashverdict.services.video_payload import VideoPayload

logger = logging.getLogger(__name__)


def parse_description(section: str, raw: str | None) -> dict[str, str]:
    """Read a heading -> body mapping out of a describe response."""
    if raw is None or not raw.strip():
        raise SectionDescribeFailure(section, "empty response")
    payload = extract_first_object(raw)
    if payload is None:
        raise SectionDescribeFailure(section, "no JSON object in response")

    content: dict[str, str] = {}
    for heading, body in payload.items():
        if isinstance(body, (dict, list)):
            raise SectionDescribeFailure(section, f"heading {heading!r} is not plain text")
        content[str(heading).strip()] = "" if body is None else str(body).strip()
    return content


async def describe_section(
    client: OracleClient,
    video: VideoPayload,
    section: VideoSection,
    prompt: str,
) -> SectionDescription:
    try:
        raw = await client.complete(prompt, video)
        content = parse_description(section.name, raw)
    except OracleError as exc:
        logger.warning("[describer] %s: oracle call failed: %s", section.name, exc)
        return SectionDescription(section=section.name, status=SectionStatus.FAILED, error_detail=str(exc))
    except SectionDescribeFailure as exc:
        logger.info("[describer] %s: unusable response: %s", section.name, exc.detail)
        return SectionDescription(section=section.name, status=SectionStatus.FAILED, error_detail=exc.detail)

    logger.info("[describer] %s: %d heading(s)", section.name, len(content))
    return SectionDescription(section=section.name, content=content, status=SectionStatus.DONE)


async def describe_all(
    client: OracleClient,
    video: VideoPayload,
    sections: Sequence[VideoSection],
    verdict: str,
    prompts: PromptBook,
) -> tuple[SectionDescription, ...]:
    """One concurrent describe call per section; a failing section never affects the others."""
    rendered = [prompts.render(verdict, section) for section in sections]
    results: list[Any] = await asyncio.gather(
        *(describe_section(client, video, s, p) for s, p in zip(sections, rendered)),
        return_exceptions=True,
    )

    descriptions: list[SectionDescription] = []
    for section, result in zip(sections, results):
        if isinstance(result, Exception):
            logger.exception("[describer] %s crashed", section.name, exc_info=result)
            descriptions.append(
                SectionDescription(
                    section=section.name,
                    status=SectionStatus.FAILED,
                    error_detail=f"{type(result).__name__}: {result}",
                )
            )
        elif isinstance(result, BaseException):
            raise result
        else:
            descriptions.append(result)
    return tuple(descriptions)


def assemble(
    aggregated: AggregatedResult,
    sections: Sequence[VideoSection],
    descriptions: Sequence[SectionDescription],
) -> Report:
    by_name = {d.section: d for d in descriptions}
    ordered = tuple(
        by_name.get(s.name) or SectionDescription(section=s.name, status=SectionStatus.PENDING)
        for s in sections
    )
    return Report(aggregated=aggregated, sections=tuple(sections), descriptions=ordered)
