from __future__ import annotations

import pytest

from dashverdict.core.errors import OracleError, SectionDescribeFailure
from dashverdict.schemas.analysis import AggregatedResult, SectionDescription, SectionStatus, ValidatedEstimate
from dashverdict.services.describer import assemble, describe_all, parse_description
from dashverdict.services.prompts import PromptBook
from dashverdict.services.sectionizer import sectionize
from dashverdict.services.video_payload import VideoPayload
from helpers import FakeOracle, all_descriptions_ok

pytestmark = pytest.mark.anyio


def test_parse_description_reads_headings() -> None:
    raw = '```json\n{"Approach": " Clear road. ", "Speed": 42, "Notes": null}\n```'

    assert parse_description("ante", raw) == {"Approach": "Clear road.", "Speed": "42", "Notes": ""}


def test_parse_description_accepts_empty_object() -> None:
    assert parse_description("post", "{}") == {}


@pytest.mark.parametrize("raw", [None, "", "   ", "no json here", '{"Impact": {"nested": "x"}}', '{"Impact": ["a"]}'])
def test_parse_description_failures(raw: str | None) -> None:
    with pytest.raises(SectionDescribeFailure):
        parse_description("event", raw)


async def test_describe_all_returns_one_description_per_section(video: VideoPayload, prompts: PromptBook) -> None:
    oracle = FakeOracle(descriptions=all_descriptions_ok())
    sections = sectionize(12.0, 30.0)

    descriptions = await describe_all(oracle, video, sections, "offender", prompts)

    assert [d.section for d in descriptions] == ["ante", "event", "post"]
    assert all(d.status is SectionStatus.DONE for d in descriptions)
    assert descriptions[1].content == {"Impact": "A van cuts across and clips the front bumper."}
    prompts_sent = sorted(call["prompt"] for call in oracle.calls)
    assert prompts_sent == [
        "[ante] offender view from 0.0s to 7.0s",
        "[event] offender view from 7.0s to 17.0s",
        "[post] offender view from 17.0s to 30.0s",
    ]
    assert not any(call["json_mode"] for call in oracle.calls)


async def test_one_failing_section_leaves_the_others_intact(video: VideoPayload, prompts: PromptBook) -> None:
    replies = all_descriptions_ok()
    replies["event"] = OracleError("upstream timed out")
    oracle = FakeOracle(descriptions=replies)

    descriptions = await describe_all(oracle, video, sectionize(12.0, 30.0), "victim", prompts)

    statuses = {d.section: d.status for d in descriptions}
    assert statuses == {"ante": SectionStatus.DONE, "event": SectionStatus.FAILED, "post": SectionStatus.DONE}
    assert "upstream timed out" in descriptions[1].error_detail


async def test_unparseable_section_is_marked_failed(video: VideoPayload, prompts: PromptBook) -> None:
    replies = all_descriptions_ok()
    replies["post"] = "The cars stopped."
    oracle = FakeOracle(descriptions=replies)

    descriptions = await describe_all(oracle, video, sectionize(12.0, 30.0), "victim", prompts)

    assert descriptions[2].status is SectionStatus.FAILED
    assert descriptions[2].error_detail == "no JSON object in response"


async def test_unexpected_exception_is_contained(video: VideoPayload, prompts: PromptBook) -> None:
    replies = all_descriptions_ok()
    replies["ante"] = KeyError("boom")
    oracle = FakeOracle(descriptions=replies)

    descriptions = await describe_all(oracle, video, sectionize(12.0, 30.0), "victim", prompts)

    assert descriptions[0].status is SectionStatus.FAILED
    assert descriptions[0].error_detail.startswith("KeyError")
    assert descriptions[1].status is SectionStatus.DONE


def test_assemble_fills_missing_descriptions_as_pending() -> None:
    estimate = ValidatedEstimate(time=5.0, window=(4.0, 6.0), verdict="victim")
    aggregated = AggregatedResult(samples=(estimate,), robust_time=5.0, robust_window=(4.0, 6.0), verdict="victim")
    sections = sectionize(5.0, 30.0)
    done = SectionDescription(section="post", content={"After": "Both vehicles stop."}, status=SectionStatus.DONE)

    report = assemble(aggregated, sections, [done])

    assert [d.section for d in report.descriptions] == ["ante", "event", "post"]
    assert [d.status for d in report.descriptions] == [SectionStatus.PENDING, SectionStatus.PENDING, SectionStatus.DONE]
    assert not report.is_final


def test_parse_description_with_oversized_number_fails_cleanly() -> None:
    with pytest.raises(SectionDescribeFailure):
        parse_description("event", '{"Speed": 1' + "0" * 5000 + "}")
