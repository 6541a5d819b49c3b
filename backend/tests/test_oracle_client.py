from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from openai import OpenAIError

from dashverdict.core.errors import ConfigurationError, OracleError
from dashverdict.services.oracle_client import OracleClient
from dashverdict.services.video_payload import VideoPayload

pytestmark = pytest.mark.anyio


class FakeCompletions:
    def __init__(self, reply: Any) -> None:
        self.reply = reply
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class FakeAsyncOpenAI:
    def __init__(self, reply: Any) -> None:
        self.completions = FakeCompletions(reply)
        self.chat = SimpleNamespace(completions=self.completions)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def _choice(content: Any) -> dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(reply: Any, **kwargs: Any) -> tuple[OracleClient, FakeAsyncOpenAI]:
    fake = FakeAsyncOpenAI(reply)
    return OracleClient(client=fake, model="test/model", **kwargs), fake


async def test_sends_prompt_and_inline_video(video: VideoPayload) -> None:
    oracle, fake = _client(_choice('  {"approx_t_s": 1}  '))

    text = await oracle.complete("Where is the crash?", video, json_mode=True)

    assert text == '{"approx_t_s": 1}'
    call = fake.completions.calls[0]
    assert call["model"] == "test/model"
    assert call["response_format"] == {"type": "json_object"}
    text_part, video_part = call["messages"][0]["content"]
    assert text_part == {"type": "text", "text": "Where is the crash?"}
    assert video_part["type"] == "video_url"
    assert video_part["video_url"]["url"].startswith("data:video/mp4;base64,")


async def test_plain_mode_has_no_response_format(video: VideoPayload) -> None:
    oracle, fake = _client(_choice("{}"))

    await oracle.complete("Describe", video)

    assert "response_format" not in fake.completions.calls[0]


@pytest.mark.parametrize("reply", [{"choices": []}, _choice(None), {}])
async def test_missing_content_is_none(video: VideoPayload, reply: dict[str, Any]) -> None:
    oracle, _ = _client(reply)
    assert await oracle.complete("p", video) is None


async def test_error_object_in_body_raises(video: VideoPayload) -> None:
    oracle, _ = _client({"error": {"message": "quota exceeded", "code": 429}})

    with pytest.raises(OracleError, match="quota exceeded"):
        await oracle.complete("p", video)


async def test_transport_error_is_wrapped_and_redacted(video: VideoPayload) -> None:
    oracle, _ = _client(OpenAIError("401 for key sk-very-secret"), api_key="sk-very-secret")

    with pytest.raises(OracleError) as excinfo:
        await oracle.complete("p", video)

    assert "sk-very-secret" not in str(excinfo.value)
    assert "<redacted>" in str(excinfo.value)


async def test_close_closes_underlying_client() -> None:
    oracle, fake = _client(_choice("{}"))
    await oracle.close()
    assert fake.closed


def test_missing_api_key_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        OracleClient(api_key="  ")


def test_missing_base_url_is_a_configuration_error(monkeypatch: pytest.MonkeyPatch) -> None:
    from dashverdict.core.config import settings

    monkeypatch.setattr(settings, "oracle_base_url", "")
    with pytest.raises(ConfigurationError):
        OracleClient(api_key="k")
