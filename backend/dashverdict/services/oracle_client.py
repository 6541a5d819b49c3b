from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from dashverdict.core.config import settings
from dashverdict.core.errors import ConfigurationError, OracleError
from dashverdict.services.video_payload import VideoPayload

logger = logging.getLogger(__name__)


def _to_dict(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return dict(value)


def _redact(text: str, secrets: list[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, "<redacted>")
    return text


class OracleClient:
    """One-turn prompt + inline video requests against an OpenAI-compatible endpoint."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        self._api_key = (settings.oracle_api_key if api_key is None else api_key).strip()
        self.base_url = base_url or settings.oracle_base_url
        self.model = model or settings.oracle_model
        if client is None:
            if not self._api_key:
                raise ConfigurationError("ORACLE_API_KEY is not set")
            if not self.base_url:
                raise ConfigurationError("ORACLE_BASE_URL is not set")
            client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                timeout=timeout or settings.oracle_timeout_sec,
            )
        self._client = client

    async def complete(self, prompt: str, video: VideoPayload, *, json_mode: bool = False) -> str | None:
        """Return the first choice's text (stripped), or None when the oracle sent no content.

        Raises OracleError when the call itself fails or the body carries an error object.
        """
        kwargs: dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {"type": "video_url", "video_url": {"url": video.data_url}},
                        ],
                    }
                ],
                **kwargs,
            )
        except OpenAIError as exc:
            raise OracleError(_redact(f"Request failed: {exc}", [self._api_key])) from exc

        payload = _to_dict(response)
        error = payload.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            raise OracleError(_redact(f"Service error: {message}", [self._api_key]))

        choices = payload.get("choices") or []
        if not choices:
            return None
        message = _to_dict(choices[0]).get("message") or {}
        content = _to_dict(message).get("content")
        if not isinstance(content, str):
            return None
        return content.strip()

    async def close(self) -> None:
        close = getattr(self._client, "close", None)
        if close is not None:
            await close()
