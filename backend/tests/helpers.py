from __future__ import annotations

import asyncio
import json
from typing import Any

from dashverdict.core.errors import OracleError
from dashverdict.services.video_payload import VideoPayload


class FakeOracle:
    """Stands in for OracleClient.

    Sampling replies (json_mode=True) are handed out in request order. Describe
    replies are looked up by the ``[section]`` marker the test templates put in
    each prompt.
    """

    def __init__(
        self,
        samples: list[Any] | None = None,
        descriptions: dict[str, Any] | None = None,
    ) -> None:
        self.samples = list(samples or [])
        self.descriptions = dict(descriptions or {})
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def complete(self, prompt: str, video: VideoPayload, *, json_mode: bool = False) -> str | None:
        self.calls.append({"prompt": prompt, "video": video, "json_mode": json_mode})
        await asyncio.sleep(0)
        if json_mode:
            if not self.samples:
                raise OracleError("no more sample replies configured")
            reply = self.samples.pop(0)
        else:
            reply = next((v for k, v in self.descriptions.items() if f"[{k}]" in prompt), None)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def close(self) -> None:
        self.closed = True


def sample_reply(t: float, window: tuple[float, float], fault: str) -> str:
    return json.dumps({"approx_t_s": t, "window_s": list(window), "fault": fault})


def description_reply(**content: str) -> str:
    return json.dumps(content)


def all_descriptions_ok() -> dict[str, str]:
    return {
        "ante": description_reply(Approach="Steady speed in the right lane."),
        "event": description_reply(Impact="A van cuts across and clips the front bumper."),
        "post": description_reply(Aftermath="Both vehicles stop on the shoulder."),
    }


TEST_TEMPLATES = {
    verdict: {
        name: f"[{name}] {verdict} view from {{{{start}}}}s to {{{{end}}}}s"
        for name in ("ante", "event", "post")
    }
    for verdict in ("victim", "offender")
}
