from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Union

from dashverdict.schemas.analysis import VERDICTS, ValidatedEstimate


TIME_KEY = "approx_t_s"
WINDOW_KEY = "window_s"
VERDICT_KEY = "fault"

_decoder = json.JSONDecoder()


@dataclass(slots=True, frozen=True)
class Accepted:
    estimate: ValidatedEstimate


@dataclass(slots=True, frozen=True)
class Rejected:
    reason: str
    raw: str | None = None


ValidationOutcome = Union[Accepted, Rejected]


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        lines = stripped.splitlines()
        if lines and lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].startswith("```"):
            lines = lines[:-1]
        stripped = "\n".join(lines).strip()
    return stripped


def extract_first_object(text: str | None) -> dict[str, Any] | None:
    """Return the first complete JSON object embedded in ``text``, or None."""
    if not text:
        return None
    cleaned = _strip_code_fences(text).replace("\u0000", "")
    pos = cleaned.find("{")
    while pos != -1:
        try:
            obj, _ = _decoder.raw_decode(cleaned, pos)
        except ValueError:
            # JSONDecodeError, or an integer literal past the int conversion limit
            pos = cleaned.find("{", pos + 1)
            continue
        if isinstance(obj, dict):
            return obj
        pos = cleaned.find("{", pos + 1)
    return None


def _as_seconds(value: Any) -> float | None:
    # bool is an int subclass; "true" is not a time
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def validate(raw: str | None) -> ValidationOutcome:
    payload = extract_first_object(raw)
    if payload is None:
        return Rejected("no JSON object in response", raw)

    time = _as_seconds(payload.get(TIME_KEY))
    if time is None:
        return Rejected(f"{TIME_KEY} is not a non-negative number", raw)

    window = payload.get(WINDOW_KEY)
    if not isinstance(window, (list, tuple)) or len(window) != 2:
        return Rejected(f"{WINDOW_KEY} is not a 2-element range", raw)
    bounds = [_as_seconds(v) for v in window]
    if bounds[0] is None or bounds[1] is None:
        return Rejected(f"{WINDOW_KEY} bounds are not non-negative numbers", raw)
    start, end = sorted(bounds)

    verdict = payload.get(VERDICT_KEY)
    if isinstance(verdict, str):
        verdict = verdict.strip().lower()
    if verdict not in VERDICTS:
        return Rejected(f"{VERDICT_KEY} {payload.get(VERDICT_KEY)!r} is not a known label", raw)

    return Accepted(ValidatedEstimate(time=time, window=(start, end), verdict=verdict))
