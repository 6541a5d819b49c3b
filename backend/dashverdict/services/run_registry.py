from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class RunToken:
    slot: str
    generation: int
    run_id: str


class RunRegistry:
    """Tracks the live run per slot. Beginning a run makes every older token in the slot stale."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generations: dict[str, int] = {}
        self._current: dict[str, RunToken] = {}

    def begin(self, slot: str, run_id: str) -> tuple[RunToken, RunToken | None]:
        with self._lock:
            generation = self._generations.get(slot, 0) + 1
            self._generations[slot] = generation
            token = RunToken(slot=slot, generation=generation, run_id=run_id)
            previous = self._current.get(slot)
            self._current[slot] = token
            return token, previous

    def is_current(self, token: RunToken) -> bool:
        with self._lock:
            return self._current.get(token.slot) == token

    def current(self, slot: str) -> RunToken | None:
        with self._lock:
            return self._current.get(slot)

    def release(self, token: RunToken) -> None:
        with self._lock:
            if self._current.get(token.slot) == token:
                del self._current[token.slot]

    def clear(self) -> None:
        with self._lock:
            self._generations.clear()
            self._current.clear()


run_registry = RunRegistry()
