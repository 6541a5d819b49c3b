from __future__ import annotations

from typing import Any, Sequence


class ConfigurationError(RuntimeError):
    """Missing credentials, endpoint or prompt entries. Raised before any oracle call."""


class OracleError(RuntimeError):
    """The inference call itself failed (transport, HTTP status or a service error object)."""


class InsufficientSamples(RuntimeError):
    def __init__(
        self,
        total: int,
        rejected: int = 0,
        errored: int = 0,
        outcomes: Sequence[Any] = (),
    ) -> None:
        self.total = total
        self.rejected = rejected
        self.errored = errored
        self.outcomes = tuple(outcomes)
        super().__init__(
            f"No valid samples out of {total} (rejected={rejected}, errored={errored})"
        )


class SectionDescribeFailure(RuntimeError):
    def __init__(self, section: str, detail: str) -> None:
        self.section = section
        self.detail = detail
        super().__init__(f"{section}: {detail}")


class StaleRun(RuntimeError):
    def __init__(self, slot: str, generation: int) -> None:
        self.slot = slot
        self.generation = generation
        super().__init__(f"Run {generation} in slot '{slot}' was superseded")
