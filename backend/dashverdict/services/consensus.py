from __future__ import annotations

from collections import Counter
from typing import Iterable, Sequence

from dashverdict.core.errors import InsufficientSamples
from dashverdict.schemas.analysis import AggregatedResult, ValidatedEstimate


MAJORITY = "majority"
SUPERMAJORITY = "supermajority"
POLICIES = (MAJORITY, SUPERMAJORITY)


def median(values: Iterable[float]) -> float:
    ordered = sorted(values)
    if not ordered:
        raise ValueError("median of empty sequence")
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2.0


def majority_label(labels: Sequence[str]) -> str:
    """Most frequent label.

    Ties go to the tied label seen first in ``labels``: Counter keeps
    insertion order and most_common() sorts stably.
    """
    if not labels:
        raise ValueError("majority of empty sequence")
    return Counter(labels).most_common(1)[0][0]


def supermajority_label(labels: Sequence[str], threshold: float) -> str:
    if not labels:
        raise ValueError("supermajority of empty sequence")
    label, count = Counter(labels).most_common(1)[0]
    if count / len(labels) >= threshold:
        return label
    return majority_label(labels)


def aggregate(
    estimates: Sequence[ValidatedEstimate],
    *,
    policy: str = MAJORITY,
    threshold: float = 0.6,
) -> AggregatedResult:
    if not estimates:
        raise InsufficientSamples(total=0)
    if policy not in POLICIES:
        raise ValueError(f"Unknown verdict policy: {policy}")

    labels = [e.verdict for e in estimates]
    if policy == SUPERMAJORITY:
        verdict = supermajority_label(labels, threshold)
    else:
        verdict = majority_label(labels)

    return AggregatedResult(
        samples=tuple(estimates),
        robust_time=median(e.time for e in estimates),
        robust_window=(
            median(e.window[0] for e in estimates),
            median(e.window[1] for e in estimates),
        ),
        verdict=verdict,
    )
