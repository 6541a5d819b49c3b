from __future__ import annotations

import threading

from dashverdict.services.run_registry import RunRegistry


def test_begin_supersedes_previous_run_in_same_slot() -> None:
    registry = RunRegistry()

    first, previous = registry.begin("cam-1", "run-a")
    assert previous is None
    assert registry.is_current(first)

    second, previous = registry.begin("cam-1", "run-b")

    assert previous == first
    assert second.generation == first.generation + 1
    assert not registry.is_current(first)
    assert registry.is_current(second)


def test_slots_are_independent() -> None:
    registry = RunRegistry()

    a, _ = registry.begin("cam-1", "run-a")
    b, _ = registry.begin("cam-2", "run-b")

    assert registry.is_current(a)
    assert registry.is_current(b)
    assert a.generation == b.generation == 1


def test_release_only_drops_current_token() -> None:
    registry = RunRegistry()
    old, _ = registry.begin("cam-1", "run-a")
    new, _ = registry.begin("cam-1", "run-b")

    registry.release(old)
    assert registry.current("cam-1") == new

    registry.release(new)
    assert registry.current("cam-1") is None

    again, _ = registry.begin("cam-1", "run-c")
    assert again.generation == 3


def test_generations_are_unique_under_contention() -> None:
    registry = RunRegistry()
    tokens = []
    lock = threading.Lock()

    def worker(n: int) -> None:
        token, _ = registry.begin("shared", f"run-{n}")
        with lock:
            tokens.append(token)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(32)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(t.generation for t in tokens) == list(range(1, 33))
    assert registry.current("shared").generation == 32


def test_clear_forgets_everything() -> None:
    registry = RunRegistry()
    token, _ = registry.begin("cam-1", "run-a")
    registry.clear()
    assert not registry.is_current(token)
    assert registry.begin("cam-1", "run-b")[0].generation == 1
