"""
Tests for the BatchWindowQueue in fetchling.queue.
"""

import asyncio
import typing as t

import pytest

from fetchling.queue import BatchWindowQueue


def _make_queue(
    *,
    wait_seconds: float,
    swept: list[list[t.Any]],
    processed: list[t.Any],
    sweep: t.Callable[[list[t.Any]], t.Sequence[t.Any]] | None = None,
) -> BatchWindowQueue[t.Any, t.Any]:
    def record_sweep(items: list[t.Any]) -> t.Sequence[t.Any]:
        swept.append(list(items))
        return sweep(items) if sweep else items

    return BatchWindowQueue(
        id="test-queue",
        wait_seconds=wait_seconds,
        sweep=record_sweep,
        on_item=processed.append,
    )


def test_push_without_wait_is_synchronous():
    """Test that a non-positive wait processes items at push time, without a loop."""
    swept: list[list[t.Any]] = []
    processed: list[t.Any] = []
    queue = _make_queue(wait_seconds=0, swept=swept, processed=processed)

    for item in range(5):
        queue.push(item)

    assert processed == [0, 1, 2, 3, 4]
    assert swept == []
    assert queue.pending == 0
    assert not queue.armed


def test_negative_wait_bypasses_queue():
    processed: list[t.Any] = []
    queue = _make_queue(wait_seconds=-1, swept=[], processed=processed)

    queue.push("a").push("b")

    assert processed == ["a", "b"]
    assert not queue.armed


@pytest.mark.asyncio
async def test_items_pushed_in_window_are_swept_together():
    """Test that every item pushed before the deadline lands in one sweep."""
    swept: list[list[t.Any]] = []
    processed: list[t.Any] = []
    queue = _make_queue(wait_seconds=0.05, swept=swept, processed=processed)

    queue.push(1)
    queue.push(2)
    queue.push(3)
    assert queue.armed
    assert queue.pending == 3
    assert processed == []

    await asyncio.sleep(0.1)

    assert swept == [[1, 2, 3]]
    assert processed == [1, 2, 3]
    assert queue.pending == 0
    assert not queue.armed


@pytest.mark.asyncio
async def test_timer_is_not_reset_by_later_pushes():
    """Test that the first push of a cycle sets the deadline."""
    loop = asyncio.get_running_loop()
    wait = 0.2
    flushed_at: list[float] = []
    queue: BatchWindowQueue[t.Any, t.Any] = BatchWindowQueue(
        id="deadline",
        wait_seconds=wait,
        sweep=lambda items: [items],
        on_item=lambda _: flushed_at.append(loop.time()),
    )

    started = loop.time()
    queue.push("first")
    await asyncio.sleep(wait / 2)
    queue.push("second")
    await asyncio.sleep(wait)

    assert len(flushed_at) == 1
    elapsed = flushed_at[0] - started
    assert elapsed < wait * 1.4


@pytest.mark.asyncio
async def test_push_after_flush_starts_new_cycle():
    swept: list[list[t.Any]] = []
    processed: list[t.Any] = []
    queue = _make_queue(wait_seconds=0.02, swept=swept, processed=processed)

    queue.push("a")
    await asyncio.sleep(0.05)
    queue.push("b")
    assert queue.armed
    await asyncio.sleep(0.05)

    assert swept == [["a"], ["b"]]


@pytest.mark.asyncio
async def test_sweep_reshapes_processed_units():
    """Test that on_item receives the units returned by the sweep function."""
    swept: list[list[t.Any]] = []
    processed: list[t.Any] = []
    queue = _make_queue(
        wait_seconds=0.02,
        swept=swept,
        processed=processed,
        sweep=lambda items: [tuple(items[:2]), tuple(items[2:])],
    )

    for item in "abcd":
        queue.push(item)
    await asyncio.sleep(0.05)

    assert processed == [("a", "b"), ("c", "d")]


@pytest.mark.asyncio
async def test_flush_drains_early_and_disarms_timer():
    swept: list[list[t.Any]] = []
    processed: list[t.Any] = []
    queue = _make_queue(wait_seconds=10.0, swept=swept, processed=processed)

    queue.push("x")
    queue.flush()

    assert processed == ["x"]
    assert not queue.armed
    assert queue.pending == 0


def test_flush_on_empty_queue_is_noop():
    swept: list[list[t.Any]] = []
    queue = _make_queue(wait_seconds=1.0, swept=swept, processed=[])

    queue.flush()

    assert swept == []
