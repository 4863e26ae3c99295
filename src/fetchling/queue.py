"""
Time-windowed queue that sweeps pending items as a group.

Once the first item of a cycle is pushed, a timer is armed for the queue's wait
duration. Later pushes join the same cycle without moving the deadline, so an
item waits at most one window.
"""

from __future__ import annotations

import asyncio
import typing as t

import structlog

log = structlog.get_logger(__name__)

ItemT = t.TypeVar("ItemT")
OutT = t.TypeVar("OutT")


class BatchWindowQueue(t.Generic[ItemT, OutT]):
    """
    Accumulate items for a bounded time, then hand them to a sweep function.

    Parameters
    ----------
    id : str
        Queue identifier, used in logs.
    wait_seconds : float
        Window length. A value ``<= 0`` disables queuing: every item is passed
        to ``on_item`` directly at push time.
    sweep : Callable[[list[ItemT]], Sequence[OutT]]
        Reshapes the swept items into the units handed to ``on_item``.
    on_item : Callable[[ItemT | OutT], None]
        Processes one unit, either a raw item (no-wait mode) or a swept unit.
    """

    def __init__(
        self,
        *,
        id: str,
        wait_seconds: float,
        sweep: t.Callable[[list[ItemT]], t.Sequence[OutT]],
        on_item: t.Callable[[t.Any], None],
    ) -> None:
        self.id = id
        self.wait_seconds = wait_seconds
        self._sweep = sweep
        self._on_item = on_item
        self._items: list[ItemT] = []
        self._timer: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> int:
        return len(self._items)

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def push(self, item: ItemT) -> BatchWindowQueue[ItemT, OutT]:
        """
        Enqueue an item for the current window.

        Parameters
        ----------
        item : ItemT
            Item to enqueue.

        Returns
        -------
        BatchWindowQueue
            ``self``, for chaining.
        """
        if self.wait_seconds <= 0:
            log.debug(event="Queue bypassed", queue_id=self.id)
            self._on_item(item)
            return self

        self._items.append(item)
        log.debug(event="Queued item", queue_id=self.id, pending_count=len(self._items))

        if self._timer is None:
            loop = asyncio.get_running_loop()
            log.debug(
                event="Starting batch window timer",
                queue_id=self.id,
                wait_seconds=self.wait_seconds,
            )
            self._timer = loop.call_later(self.wait_seconds, self.flush)
        return self

    def flush(self) -> None:
        """
        Sweep every pending item now and process the swept units.

        Called by the window timer, or directly to drain the queue early.
        """
        items = self._items
        self._items = []
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if not items:
            log.debug(event="Batch window elapsed with empty queue", queue_id=self.id)
            return

        units = self._sweep(items)
        log.debug(
            event="Swept queue",
            queue_id=self.id,
            item_count=len(items),
            unit_count=len(units),
        )
        for unit in units:
            self._on_item(unit)
