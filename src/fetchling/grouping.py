"""
Batching policy: split a swept window into wire calls.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass

import structlog

from fetchling.request import Request

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Single:
    """A request dispatched on its own."""

    request: Request


@dataclass(frozen=True)
class Grouped:
    """Two or more requests sharing one multiplexed call."""

    requests: tuple[Request, ...]


Batch = Single | Grouped


def group_requests(requests: t.Sequence[Request]) -> list[Batch]:
    """
    Partition requests by destination and batch tag.

    Two requests share a wire call if and only if their ``uri`` and
    ``batch_tag`` are equal. The operation is not part of the key, so reads and
    writes to one destination can travel together.

    Parameters
    ----------
    requests : Sequence[Request]
        Requests in arrival order.

    Returns
    -------
    list[Batch]
        Batches in first-seen key order, members in arrival order.
    """
    if len(requests) <= 1:
        return [Single(request=request) for request in requests]

    groups: dict[str, list[Request]] = {}
    for request in requests:
        groups.setdefault(request.config.group_key, []).append(request)

    batches: list[Batch] = [
        Single(request=members[0]) if len(members) == 1 else Grouped(requests=tuple(members))
        for members in groups.values()
    ]
    if len(batches) < len(requests):
        log.info(
            event="Requests batched",
            request_count=len(requests),
            batch_count=len(batches),
        )
    return batches
