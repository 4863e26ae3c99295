"""
Logical CRUD requests and their single-fire completion channel.
"""

from __future__ import annotations

import asyncio
import typing as t
from dataclasses import dataclass
from enum import StrEnum

import structlog

from fetchling.config import RequestConfig
from fetchling.exceptions import CompletionAlreadyResolvedError

log = structlog.get_logger(__name__)

Callback = t.Callable[[BaseException | None, t.Any], None]


class Operation(StrEnum):
    create = "create"
    read = "read"
    update = "update"
    delete = "delete"


class Completion:
    """
    Deliver exactly one ``(error, data)`` outcome to a caller.

    The outcome settles an ``asyncio.Future`` and, when given, is also passed to
    a Node-style ``callback(error, data)``.

    Parameters
    ----------
    future : asyncio.Future[typing.Any]
        Future awaited by the caller.
    callback : Callback | None
        Optional observer invoked with ``(error, data)``.
    """

    def __init__(self, *, future: asyncio.Future[t.Any], callback: Callback | None = None) -> None:
        self._future = future
        self._callback = callback
        self._resolved = False

    @property
    def future(self) -> asyncio.Future[t.Any]:
        return self._future

    @property
    def resolved(self) -> bool:
        return self._resolved

    def resolve(self, error: BaseException | None = None, data: t.Any = None) -> None:
        """
        Settle the completion.

        Parameters
        ----------
        error : BaseException | None
            Failure delivered to the caller. Takes precedence over ``data``.
        data : typing.Any
            Result delivered when ``error`` is ``None``.

        Raises
        ------
        CompletionAlreadyResolvedError
            If the completion was already settled.
        """
        if self._resolved:
            raise CompletionAlreadyResolvedError("Request completion resolved twice")
        self._resolved = True

        if not self._future.done():
            if error is not None:
                self._future.set_exception(error)
            else:
                self._future.set_result(data)

        if self._callback is not None:
            try:
                self._callback(error, None if error is not None else data)
            except Exception as e:
                log.error(event="Request callback raised", error=str(object=e))


@dataclass(frozen=True)
class Request:
    """A single logical CRUD call awaiting dispatch."""

    resource: str
    operation: Operation
    params: dict[str, t.Any]
    config: RequestConfig
    completion: Completion
    body: t.Any = None

    @property
    def is_read(self) -> bool:
        return self.operation is Operation.read

    def to_wire(self) -> dict[str, t.Any]:
        """
        Reduce the request to the fields carried in a wire envelope.

        Returns
        -------
        dict[str, typing.Any]
            ``resource``, ``operation``, ``params`` and ``body`` when present.
        """
        wire: dict[str, t.Any] = {
            "resource": self.resource,
            "operation": str(self.operation),
            "params": self.params,
        }
        if self.body is not None:
            wire["body"] = self.body
        return wire

    def resolve(self, error: BaseException | None = None, data: t.Any = None) -> None:
        self.completion.resolve(error, data)
