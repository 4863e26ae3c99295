"""
CRUD client with request consolidation.

Requests opting into consolidation are held in a batch window queue; when the
window elapses, requests sharing a destination and batch tag are packed into
one multiplexed POST, and the combined response is split back so each caller
receives only its own result or error.
"""

from __future__ import annotations

import asyncio
import typing as t

import structlog

from fetchling.config import FetcherOptions, RequestConfig
from fetchling.demux import deliver_get, deliver_multi, deliver_single, fail_all
from fetchling.envelope import MAX_URI_LEN, build_envelope, build_get_uri
from fetchling.exceptions import MissingCrumbError, TransportError
from fetchling.grouping import Batch, Grouped, Single, group_requests
from fetchling.queue import BatchWindowQueue
from fetchling.request import Callback, Completion, Operation, Request
from fetchling.transport import HttpxTransport, Transport

log = structlog.get_logger(__name__)

ConfigArg = RequestConfig | t.Mapping[str, t.Any] | None


class Fetcher:
    """
    RESTful data store implementing create/read/update/delete.

    Parameters
    ----------
    options : FetcherOptions | None
        Client-wide options. Defaults to ``FetcherOptions()``.
    transport : Transport | None
        Transport collaborator. Defaults to an ``HttpxTransport`` on ``base_url``.
    base_url : str
        Origin used by the default transport.
    name : str
        Client name, used as the batch queue id.
    """

    def __init__(
        self,
        options: FetcherOptions | None = None,
        *,
        transport: Transport | None = None,
        base_url: str = "",
        name: str = "fetcher",
    ) -> None:
        self.options = options or FetcherOptions()
        self.name = name
        self.transport: Transport = transport or HttpxTransport(
            base_url=base_url,
            timeout_seconds=self.options.timeout_seconds,
            max_retries=self.options.max_retries,
        )
        self._queue: BatchWindowQueue[Request, Batch] | None = None
        self._inflight: set[asyncio.Task[None]] = set()

        log.debug(
            event="Initialized Fetcher",
            name=name,
            xhr_path=self.options.xhr_path,
            batch_window_seconds=self.options.batch_window_seconds,
            require_crumb=self.options.require_crumb,
        )

    @property
    def context(self) -> dict[str, t.Any]:
        return self.options.context

    # ------------------------------------------------------------------
    # CRUD surface
    # ------------------------------------------------------------------

    async def create(
        self,
        resource: str,
        params: t.Mapping[str, t.Any] | None = None,
        body: t.Any = None,
        *,
        config: ConfigArg = None,
        callback: Callback | None = None,
    ) -> t.Any:
        """
        Create a resource.

        Parameters
        ----------
        resource : str
            Resource name.
        params : Mapping[str, typing.Any] | None
            Params identifying the resource.
        body : typing.Any
            Resource data. Omitted from the wire when ``None``.
        config : RequestConfig | Mapping[str, typing.Any] | None
            Per-call overrides of the client defaults.
        callback : Callback | None
            Optional observer called once with ``(error, data)``.

        Returns
        -------
        typing.Any
            The data returned for this request.
        """
        return await self._sync(
            resource=resource,
            operation=Operation.create,
            params=params,
            body=body,
            config=config,
            callback=callback,
        )

    async def read(
        self,
        resource: str,
        params: t.Mapping[str, t.Any] | None = None,
        *,
        config: ConfigArg = None,
        callback: Callback | None = None,
    ) -> t.Any:
        """Read a resource. See ``create`` for parameters."""
        return await self._sync(
            resource=resource,
            operation=Operation.read,
            params=params,
            body=None,
            config=config,
            callback=callback,
        )

    async def update(
        self,
        resource: str,
        params: t.Mapping[str, t.Any] | None = None,
        body: t.Any = None,
        *,
        config: ConfigArg = None,
        callback: Callback | None = None,
    ) -> t.Any:
        """Update a resource. See ``create`` for parameters."""
        return await self._sync(
            resource=resource,
            operation=Operation.update,
            params=params,
            body=body,
            config=config,
            callback=callback,
        )

    async def delete(
        self,
        resource: str,
        params: t.Mapping[str, t.Any] | None = None,
        *,
        config: ConfigArg = None,
        callback: Callback | None = None,
    ) -> t.Any:
        """Delete a resource. See ``create`` for parameters."""
        return await self._sync(
            resource=resource,
            operation=Operation.delete,
            params=params,
            body=None,
            config=config,
            callback=callback,
        )

    async def _sync(
        self,
        *,
        resource: str,
        operation: Operation,
        params: t.Mapping[str, t.Any] | None,
        body: t.Any,
        config: ConfigArg,
        callback: Callback | None,
    ) -> t.Any:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[t.Any] = loop.create_future()
        request = Request(
            resource=resource,
            operation=operation,
            params=dict(params or {}),
            body=body,
            config=self.options.defaults.merged(config),
            completion=Completion(future=future, callback=callback),
        )
        log.debug(
            event="Syncing resource",
            resource=resource,
            operation=str(operation),
            consolidate=request.config.consolidate,
        )

        if request.config.consolidate:
            self._get_queue().push(request)
        else:
            self._dispatch(batch=Single(request=request))
        return await future

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    def _get_queue(self) -> BatchWindowQueue[Request, Batch]:
        if self._queue is None:
            self._queue = BatchWindowQueue(
                id=self.name,
                wait_seconds=self.options.batch_window_seconds,
                sweep=group_requests,
                on_item=self._on_queue_item,
            )
        return self._queue

    def _on_queue_item(self, item: Request | Batch) -> None:
        match item:
            case Request():
                self._dispatch(batch=Single(request=item))
            case Single() | Grouped():
                self._dispatch(batch=item)

    def _crumb_required(self, request: Request) -> bool:
        if not self.options.require_crumb:
            return False
        return not request.is_read or request.config.require_crumb_for_read

    def _dispatch(self, *, batch: Batch) -> None:
        """
        Check the crumb gate, then send the batch in the background.

        Parameters
        ----------
        batch : Batch
            Single request or group sharing one call.
        """
        requests = [batch.request] if isinstance(batch, Single) else list(batch.requests)
        if not self.context.get("crumb") and any(self._crumb_required(r) for r in requests):
            log.info(event="Missing crumb", request_count=len(requests))
            fail_all(requests=requests, error=MissingCrumbError())
            return

        match batch:
            case Single(request=request):
                coro = self._single(request=request)
            case Grouped(requests=members):
                coro = self._multi(requests=members)
        task = asyncio.get_running_loop().create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _base_uri(self, config: RequestConfig) -> str:
        return config.uri or self.options.xhr_path

    async def _single(self, *, request: Request) -> None:
        """
        Execute one request, as a GET URI when possible, else as a POST envelope.

        Parameters
        ----------
        request : Request
            Request to execute.
        """
        config = request.config
        base_uri = self._base_uri(config)
        try:
            use_post = not request.is_read or config.post_for_read
            if not use_post:
                get_uri = build_get_uri(
                    base_uri=base_uri,
                    resource=request.resource,
                    params=request.params,
                    context=self.context,
                    config=config,
                )
                if len(get_uri) <= MAX_URI_LEN:
                    response = await self.transport.get(
                        get_uri, {}, config=config, unsafe_allow_retry=True
                    )
                    deliver_get(request=request, response=response)
                    return
                log.debug(
                    event="GET URI too long, falling back to POST",
                    resource=request.resource,
                    uri_length=len(get_uri),
                )

            envelope = build_envelope(base_uri=base_uri, requests=[request], context=self.context)
            response = await self.transport.post(
                envelope.uri,
                {},
                envelope.body,
                config=config,
                unsafe_allow_retry=envelope.retry_safe,
            )
            deliver_single(request=request, response=response)
        except TransportError as e:
            log.info(
                event="Syncing resource failed",
                resource=request.resource,
                status_code=e.status_code,
            )
            request.resolve(e, None)
        except Exception as e:
            log.error(event="Request dispatch failed", resource=request.resource, error=str(object=e))
            if not request.completion.resolved:
                request.resolve(e, None)

    async def _multi(self, *, requests: t.Sequence[Request]) -> None:
        """
        Execute grouped requests as one multiplexed POST.

        Parameters
        ----------
        requests : Sequence[Request]
            Requests sharing a destination and batch tag.
        """
        config = requests[0].config
        try:
            envelope = build_envelope(
                base_uri=self._base_uri(config),
                requests=requests,
                context=self.context,
            )
            log.info(
                event="Submitting multiplexed call",
                uri=envelope.uri,
                request_count=len(requests),
                retry_safe=envelope.retry_safe,
            )
            response = await self.transport.post(
                envelope.uri,
                {},
                envelope.body,
                config=config,
                unsafe_allow_retry=envelope.retry_safe,
            )
            deliver_multi(envelope=envelope, response=response)
        except TransportError as e:
            log.info(
                event="Multiplexed call failed",
                request_count=len(requests),
                status_code=e.status_code,
            )
            fail_all(requests=requests, error=e)
        except Exception as e:
            log.error(event="Multiplexed dispatch failed", error=str(object=e))
            fail_all(
                requests=[r for r in requests if not r.completion.resolved],
                error=e,
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """
        Flush the pending window and wait for in-flight calls to settle.
        """
        if self._queue is not None and self._queue.pending:
            log.info(event="Flushing pending requests on close", pending_count=self._queue.pending)
            self._queue.flush()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        log.debug(event="Fetcher closed", name=self.name)

    async def __aenter__(self) -> Fetcher:
        return self

    async def __aexit__(self, exc_type: t.Any, exc_val: t.Any, exc_tb: t.Any) -> None:
        await self.close()
