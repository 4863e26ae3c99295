"""
Transport boundary: issue GET/POST calls and surface transport errors.
"""

from __future__ import annotations

import typing as t

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from fetchling.config import RequestConfig
from fetchling.exceptions import TransportError

log = structlog.get_logger(__name__)

# Status reported for failures with no HTTP response, as XHR does.
CONNECTION_FAILURE_STATUS = 0
MAX_BACKOFF_SECONDS = 10.0


class Transport(t.Protocol):
    """
    Asynchronous GET/POST collaborator used by ``Fetcher``.

    Implementations return the raw response on 2xx and raise ``TransportError``
    otherwise. ``unsafe_allow_retry`` tells the transport whether the call may
    be retried automatically.
    """

    async def get(
        self,
        uri: str,
        query: t.Mapping[str, t.Any],
        *,
        config: RequestConfig,
        unsafe_allow_retry: bool,
    ) -> httpx.Response: ...

    async def post(
        self,
        uri: str,
        query: t.Mapping[str, t.Any],
        body: t.Any,
        *,
        config: RequestConfig,
        unsafe_allow_retry: bool,
    ) -> httpx.Response: ...


class HttpxTransport:
    """
    ``Transport`` backed by ``httpx.AsyncClient``.

    Parameters
    ----------
    base_url : str
        Origin prepended to relative URIs, e.g. ``https://example.com``.
    timeout_seconds : float
        Per-attempt timeout.
    max_retries : int
        Extra attempts for retry-safe calls on connection errors and 5xx.
    retry_backoff_seconds : float
        Delay before the first retry, doubled on each further attempt.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        retry_backoff_seconds: float = 0.1,
    ) -> None:
        self.base_url = base_url
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._client_factory: t.Callable[[], httpx.AsyncClient] = lambda: httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
        )

    async def get(
        self,
        uri: str,
        query: t.Mapping[str, t.Any],
        *,
        config: RequestConfig,
        unsafe_allow_retry: bool,
    ) -> httpx.Response:
        return await self._send(
            method="GET",
            uri=uri,
            query=query,
            body=None,
            unsafe_allow_retry=unsafe_allow_retry,
        )

    async def post(
        self,
        uri: str,
        query: t.Mapping[str, t.Any],
        body: t.Any,
        *,
        config: RequestConfig,
        unsafe_allow_retry: bool,
    ) -> httpx.Response:
        return await self._send(
            method="POST",
            uri=uri,
            query=query,
            body=body,
            unsafe_allow_retry=unsafe_allow_retry,
        )

    async def _send(
        self,
        *,
        method: str,
        uri: str,
        query: t.Mapping[str, t.Any],
        body: t.Any,
        unsafe_allow_retry: bool,
    ) -> httpx.Response:
        """
        Send one call, retrying retry-safe calls on transient failures.

        Parameters
        ----------
        method : str
            ``"GET"`` or ``"POST"``.
        uri : str
            Destination, already carrying its query string.
        query : Mapping[str, typing.Any]
            Extra query params.
        body : typing.Any
            JSON body for POST.
        unsafe_allow_retry : bool
            Whether transient failures may be retried.

        Returns
        -------
        httpx.Response
            The 2xx response.

        Raises
        ------
        TransportError
            On connection failure or non-2xx status, once retries are exhausted.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(1 + (self.max_retries if unsafe_allow_retry else 0)),
            wait=wait_exponential(multiplier=self.retry_backoff_seconds, max=MAX_BACKOFF_SECONDS),
            retry=retry_if_transient,
            before_sleep=_log_retry,
            reraise=True,
        )
        try:
            return await retrying(self._attempt, method=method, uri=uri, query=query, body=body)
        except TransportError as e:
            log.info(
                event="Transport call failed",
                method=method,
                uri=uri,
                status_code=e.status_code,
            )
            raise

    async def _attempt(
        self,
        *,
        method: str,
        uri: str,
        query: t.Mapping[str, t.Any],
        body: t.Any,
    ) -> httpx.Response:
        try:
            async with self._client_factory() as client:
                response = await client.request(
                    method=method,
                    url=uri,
                    params=dict(query) or None,
                    json=body,
                )
        except httpx.HTTPError as e:
            raise TransportError(
                status_code=CONNECTION_FAILURE_STATUS,
                status_text=str(object=e) or type(e).__name__,
            ) from e
        if not response.is_success:
            raise TransportError(
                status_code=response.status_code,
                status_text=response.reason_phrase,
                response_text=response.text,
            )
        return response


def is_transient_error(exception: BaseException) -> bool:
    """
    Check whether a failed call may succeed when repeated.

    Connection failures and 5xx responses are transient; other statuses are not.
    """
    if not isinstance(exception, TransportError) or exception.status_code is None:
        return False
    return exception.status_code == CONNECTION_FAILURE_STATUS or exception.status_code >= 500


def _log_retry(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    log.debug(
        event="Retrying transport call",
        attempt=retry_state.attempt_number,
        status_code=getattr(exception, "status_code", None),
        delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


retry_if_transient = retry_if_exception(is_transient_error)
