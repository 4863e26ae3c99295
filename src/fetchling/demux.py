"""
Route raw responses back to the requests that produced them.
"""

from __future__ import annotations

import json
import typing as t

import httpx
import structlog

from fetchling.envelope import DEFAULT_GUID, Envelope
from fetchling.exceptions import RemoteError
from fetchling.request import Request

log = structlog.get_logger(__name__)


def parse_response(response: httpx.Response | None) -> t.Any:
    """
    Parse a raw response payload as JSON.

    Parameters
    ----------
    response : httpx.Response | None
        Raw transport response.

    Returns
    -------
    typing.Any
        Parsed payload, or ``None`` when the payload is empty or malformed.
    """
    if response is None or not response.text:
        return None
    try:
        return json.loads(s=response.text)
    except ValueError as e:
        log.error(event="JSON parse failed", error=str(object=e))
        return None


def _sub_result(result: t.Any, guid: str) -> dict[str, t.Any]:
    if not isinstance(result, dict):
        return {}
    sub_result = result.get(guid)
    return sub_result if isinstance(sub_result, dict) else {}


def deliver_get(*, request: Request, response: httpx.Response) -> None:
    """Deliver a GET response, parsed as a whole, to its request."""
    request.resolve(None, parse_response(response))


def deliver_single(*, request: Request, response: httpx.Response) -> None:
    """Deliver the ``data`` of the ``g0`` sub-result to a single POST request."""
    result = parse_response(response)
    request.resolve(None, _sub_result(result, DEFAULT_GUID).get("data"))


def deliver_multi(*, envelope: Envelope, response: httpx.Response) -> None:
    """
    Split a multiplexed response across the envelope's requests.

    Sub-results are matched by correlation id. A request with no sub-result
    receives ``None``; one whose sub-result carries ``err`` receives a
    ``RemoteError`` wrapping it.

    Parameters
    ----------
    envelope : Envelope
        The dispatched envelope.
    response : httpx.Response
        Raw multiplexed response.
    """
    result = parse_response(response)
    seen = 0
    for guid, request in envelope.requests.items():
        sub_result = _sub_result(result, guid)
        if sub_result:
            seen += 1
        if sub_result.get("err") is not None:
            request.resolve(RemoteError(payload=sub_result["err"]), None)
        else:
            request.resolve(None, sub_result.get("data"))
    if seen < len(envelope.requests):
        log.debug(
            event="Missing sub-results",
            request_count=len(envelope.requests),
            missing_count=len(envelope.requests) - seen,
        )


def fail_all(*, requests: t.Iterable[Request], error: BaseException) -> None:
    """Deliver the same error to every request sharing a call."""
    for request in requests:
        request.resolve(error, None)
