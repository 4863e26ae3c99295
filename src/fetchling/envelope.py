"""
GET URI and multiplexed POST envelope construction.

GET URI layout::

    <base>/resource/<resource>[/<id_param>/<id_value>][;key=value...][?key=value&...]

POST body layout::

    {"requests": {"g0": {"resource", "operation", "params", "body"?}, ...},
     "context": {...}}
"""

from __future__ import annotations

import json
import typing as t
from dataclasses import dataclass
from urllib.parse import quote

import structlog

from fetchling.config import RequestConfig
from fetchling.request import Request

log = structlog.get_logger(__name__)

DEFAULT_GUID = "g0"
MAX_URI_LEN = 2048
CRUMB_KEY = "crumb"
# Characters left unescaped, matching ECMAScript encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def jsonify_complex_type(value: t.Any) -> str:
    """
    Serialize a param value to the string carried in a URI.

    Strings pass through. Mappings and sequences become canonical JSON (sorted
    keys, no whitespace); other scalars their JSON literal.
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def encode_component(value: t.Any) -> str:
    return quote(jsonify_complex_type(value), safe=_URI_COMPONENT_SAFE)


def build_query(context: t.Mapping[str, t.Any], *, include_crumb: bool = True) -> str:
    """
    Build the ``?``-prefixed query string for the context, segments sorted.

    Parameters
    ----------
    context : Mapping[str, typing.Any]
        Shared context key/values.
    include_crumb : bool
        Whether the ``crumb`` entry is kept.

    Returns
    -------
    str
        Query string, or ``""`` when no entry remains.
    """
    query = sorted(
        f"{key}={encode_component(value)}"
        for key, value in context.items()
        if include_crumb or key != CRUMB_KEY
    )
    if not query:
        return ""
    return "?" + "&".join(query)


def build_get_uri(
    *,
    base_uri: str,
    resource: str,
    params: t.Mapping[str, t.Any],
    context: t.Mapping[str, t.Any],
    config: RequestConfig,
) -> str:
    """
    Build the GET URI for a read.

    Parameters
    ----------
    base_uri : str
        Destination root, e.g. ``/api``.
    resource : str
        Resource name.
    params : Mapping[str, typing.Any]
        Request params. The ``config.id_param`` entry becomes a path segment,
        the rest become matrix params. Matrix and query segments are sorted as
        whole ``key=value`` strings, not by key alone, so ``a-b=...`` precedes
        ``a=...``.
    context : Mapping[str, typing.Any]
        Shared context, appended as the query string.
    config : RequestConfig
        Merged request configuration.

    Returns
    -------
    str
        The GET URI. May exceed ``MAX_URI_LEN``; callers decide on fallback.
    """
    uri = f"{base_uri}/resource/{resource}"
    id_value: str | None = None
    matrix: list[str] = []
    for key, value in params.items():
        if config.id_param is not None and key == config.id_param:
            id_value = encode_component(value)
        else:
            matrix.append(f"{key}={encode_component(value)}")

    if id_value:
        uri += f"/{config.id_param}/{id_value}"
    if matrix:
        uri += ";" + ";".join(sorted(matrix))
    return uri + build_query(context, include_crumb=config.require_crumb_for_read)


def build_post_uri(*, base_uri: str, context: t.Mapping[str, t.Any]) -> str:
    """Build the POST destination: the base URI plus the full context query."""
    return base_uri + build_query(context)


@dataclass(frozen=True)
class Envelope:
    """
    One POST wire call carrying one or more requests.

    Attributes
    ----------
    uri : str
        Destination with the context query string.
    body : dict[str, typing.Any]
        JSON body: ``requests`` keyed by correlation id, plus ``context``.
    requests : dict[str, Request]
        Correlation id to originating request, in envelope order.
    retry_safe : bool
        ``True`` only when every request is a read.
    """

    uri: str
    body: dict[str, t.Any]
    requests: dict[str, Request]
    retry_safe: bool


def build_envelope(
    *,
    base_uri: str,
    requests: t.Sequence[Request],
    context: t.Mapping[str, t.Any],
) -> Envelope:
    """
    Pack requests into one POST envelope.

    A single request uses the fixed ``g0`` correlation id; grouped requests are
    numbered ``g0``, ``g1``, ... in group order.

    Parameters
    ----------
    base_uri : str
        Destination root.
    requests : Sequence[Request]
        Requests sharing the call.
    context : Mapping[str, typing.Any]
        Shared context, sent both in the query string and in the body.

    Returns
    -------
    Envelope
        The wire call.
    """
    if not requests:
        raise ValueError("Cannot build an envelope for an empty request batch")

    if len(requests) == 1:
        by_guid = {DEFAULT_GUID: requests[0]}
    else:
        by_guid = {f"g{index}": request for index, request in enumerate(requests)}

    body = {
        "requests": {guid: request.to_wire() for guid, request in by_guid.items()},
        "context": dict(context),
    }
    retry_safe = all(request.is_read for request in requests)
    log.debug(
        event="Built envelope",
        base_uri=base_uri,
        request_count=len(by_guid),
        retry_safe=retry_safe,
    )
    return Envelope(
        uri=build_post_uri(base_uri=base_uri, context=context),
        body=body,
        requests=by_guid,
        retry_safe=retry_safe,
    )
