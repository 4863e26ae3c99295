"""
Fetchling-specific runtime exceptions.
"""

from __future__ import annotations

import typing as t

MISSING_CRUMB_STATUS_TEXT = "missing crumb"


class FetchError(Exception):
    """
    Base class for errors delivered to a CRUD caller.

    Parameters
    ----------
    status_code : int | None
        HTTP-like status code describing the failure, if known.
    status_text : str | None
        Short human readable status.
    """

    def __init__(self, status_code: int | None = None, status_text: str | None = None) -> None:
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"{status_code} {status_text}".strip())


class MissingCrumbError(FetchError):
    """
    The client requires a crumb and the shared context carries none.

    Raised locally, before any transport interaction.
    """

    def __init__(self) -> None:
        super().__init__(status_code=400, status_text=MISSING_CRUMB_STATUS_TEXT)


class TransportError(FetchError):
    """
    Network failure or non-2xx status surfaced by the transport.

    Parameters
    ----------
    status_code : int | None
        Response status code, ``0`` for failures with no response.
    status_text : str | None
        Reason phrase or failure description.
    response_text : str | None
        Raw response payload, when a response was received.
    """

    def __init__(
        self,
        status_code: int | None = None,
        status_text: str | None = None,
        response_text: str | None = None,
    ) -> None:
        super().__init__(status_code=status_code, status_text=status_text)
        self.response_text = response_text


class RemoteError(FetchError):
    """
    Per-request ``err`` entry of a multiplexed response.

    Parameters
    ----------
    payload : typing.Any
        The raw ``err`` value, exactly as the server sent it.
    """

    def __init__(self, payload: t.Any) -> None:
        status_code = None
        status_text = None
        if isinstance(payload, dict):
            status_code = payload.get("statusCode")
            status_text = payload.get("statusText") or payload.get("message")
        elif payload is not None:
            status_text = str(payload)
        super().__init__(status_code=status_code, status_text=status_text)
        self.payload = payload


class CompletionAlreadyResolvedError(RuntimeError):
    """A request completion was resolved more than once."""
