import asyncio
import typing as t

import httpx
import pytest

from fetchling.config import FetcherOptions, RequestConfig
from fetchling.core import Fetcher
from fetchling.request import Completion, Operation, Request
from fetchling.transport import HttpxTransport
from tests.mocks.api import FakeResourceAPI, make_resource_transport

BASE_URL = "https://example.com"


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for name in (
        "FETCHLING_XHR_PATH",
        "FETCHLING_BATCH_WINDOW_SECONDS",
        "FETCHLING_REQUIRE_CRUMB",
        "FETCHLING_CONTEXT",
        "FETCHLING_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_request() -> t.Callable[..., Request]:
    """
    Build requests bound to the running event loop.

    Returns
    -------
    Callable[..., Request]
        Factory taking ``resource``, ``operation``, ``params``, ``body``,
        ``callback`` and ``RequestConfig`` keyword overrides.
    """

    def factory(
        resource: str = "items",
        operation: Operation = Operation.read,
        params: dict[str, t.Any] | None = None,
        body: t.Any = None,
        callback: t.Any = None,
        **config: t.Any,
    ) -> Request:
        future = asyncio.get_running_loop().create_future()
        return Request(
            resource=resource,
            operation=operation,
            params=params or {},
            body=body,
            config=RequestConfig(**config),
            completion=Completion(future=future, callback=callback),
        )

    return factory


@pytest.fixture
def api() -> FakeResourceAPI:
    return FakeResourceAPI()


@pytest.fixture
def make_fetcher(api: FakeResourceAPI) -> t.Callable[..., Fetcher]:
    """
    Build fetchers whose transport talks to the fake resource API.

    Returns
    -------
    Callable[..., Fetcher]
        Factory taking ``FetcherOptions`` keyword values.
    """

    def factory(**options: t.Any) -> Fetcher:
        options.setdefault("context", {"lang": "en-US", "crumb": "abc123"})
        transport = HttpxTransport(base_url=BASE_URL, max_retries=0)
        mock_transport = make_resource_transport(api)
        transport._client_factory = lambda: httpx.AsyncClient(
            base_url=BASE_URL,
            transport=mock_transport,
        )
        return Fetcher(FetcherOptions(**options), transport=transport)

    return factory
