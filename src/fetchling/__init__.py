from .config import FetcherOptions as FetcherOptions
from .config import RequestConfig as RequestConfig
from .core import Fetcher as Fetcher
from .exceptions import FetchError as FetchError
from .exceptions import MissingCrumbError as MissingCrumbError
from .exceptions import RemoteError as RemoteError
from .exceptions import TransportError as TransportError
from .transport import HttpxTransport as HttpxTransport

__all__ = [
    "Fetcher",
    "FetcherOptions",
    "RequestConfig",
    "HttpxTransport",
    "FetchError",
    "MissingCrumbError",
    "RemoteError",
    "TransportError",
]
