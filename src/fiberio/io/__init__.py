"""I/O providers feeding fetch completions to the scheduler."""

from fiberio.io.http import HttpFetchProvider
from fiberio.io.provider import Completion, FetchRequest, IOProvider, StaticFetchProvider

__all__ = [
    "Completion",
    "FetchRequest",
    "HttpFetchProvider",
    "IOProvider",
    "StaticFetchProvider",
]
