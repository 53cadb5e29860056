"""I/O provider contract and an in-memory implementation.

The scheduler hands each fetch to a provider with ``submit`` and later
collects finished fetches with ``poll``. Providers never call back into
the scheduler; completions are pulled by the scheduler thread only.
"""

from __future__ import annotations

import itertools
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from fiberio.core.errors import FetchError
from fiberio.core.logging import get_logger

_logger = get_logger("io.static")


@dataclass(frozen=True)
class FetchRequest:
    """A GET of ``url``."""

    url: str


@dataclass(frozen=True)
class Completion:
    """A finished fetch: exactly one of ``payload`` / ``error`` is set."""

    token: int
    payload: bytes | None = None
    error: BaseException | None = None


class IOProvider(Protocol):
    """Protocol satisfied by HttpFetchProvider and StaticFetchProvider."""

    def submit(self, request: FetchRequest) -> int:
        """Start ``request`` without blocking; return its token."""
        ...

    def poll(self, timeout: float | None = 0) -> list[Completion]:
        """Collect finished fetches.

        ``timeout=0`` never blocks; ``None`` blocks until at least one
        completion is available; a positive number blocks at most that long.
        """
        ...

    def close(self) -> None: ...


RouteValue = bytes | str | BaseException


class StaticFetchProvider:
    """Serves fetches from a fixed ``url -> response`` table.

    A response is bytes, a str (UTF-8 encoded), or an exception instance
    delivered as the fetch error. Unknown URLs fail with FetchError.
    Completions become available in submission order, immediately.

    Example:
        provider = StaticFetchProvider({
            "http://localhost/": b"<html>hi</html>",
            "http://down/": FetchError("http://down/", "connection refused"),
        })
    """

    def __init__(self, routes: Mapping[str, RouteValue] | None = None) -> None:
        self._routes: dict[str, RouteValue] = dict(routes or {})
        self._pending: deque[Completion] = deque()
        self._tokens = itertools.count(1)
        self.submitted: list[FetchRequest] = []

    def add_route(self, url: str, response: RouteValue) -> None:
        self._routes[url] = response

    def submit(self, request: FetchRequest) -> int:
        token = next(self._tokens)
        self.submitted.append(request)
        response = self._routes.get(request.url)
        if response is None:
            completion = Completion(token, error=FetchError(request.url, "no route"))
        elif isinstance(response, BaseException):
            completion = Completion(token, error=response)
        elif isinstance(response, str):
            completion = Completion(token, payload=response.encode("utf-8"))
        else:
            completion = Completion(token, payload=bytes(response))
        self._pending.append(completion)
        _logger.debug("static_fetch", url=request.url, io_token=token, ok=completion.error is None)
        return token

    def poll(self, timeout: float | None = 0) -> list[Completion]:
        completions = list(self._pending)
        self._pending.clear()
        return completions

    def close(self) -> None:
        self._pending.clear()
