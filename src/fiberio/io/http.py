"""HTTP fetch provider using httpx.

Blocking httpx requests run on a small thread pool so the scheduler
thread never waits on the network. Workers only touch the client and a
thread-safe completion queue; the scheduler drains that queue in
``poll``.
"""

from __future__ import annotations

import itertools
import queue
from concurrent.futures import ThreadPoolExecutor

import httpx

from fiberio.core.config import FetchConfig
from fiberio.core.errors import FetchError
from fiberio.core.logging import get_logger
from fiberio.io.provider import Completion, FetchRequest

_logger = get_logger("io.http")


class HttpFetchProvider:
    """Performs GET requests with an ``httpx.Client`` on worker threads.

    Non-2xx responses and transport failures complete with a FetchError
    whose ``__cause__`` is the httpx exception. Successful fetches complete
    with the raw response body (bytes).

    Example:
        with HttpFetchProvider(FetchConfig(timeout=5)) as provider:
            scheduler = Scheduler(provider=provider)
            ...
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            config: Fetch settings. Defaults to FetchConfig().
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests).
        """
        self._config = config or FetchConfig()
        headers = {"User-Agent": self._config.user_agent, **self._config.headers}
        self._client = httpx.Client(
            timeout=self._config.timeout,
            follow_redirects=self._config.follow_redirects,
            headers=headers,
            transport=transport,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="fiberio-fetch",
        )
        self._completed: queue.Queue[Completion] = queue.Queue()
        self._tokens = itertools.count(1)
        self._closed = False

    def __enter__(self) -> HttpFetchProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def submit(self, request: FetchRequest) -> int:
        if self._closed:
            raise RuntimeError("HttpFetchProvider is closed")
        token = next(self._tokens)
        self._executor.submit(self._fetch, token, request)
        _logger.debug("http_fetch_submitted", url=request.url, io_token=token)
        return token

    def _fetch(self, token: int, request: FetchRequest) -> None:
        """Worker-thread body: always puts exactly one Completion."""
        url = request.url
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            error = FetchError(url, f"HTTP {e.response.status_code}")
            error.__cause__ = e
            self._completed.put(Completion(token, error=error))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error = FetchError(url, str(e) or type(e).__name__)
            error.__cause__ = e
            self._completed.put(Completion(token, error=error))
        except Exception as e:
            # A lost completion would leave the waiting fiber parked forever.
            _logger.exception("http_fetch_crashed", url=url, io_token=token)
            error = FetchError(url, f"unexpected error: {e!r}")
            error.__cause__ = e
            self._completed.put(Completion(token, error=error))
        else:
            _logger.debug(
                "http_fetch_done",
                url=url,
                io_token=token,
                status=response.status_code,
                size=len(response.content),
            )
            self._completed.put(Completion(token, payload=response.content))

    def poll(self, timeout: float | None = 0) -> list[Completion]:
        try:
            if timeout == 0:
                first = self._completed.get_nowait()
            else:
                first = self._completed.get(timeout=timeout)
        except queue.Empty:
            return []

        completions = [first]
        while True:
            try:
                completions.append(self._completed.get_nowait())
            except queue.Empty:
                return completions

    def close(self) -> None:
        """Wait for in-flight requests to finish, then release the client."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        self._client.close()
