"""Asynchronous page fetching over HTTP."""

import asyncio
import logging
from typing import Callable, Optional, Protocol

import httpx

from .config import get_config
from .exceptions import FetchError

logger = logging.getLogger(__name__)

DataCallback = Callable[[bytes], None]
CompletionCallback = Callable[[Optional[Exception]], None]


class Transport(Protocol):
    def dispatch(self, url: str, on_data: DataCallback, on_complete: CompletionCallback):
        """Start fetching ``url`` and return a handle immediately.

        ``on_data`` is called zero or more times with chunks of the body,
        followed by exactly one call to ``on_complete`` with ``None`` on
        success or the exception that ended the fetch. The callbacks may
        run before ``dispatch`` returns.
        """
        ...


class HttpTransport:
    """Transport backed by a shared httpx.AsyncClient.

    Must be used from a running event loop; completion callbacks are
    delivered on that loop.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self._client = client
        self._timeout = timeout or get_config("HTTP_TIMEOUT", 30.0)
        self._tasks = set()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    def dispatch(self, url: str, on_data: DataCallback, on_complete: CompletionCallback) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._fetch(url, on_data, on_complete))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch(self, url: str, on_data: DataCallback, on_complete: CompletionCallback) -> None:
        error = None
        try:
            logger.debug(f"Fetching {url}")
            async with self.client.stream("GET", url) as response:
                if response.status_code != 200:
                    raise FetchError(url, f"HTTP {response.status_code}")
                async for chunk in response.aiter_bytes():
                    on_data(chunk)
        except asyncio.CancelledError:
            on_complete(FetchError(url, "Fetch cancelled"))
            raise
        except (httpx.HTTPError, FetchError) as e:
            logger.warning(f"Fetch of {url} failed: {e}")
            error = e
        except Exception as e:
            # Stream errors, invalid URLs and data handler failures still end the fetch
            logger.error(f"Fetch of {url} failed unexpectedly: {e}", exc_info=True)
            error = e
        on_complete(error)

    async def drain(self) -> None:
        """Wait until every outstanding fetch has completed."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Wait for outstanding fetches, then close the client."""
        await self.drain()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
