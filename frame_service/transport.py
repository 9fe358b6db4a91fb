"""
HTTP Transport Collaborators

Interfaces for the injected fetch strategy and image loader, with default
implementations on ``requests`` and Pillow. Blocking calls run on a thread
pool so the event loop is only suspended at fetch and decode points.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Any, Callable, Mapping, Optional

import requests
from PIL import Image
from requests.structures import CaseInsensitiveDict

from frame_service.config import DEFAULT_HTTP_TIMEOUT

logger = logging.getLogger(__name__)


class HttpResponse:
    """
    Minimal response surface used by the cache and image providers.

    Args:
        status: HTTP status code
        headers: Response headers (looked up case-insensitively)
        url: Final URL after redirects
        body: Response body, or a zero-argument callable producing it
        on_close: Releases the underlying connection; called at most once
    """

    def __init__(self, status: int, headers: Optional[Mapping[str, str]] = None,
                 url: str = "", body: Any = "",
                 on_close: Optional[Callable[[], None]] = None):
        self.status = status
        self.headers = CaseInsensitiveDict(headers or {})
        self.url = url
        self._body = body
        self._on_close = on_close

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    async def text(self) -> str:
        body = self._body
        if callable(body):
            body = body()
            if asyncio.iscoroutine(body):
                body = await body
        return body

    def close(self) -> None:
        """Release the connection; safe to call when the body was never read."""
        on_close, self._on_close = self._on_close, None
        if on_close is not None:
            on_close()

    def __repr__(self):
        return f"HttpResponse(status={self.status}, url={self.url!r})"


class FetchStrategy(ABC):
    """Performs HTTP GET requests for the cache and image providers."""

    @abstractmethod
    async def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> HttpResponse:
        """GET ``url`` with optional request headers."""


class ImageLoader(ABC):
    """Loads and decodes an image exposing width/height."""

    @abstractmethod
    async def load(self, url: str) -> Any:
        """Return a decoded image for ``url``."""


class RequestsFetchStrategy(FetchStrategy):
    """Fetch strategy backed by a ``requests`` session on a thread pool."""

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_HTTP_TIMEOUT,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.executor = executor or ThreadPoolExecutor(max_workers=8)

    async def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> HttpResponse:
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            self.executor,
            lambda: self.session.get(url, headers=dict(headers or {}),
                                     timeout=self.timeout, stream=True),
        )
        logger.debug(f"GET {url} -> {response.status_code} ({response.url})")

        async def read_body():
            try:
                return await loop.run_in_executor(self.executor, lambda: response.text)
            finally:
                result.close()

        result = HttpResponse(response.status_code, response.headers, response.url,
                              read_body, on_close=response.close)
        if not result.ok:
            result.close()
        return result


class PillowImageLoader(ImageLoader):
    """Downloads image bytes with ``requests`` and decodes them with Pillow."""

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_HTTP_TIMEOUT,
                 executor: Optional[ThreadPoolExecutor] = None):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.executor = executor or ThreadPoolExecutor(max_workers=4)

    def _load_sync(self, url: str) -> Image.Image:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        image = Image.open(BytesIO(response.content))
        image.load()
        return image

    async def load(self, url: str) -> Image.Image:
        loop = asyncio.get_running_loop()
        image = await loop.run_in_executor(self.executor, self._load_sync, url)
        logger.debug(f"Decoded {url}: {image.width}x{image.height} {image.mode}")
        return image
