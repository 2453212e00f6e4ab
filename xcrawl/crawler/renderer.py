"""
Page fetcher that renders pages in headless Chromium before parsing.

Use it for sites that build their links with JavaScript. It exposes the same
``fetch_document`` capability as WebFetcher, so the engine cannot tell them
apart.
"""

import asyncio
import logging
from typing import Any, Optional

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .extractor import build_document
from .fetcher import FetchError
from ..utils.config import DEFAULT_USER_AGENT


class BrowserFetcher:
    """
    Loads each page in its own browser tab and parses the rendered DOM.

    A browser is launched on start() unless one is passed in, in which case
    the caller keeps ownership and close() leaves it running.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, request_timeout: float = 30,
                 max_concurrent_requests: int = 4, wait_until: str = "load",
                 browser: Optional[Any] = None):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.wait_until = wait_until

        self.logger = logging.getLogger(__name__)

        self._browser = browser
        self._playwright = None
        self._owns_browser = browser is None
        self._limiter = asyncio.Semaphore(max_concurrent_requests)
        self.pages_rendered = 0
        self.render_failures = 0

    async def __aenter__(self) -> 'BrowserFetcher':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def start(self):
        if self.started:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=True)
        self.logger.info(f"Headless browser launched ({self.max_concurrent_requests} tabs)")

    async def close(self):
        if not self._owns_browser:
            return
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            self.logger.info("Headless browser closed")

    async def fetch_document(self, url: str) -> BeautifulSoup:
        """
        Render a URL and parse the resulting DOM.

        Raises:
            FetchError: on navigation failure, timeout or an HTTP error status
            RuntimeError: if the fetcher has not been started
        """
        if not self.started:
            raise RuntimeError("BrowserFetcher used before start()")

        async with self._limiter:
            page = await self._browser.new_page(user_agent=self.user_agent)
            try:
                response = await page.goto(url, wait_until=self.wait_until,
                                           timeout=self.request_timeout * 1000)
                if response is not None and response.status >= 400:
                    self.render_failures += 1
                    raise FetchError(url, f"HTTP {response.status}", response.status)
                html = await page.content()
            except PlaywrightError as e:
                self.render_failures += 1
                raise FetchError(url, f"Browser error: {e}") from e
            finally:
                await page.close()

        self.pages_rendered += 1
        self.logger.debug(f"Rendered {url} ({len(html)} chars)")
        return build_document(html)

    def get_stats(self):
        return {
            'pages_rendered': self.pages_rendered,
            'render_failures': self.render_failures,
        }
