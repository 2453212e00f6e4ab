"""
Default page fetcher built on aiohttp.
"""

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp
from aiohttp import ClientError, ClientResponse, ClientSession, ClientTimeout
from bs4 import BeautifulSoup

from .extractor import build_document
from ..utils.config import DEFAULT_USER_AGENT

TEXT_CONTENT_TYPES = (
    'text/html',
    'text/plain',
    'text/xml',
    'application/xml',
    'application/xhtml+xml',
)

FALLBACK_ENCODINGS = ('utf-8', 'cp1252')

CHUNK_SIZE = 8192

STAT_KEYS = ('total_requests', 'successful_requests', 'failed_requests', 'bytes_downloaded')


class FetchError(Exception):
    """A page could not be fetched or parsed."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(f"{url}: {message}")


@dataclass
class FetchResult:
    """Outcome of a single GET. ``error`` is set when there is no usable content."""
    url: str
    status_code: int
    content: Optional[str] = None
    content_type: Optional[str] = None
    encoding: Optional[str] = None
    error: Optional[str] = None
    elapsed: float = 0.0


def is_text_content(content_type: str) -> bool:
    # a missing header is accepted
    if not content_type:
        return True
    return any(text_type in content_type for text_type in TEXT_CONTENT_TYPES)


def decode_body(body: bytes, charset: Optional[str]) -> str:
    """Decode with the declared charset, then the fallbacks, then lossy utf-8."""
    for encoding in (charset,) + FALLBACK_ENCODINGS:
        if not encoding:
            continue
        try:
            return body.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    return body.decode('utf-8', errors='ignore')


class WebFetcher:
    """
    Fetches web pages over one pooled HTTP session and turns them into documents.

    Use as an async context manager. At most ``max_concurrent_requests`` requests
    are in flight at once, however many crawl units are waiting on the fetcher.
    TLS certificates are not verified unless ``verify_ssl`` is set.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, request_timeout: float = 30,
                 max_concurrent_requests: int = 10, verify_ssl: bool = False,
                 max_content_size: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.verify_ssl = verify_ssl
        self.max_content_size = max_content_size

        self.logger = logging.getLogger(__name__)

        self._session: Optional[ClientSession] = None
        self._limiter = asyncio.Semaphore(max_concurrent_requests)
        self._counts: Counter = Counter()

    async def __aenter__(self) -> 'WebFetcher':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    @property
    def started(self) -> bool:
        return self._session is not None

    async def start(self):
        """Open the HTTP session. Calling it twice is harmless."""
        if self.started:
            return
        connector = aiohttp.TCPConnector(
            limit=self.max_concurrent_requests * 2,
            ssl=self.verify_ssl,
            ttl_dns_cache=300,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=ClientTimeout(total=self.request_timeout),
            headers={'User-Agent': self.user_agent},
        )
        self.logger.info(f"HTTP session opened (user agent {self.user_agent!r}, "
                         f"{self.max_concurrent_requests} concurrent requests)")

    async def close(self):
        if not self.started:
            return
        await self._session.close()
        self._session = None
        self.logger.info("HTTP session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        GET a single URL.

        Transport failures, HTTP errors and unusable bodies are reported
        through ``FetchResult.error`` rather than raised.

        Raises:
            RuntimeError: if the fetcher has not been started
        """
        if not self.started:
            raise RuntimeError("WebFetcher used before start()")

        started_at = time.monotonic()
        async with self._limiter:
            self._counts['total_requests'] += 1
            try:
                result = await self._download(url)
            except asyncio.TimeoutError:
                result = FetchResult(url, 0, error="Request timeout")
            except ClientError as e:
                result = FetchResult(url, 0, error=f"Client error: {e}")
            except ValueError as e:
                # yarl rejects some URLs that survived normalization
                result = FetchResult(url, 0, error=f"Invalid URL: {e}")

        result.elapsed = time.monotonic() - started_at
        if result.error:
            self._counts['failed_requests'] += 1
            self.logger.debug(f"GET {url} failed: {result.error}")
        else:
            self._counts['successful_requests'] += 1
            self.logger.debug(f"GET {url}: {result.status_code} "
                              f"({len(result.content)} chars in {result.elapsed:.2f}s)")
        return result

    async def fetch_document(self, url: str) -> BeautifulSoup:
        """
        Fetch a URL and parse it. This is the fetch capability the engine is given.

        Raises:
            FetchError: if the request failed or returned no usable content
        """
        result = await self.fetch(url)
        if result.error:
            raise FetchError(url, result.error, result.status_code or None)
        return build_document(result.content)

    async def _download(self, url: str) -> FetchResult:
        async with self._session.get(url) as response:
            content_type = response.headers.get('Content-Type', '').lower()
            result = FetchResult(url, response.status, content_type=content_type,
                                 encoding=response.charset)

            if response.status >= 400:
                result.error = f"HTTP {response.status}"
            elif not is_text_content(content_type):
                result.error = "Non-text content type"
            else:
                body = await self._read_body(response)
                if body is None:
                    result.error = f"Content larger than {self.max_content_size} bytes"
                else:
                    self._counts['bytes_downloaded'] += len(body)
                    result.content = decode_body(body, response.charset)
            return result

    async def _read_body(self, response: ClientResponse) -> Optional[bytes]:
        """Read the body in chunks; None once it passes max_content_size."""
        declared = response.content_length
        if declared is not None and declared > self.max_content_size:
            return None

        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
            size += len(chunk)
            if size > self.max_content_size:
                return None
            chunks.append(chunk)
        return b''.join(chunks)

    def get_stats(self) -> Dict[str, int]:
        return {key: self._counts[key] for key in STAT_KEYS}
