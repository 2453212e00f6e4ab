"""
Frontier engine: concurrent breadth-first traversal of a site graph.

Every work item is processed by its own asyncio task. The crawl ends when the
live-work counter, which tracks items dispatched but not fully processed,
drops to zero. An empty queue alone says nothing: a task still in flight may
be about to enqueue children.
"""

import asyncio
import inspect
import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Set

from bs4 import BeautifulSoup

from .extractor import extract_links, extract_values
from .fetcher import FetchError
from .resolver import ResolutionRejection, get_hostname, normalize_url, resolve_ref
from ..utils.config import CrawlConfig
from ..utils.logger import get_crawler_logger


@dataclass(frozen=True)
class WorkItem:
    """A URI awaiting a visit, with its distance from the seed."""
    uri: str
    depth: int


@dataclass
class PageRecord:
    """Data extracted from one fetched page, handed to the recorder."""
    uri: str
    depth: int
    values: List[str] = field(default_factory=list)
    refs: FrozenSet[str] = frozenset()


FetchFn = Callable[[str], Awaitable[BeautifulSoup]]
RecordFn = Callable[[PageRecord], Optional[Awaitable[None]]]


class VisitedSet:
    """
    URIs already handed to the frontier. Only ever grows.

    The engine mutates it from one event loop; the lock is for callers that
    share a set across threads.
    """

    def __init__(self):
        self._uris: Set[str] = set()
        self._lock = threading.Lock()

    def add(self, uri: str) -> bool:
        """Add uri; return False if it was already present."""
        with self._lock:
            if uri in self._uris:
                return False
            self._uris.add(uri)
            return True

    def __contains__(self, uri: str) -> bool:
        with self._lock:
            return uri in self._uris

    def __len__(self) -> int:
        with self._lock:
            return len(self._uris)


class LiveWorkCounter:
    """
    Outstanding work items. Every increment is paired with one decrement.

    Locked for callers that share a counter across threads, like VisitedSet.
    """

    def __init__(self, initial: int = 1):
        self._value = initial
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def decrement(self) -> int:
        with self._lock:
            if self._value <= 0:
                raise RuntimeError("live-work counter decremented below zero")
            self._value -= 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class CrawlStats:
    """Statistics for a single crawl."""
    start_time: float
    pages_fetched: int = 0
    fetch_errors: int = 0
    processing_errors: int = 0
    links_discovered: int = 0
    links_rejected: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    discarded_by_depth: int = 0
    records_emitted: int = 0
    record_errors: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_fetched / elapsed_minutes if elapsed_minutes > 0 else 0


class FrontierEngine:
    """
    Drives one crawl from a seed URI until no more work can arrive.

    The fetch and record capabilities are fixed at construction; an engine
    runs a single crawl and is then discarded.
    """

    def __init__(self, config: CrawlConfig, fetch: FetchFn, record: Optional[RecordFn] = None):
        self.config = config
        self._fetch = fetch
        self._record = record
        self.logger = get_crawler_logger(__name__)

        self.stats = CrawlStats(start_time=time.time())
        self.visited = VisitedSet()
        self._counter = LiveWorkCounter()
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: Set[asyncio.Task] = set()
        self._started = False
        self._cancelled = False

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    async def run(self, seed: str, cancel: Optional[asyncio.Event] = None):
        """
        Crawl from seed until the live-work counter returns to zero.

        Per-page failures are logged and never raised.

        Args:
            seed: Starting URI, visited at depth 0
            cancel: Optional event; once set, no new pages are fetched

        Raises:
            ValueError: if seed cannot be parsed as a URI or has no hostname
            RuntimeError: if the engine has already been run
        """
        if self._started:
            raise RuntimeError("FrontierEngine already ran; create a new one per crawl")
        self._started = True

        try:
            seed_uri = normalize_url(seed)
        except ResolutionRejection as e:
            raise ValueError(f"Invalid seed URI {seed!r}: {e.detail}") from e
        if not get_hostname(seed_uri):
            raise ValueError(f"Invalid seed URI {seed!r}: no hostname")

        self._queue = asyncio.Queue()
        self.stats = CrawlStats(start_time=time.time())
        self.visited.add(seed_uri)
        self._queue.put_nowait(WorkItem(uri=seed_uri, depth=0))

        self.logger.info(f"Crawl starting at {seed_uri} (max depth {self.config.max_depth}, "
                         f"same host only: {self.config.same_host_only})")

        watcher = asyncio.create_task(self._watch(cancel)) if cancel is not None else None
        try:
            await self._dispatch()
        except asyncio.CancelledError:
            self.stop()
            raise
        finally:
            if watcher:
                watcher.cancel()
            await self._drain()

        self._log_final_stats()

    def stop(self):
        """Stop fetching; queued and in-flight pages complete with no children."""
        if self._cancelled:
            return
        self._cancelled = True
        self.logger.info(f"Stopping crawl, abandoning {len(self._tasks)} in-flight pages")
        for task in list(self._tasks):
            task.cancel()

    async def _watch(self, cancel: asyncio.Event):
        await cancel.wait()
        self.stop()

    async def _dispatch(self):
        """Pull work items until the stop sentinel arrives."""
        while True:
            item = await self._queue.get()
            if item is None:
                break

            if self._cancelled:
                self._release()
                continue

            if item.depth > self.config.max_depth:
                self.stats.discarded_by_depth += 1
                self.logger.debug(f"Skipping URL beyond max depth: {item.uri}")
                self._release()
                continue

            task = asyncio.create_task(self._process(item))
            self._tasks.add(task)
            # A done callback runs even for tasks cancelled before their first step
            task.add_done_callback(self._unit_done)

    def _unit_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        self._release()

    def _release(self):
        if self._counter.decrement() == 0:
            # Nothing is in flight, so nothing can enqueue after the sentinel
            self._queue.put_nowait(None)

    async def _drain(self):
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _process(self, item: WorkItem):
        """Visit one page; failures stay inside this unit."""
        try:
            await self._visit(item)
        except Exception as e:
            self.stats.processing_errors += 1
            self.logger.log_url_event(logging.ERROR, item.uri,
                                      f"Error processing {item.uri}: {e!r}",
                                      event_type='processing_error')

    async def _visit(self, item: WorkItem):
        self.logger.log_url_event(logging.INFO, item.uri,
                                  f"Fetching {item.uri} @ depth {item.depth}",
                                  event_type='fetch', depth=item.depth)
        try:
            document = await self._fetch(item.uri)
        except FetchError as e:
            self.stats.fetch_errors += 1
            self.logger.log_url_event(logging.WARNING, item.uri, f"Failed to fetch {e}",
                                      event_type='fetch_error', status_code=e.status_code)
            return

        self.stats.pages_fetched += 1

        refs = set()
        if not self._cancelled:
            refs = self._enqueue_links(item, document)

        if self._record is not None:
            values = extract_values(document, self.config.record_tags, self.config.record_attr)
            await self._emit(PageRecord(uri=item.uri, depth=item.depth,
                                        values=values, refs=frozenset(refs)))

    def _enqueue_links(self, item: WorkItem, document: BeautifulSoup) -> Set[str]:
        """Resolve the page's links and enqueue unseen ones; return every resolved link."""
        refs = set()
        queued = 0

        for href in extract_links(document, self.config.required_tags):
            try:
                uri = resolve_ref(item.uri, href, self.config.same_host_only)
            except ResolutionRejection as e:
                self.stats.links_rejected[e.reason.value] += 1
                if e.uri:
                    refs.add(e.uri)
                self.logger.debug(f"Rejected link on {item.uri}: {e}")
                continue

            refs.add(uri)
            # Mark visited before the hand-off so a concurrent discovery loses
            if self.visited.add(uri):
                self._counter.increment()
                self._queue.put_nowait(WorkItem(uri=uri, depth=item.depth + 1))
                queued += 1

        self.stats.links_discovered += queued
        self.logger.debug(f"Queued {queued} new URLs from {item.uri}")
        return refs

    async def _emit(self, page: PageRecord):
        try:
            outcome = self._record(page)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.stats.record_errors += 1
            self.logger.log_url_event(logging.ERROR, page.uri,
                                      f"Recorder failed for {page.uri}: {e!r}",
                                      event_type='record_error')
            return
        self.stats.records_emitted += 1

    def _log_final_stats(self):
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Pages fetched: {self.stats.pages_fetched}")
        self.logger.info(f"Fetch errors: {self.stats.fetch_errors}")
        self.logger.info(f"Links queued: {self.stats.links_discovered}")
        self.logger.info(f"Links rejected: {dict(self.stats.links_rejected)}")
        self.logger.info(f"Skipped beyond max depth: {self.stats.discarded_by_depth}")
        self.logger.info(f"Records emitted: {self.stats.records_emitted}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"Average rate: {self.stats.pages_per_minute:.1f} pages/min")

    def get_stats(self) -> Dict[str, Any]:
        """Get current crawl statistics."""
        return {
            'pages_fetched': self.stats.pages_fetched,
            'fetch_errors': self.stats.fetch_errors,
            'processing_errors': self.stats.processing_errors,
            'links_discovered': self.stats.links_discovered,
            'links_rejected': dict(self.stats.links_rejected),
            'discarded_by_depth': self.stats.discarded_by_depth,
            'records_emitted': self.stats.records_emitted,
            'record_errors': self.stats.record_errors,
            'visited': len(self.visited),
            'live_work': self._counter.value,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'is_cancelled': self._cancelled
        }


async def crawl(seed: str, config: CrawlConfig, fetch: FetchFn,
                record: Optional[RecordFn] = None,
                cancel: Optional[asyncio.Event] = None) -> None:
    """
    Crawl breadth-first from seed.

    Args:
        seed: Starting URI
        config: Search and record parameters
        fetch: Async callable turning a URI into a document, raising FetchError
        record: Optional callable receiving a PageRecord per fetched page;
            may return an awaitable
        cancel: Optional event that stops the crawl early when set
    """
    engine = FrontierEngine(config, fetch, record)
    await engine.run(seed, cancel=cancel)
