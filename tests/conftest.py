"""
Shared fixtures: an in-memory site graph standing in for the network.
"""

import asyncio
import random

import pytest

from xcrawl.crawler.extractor import build_document
from xcrawl.crawler.fetcher import FetchError


class FakeSite:
    """Serves HTML from a dict and remembers every fetch."""

    def __init__(self, pages, max_delay=0.0):
        self.pages = pages
        self.max_delay = max_delay
        self.calls = []

    async def fetch(self, uri):
        self.calls.append(uri)
        if self.max_delay:
            # Jitter so sibling units interleave
            await asyncio.sleep(random.uniform(0, self.max_delay))
        if uri not in self.pages:
            raise FetchError(uri, "not found", 404)
        return build_document(self.pages[uri])


def link_page(*hrefs, body=""):
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in hrefs)
    return f"<html><body>{body}{anchors}</body></html>"


@pytest.fixture
def make_site():
    return FakeSite


@pytest.fixture
def page():
    return link_page
