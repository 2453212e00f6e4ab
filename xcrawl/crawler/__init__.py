"""
Web crawler core components.
"""

from .resolver import resolve_ref, normalize_url, ResolutionRejection, RejectionReason
from .extractor import build_document, extract_links, extract_values
from .fetcher import WebFetcher, FetchResult, FetchError
from .renderer import BrowserFetcher
from .frontier import FrontierEngine, WorkItem, PageRecord, CrawlStats, crawl

__all__ = [
    'resolve_ref', 'normalize_url', 'ResolutionRejection', 'RejectionReason',
    'build_document', 'extract_links', 'extract_values',
    'WebFetcher', 'FetchResult', 'FetchError', 'BrowserFetcher',
    'FrontierEngine', 'WorkItem', 'PageRecord', 'CrawlStats', 'crawl'
]
