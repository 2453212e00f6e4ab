#!/usr/bin/env python3
"""
Main entry point for the web crawler.
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from xcrawl import __version__
from xcrawl.crawler.fetcher import WebFetcher
from xcrawl.crawler.frontier import FrontierEngine, PageRecord
from xcrawl.crawler.renderer import BrowserFetcher
from xcrawl.utils.config import Config, ConfigError, FetcherConfig, load_config
from xcrawl.utils.logger import setup_logging


def print_record(page: PageRecord):
    """Default recorder: one extracted value per line on stdout."""
    for value in page.values:
        print(value)


def build_fetcher(config: FetcherConfig):
    """Create the fetcher named by config.renderer; it is not started yet."""
    if config.renderer == 'browser':
        return BrowserFetcher(
            user_agent=config.user_agent,
            request_timeout=config.request_timeout,
            max_concurrent_requests=config.max_concurrent_requests,
            wait_until=config.wait_until
        )
    return WebFetcher(
        user_agent=config.user_agent,
        request_timeout=config.request_timeout,
        max_concurrent_requests=config.max_concurrent_requests,
        verify_ssl=config.verify_ssl,
        max_content_size=config.max_content_size
    )


class CrawlerApp:
    """Main application class for the web crawler."""

    def __init__(self):
        self.engine: Optional[FrontierEngine] = None
        self.logger = logging.getLogger(__name__)
        self._shutdown_event: Optional[asyncio.Event] = None

    def setup_signal_handlers(self):
        """Turn SIGINT/SIGTERM into a graceful stop."""
        loop = asyncio.get_running_loop()

        def signal_handler(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            self._shutdown_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, signal_handler, signum)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops
                pass

    async def run(self, start_uri: str, config: Config) -> int:
        """Run a crawl from start_uri; returns the process exit code."""
        self._shutdown_event = asyncio.Event()
        self.setup_signal_handlers()

        self.logger.info("=== WEB CRAWLER STARTING ===")
        self.logger.info(f"Start URI: {start_uri}")
        self.logger.info(f"Max depth: {config.crawl.max_depth}")
        self.logger.info(f"Visit same hostname only: {config.crawl.same_host_only}")
        self.logger.info(f"Required tags: {sorted(config.crawl.required_tags)}")
        self.logger.info(f"Max concurrent requests: {config.fetcher.max_concurrent_requests}")
        self.logger.info(f"Renderer: {config.fetcher.renderer}")

        fetcher = build_fetcher(config.fetcher)
        recorder = print_record if config.crawl.record_tags else None

        try:
            async with fetcher:
                self.engine = FrontierEngine(config.crawl, fetcher.fetch_document, recorder)
                await self.engine.run(start_uri, cancel=self._shutdown_event)
                self.logger.info(f"Fetcher stats: {fetcher.get_stats()}")
        except ValueError as e:
            self.logger.error(str(e))
            return 1
        finally:
            self.logger.info("=== WEB CRAWLER FINISHED ===")

        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Breadth-first web crawler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py https://example.com                       # Run with default config.yaml
  python main.py https://example.com --config crawl.json  # Run with custom config
  python main.py https://example.com --json-logs          # Structured log output
        """
    )

    parser.add_argument(
        'start_uri',
        help='URI the crawl starts from (depth 0)'
    )

    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to YAML or JSON configuration file (default: config.yaml)'
    )

    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Override the configured log level'
    )

    parser.add_argument(
        '--json-logs',
        action='store_true',
        help='Emit logs as JSON lines'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'xcrawl {__version__}'
    )

    return parser


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.", file=sys.stderr)
        print("Please create a config.yaml file or specify a different path with --config",
              file=sys.stderr)
        return 1

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.log_level:
        config.logging.level = args.log_level
    setup_logging(config.logging, enable_json=args.json_logs or None)

    app = CrawlerApp()
    try:
        return asyncio.run(app.run(args.start_uri, config))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
