"""
Logging utilities for the crawler.
"""

import logging
import logging.handlers
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from .config import LoggingConfig

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

LOG_FILE_MAX_BYTES = 50 * 1024 * 1024
LOG_FILE_BACKUPS = 5

THIRD_PARTY_LOGGERS = {
    'aiohttp': logging.WARNING,
    'asyncio': logging.WARNING,
    'urllib3': logging.WARNING,
    'chardet': logging.WARNING,
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; structured fields from the adapter are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'time': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'source': f"{record.module}:{record.lineno}",
        }
        entry.update(getattr(record, 'extra_fields', {}))
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class CrawlerLogAdapter(logging.LoggerAdapter):
    """Logger adapter that attaches crawl context as structured fields."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault('extra', {})
        fields = dict(self.extra)
        fields.update(extra.get('extra_fields', {}))
        extra['extra_fields'] = fields
        return msg, kwargs

    def log_url_event(self, level: int, url: str, message: str, event_type: str = 'url_event',
                      **fields):
        """Log an event about a single URL."""
        fields.update(url=url, event_type=event_type)
        self.log(level, message, extra={'extra_fields': fields})


def _build_handlers(log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding='utf-8'
        ))
    return handlers


def setup_logging(config: LoggingConfig, enable_json: Optional[bool] = None) -> logging.Logger:
    """
    Configure the root logger for a crawl.

    Diagnostics go to stderr; stdout is left to the recorder. A rotating
    file handler is added when the configuration names a log file.

    Args:
        config: Logging section of the configuration
        enable_json: Override config.json

    Returns:
        Configured root logger
    """
    if enable_json is None:
        enable_json = config.json

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))
    root_logger.handlers.clear()

    if enable_json:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(config.format or DEFAULT_FORMAT)

    for handler in _build_handlers(config.file):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for logger_name, level in THIRD_PARTY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    root_logger.debug(f"Logging configured: level={config.level}, json={enable_json}, "
                      f"file={config.file}")
    return root_logger


def get_crawler_logger(name: str, **extra_context) -> CrawlerLogAdapter:
    """
    Get a crawler logger that tags every message with extra_context.

    Args:
        name: Logger name
        **extra_context: Fields included in all log messages

    Returns:
        CrawlerLogAdapter instance
    """
    return CrawlerLogAdapter(logging.getLogger(name), extra_context)
