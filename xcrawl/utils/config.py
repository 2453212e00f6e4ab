"""
Configuration management for the crawler.

A configuration document is YAML or JSON. Crawl parameters live at the top
level (or nested under ``search:`` and ``record:``)::

    depth: 2
    same_host: true
    contains_tags: [img]
    tags: [img]
    attr: src

Optional ``fetcher:`` and ``logging:`` sections tune the default fetcher and
the log output. Unknown keys are ignored; missing or null keys take their
defaults, and a value of the wrong type raises ConfigError.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Union
from dataclasses import dataclass, field

import yaml

DEFAULT_USER_AGENT = "Mozilla/5.0"

RENDERERS = ("static", "browser")

PAGE_LOAD_STATES = ("commit", "domcontentloaded", "load", "networkidle")


class ConfigError(Exception):
    """The configuration document is unreadable or malformed."""


@dataclass(frozen=True)
class CrawlConfig:
    """Search and record parameters of a single crawl."""
    max_depth: int = 0
    same_host_only: bool = False
    required_tags: FrozenSet[str] = frozenset()
    record_tags: FrozenSet[str] = frozenset()
    record_attr: str = ""


@dataclass
class FetcherConfig:
    """
    Configuration for the page fetcher.

    ``renderer`` picks the fetcher: ``static`` requests pages over aiohttp,
    ``browser`` loads them in headless Chromium so scripts run before parsing.
    ``verify_ssl`` and ``max_content_size`` apply to the static fetcher,
    ``wait_until`` to the browser.
    """
    renderer: str = "static"
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 30
    max_concurrent_requests: int = 10
    verify_ssl: bool = False
    max_content_size: int = 10 * 1024 * 1024
    wait_until: str = "load"


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    file: Optional[str] = None
    json: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawl: CrawlConfig = field(default_factory=CrawlConfig)
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Config':
        """Build a validated Config from a parsed configuration document."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"configuration must be a mapping, got {type(data).__name__}")

        search = _section(data, 'search')
        record = _section(data, 'record')

        def lookup(key, nested):
            return nested.get(key, data.get(key))

        crawl = CrawlConfig(
            max_depth=_as_depth(lookup('depth', search)),
            same_host_only=_as_bool('same_host', lookup('same_host', search)),
            required_tags=_as_tags('contains_tags', lookup('contains_tags', search)),
            record_tags=_as_tags('tags', lookup('tags', record)),
            record_attr=_as_str('attr', lookup('attr', record)),
        )

        fetcher_data = _section(data, 'fetcher')
        fetcher_defaults = FetcherConfig()
        fetcher = FetcherConfig(
            renderer=_as_str('renderer', fetcher_data.get('renderer'),
                             fetcher_defaults.renderer),
            user_agent=_as_str('user_agent', fetcher_data.get('user_agent'),
                               fetcher_defaults.user_agent),
            request_timeout=_as_number('request_timeout', fetcher_data.get('request_timeout'),
                                       fetcher_defaults.request_timeout),
            max_concurrent_requests=_as_int('max_concurrent_requests',
                                            fetcher_data.get('max_concurrent_requests'),
                                            fetcher_defaults.max_concurrent_requests),
            verify_ssl=_as_bool('verify_ssl', fetcher_data.get('verify_ssl')),
            max_content_size=_as_int('max_content_size', fetcher_data.get('max_content_size'),
                                     fetcher_defaults.max_content_size),
            wait_until=_as_str('wait_until', fetcher_data.get('wait_until'),
                               fetcher_defaults.wait_until),
        )

        logging_data = _section(data, 'logging')
        logging_defaults = LoggingConfig()
        log_file = logging_data.get('file')
        logging_config = LoggingConfig(
            level=_as_str('level', logging_data.get('level'), logging_defaults.level),
            format=_as_str('format', logging_data.get('format'), logging_defaults.format),
            file=_as_str('file', log_file) if log_file is not None else None,
            json=_as_bool('json', logging_data.get('json')),
        )

        config = cls(crawl=crawl, fetcher=fetcher, logging=logging_config)
        _validate_config(config)
        return config


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _as_depth(value: Any) -> int:
    if value is None:
        return 0
    # bool is an int subclass; `depth: yes` is a mistake, not depth 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'depth' must be a non-negative integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"'depth' must be a non-negative integer, got {value}")
    return value


def _as_bool(name: str, value: Any) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigError(f"'{name}' must be a boolean, got {value!r}")
    return value


def _as_number(name: str, value: Any, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{name}' must be a number, got {value!r}")
    return value


def _as_int(name: str, value: Any, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")
    return value


def _as_tags(name: str, value: Any) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
        raise ConfigError(f"'{name}' must be a list of tag names, got {value!r}")
    return frozenset(tag.lower() for tag in value)


def _as_str(name: str, value: Any, default: str = "") -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"'{name}' must be a string, got {value!r}")
    return value


def _validate_config(config: Config):
    """Validate configuration values."""
    if config.fetcher.request_timeout <= 0:
        raise ConfigError("request_timeout must be positive")

    if config.fetcher.max_concurrent_requests < 1:
        raise ConfigError("max_concurrent_requests must be at least 1")

    if config.fetcher.max_content_size < 1:
        raise ConfigError("max_content_size must be at least 1")

    if config.fetcher.renderer not in RENDERERS:
        raise ConfigError(f"renderer must be one of {', '.join(RENDERERS)}, "
                          f"got {config.fetcher.renderer!r}")

    if config.fetcher.wait_until not in PAGE_LOAD_STATES:
        raise ConfigError(f"wait_until must be one of {', '.join(PAGE_LOAD_STATES)}, "
                          f"got {config.fetcher.wait_until!r}")

    if not isinstance(logging.getLevelName(str(config.logging.level).upper()), int):
        raise ConfigError(f"unknown log level: {config.logging.level}")


def parse_config(text: str, fmt: str = 'yaml') -> Config:
    """
    Parse a configuration document held in memory.

    Args:
        text: Document contents
        fmt: 'yaml' or 'json'
    """
    try:
        if fmt == 'json':
            data = json.loads(text) if text.strip() else None
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot parse {fmt} configuration: {e}")
    return Config.from_dict(data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Union[str, Path] = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from a YAML or JSON file."""
        try:
            text = self.config_path.read_text(encoding='utf-8')
        except OSError as e:
            raise ConfigError(f"cannot read configuration file {self.config_path}: {e}")

        fmt = 'json' if self.config_path.suffix.lower() == '.json' else 'yaml'
        self._config = parse_config(text, fmt)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ConfigError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: Union[str, Path] = "config.yaml") -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()
