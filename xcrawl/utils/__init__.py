"""
Utility modules for the crawler.
"""

from .config import Config, ConfigError, ConfigManager, CrawlConfig, load_config, parse_config
from .logger import setup_logging, get_crawler_logger

__all__ = [
    'Config', 'ConfigError', 'ConfigManager', 'CrawlConfig', 'load_config', 'parse_config',
    'setup_logging', 'get_crawler_logger'
]
