"""
Configuration loading tests
"""

import dataclasses

import pytest

from xcrawl.utils.config import (
    Config, ConfigError, ConfigManager, CrawlConfig, FetcherConfig, LoggingConfig, load_config,
    parse_config
)

FLAT_YAML = """
depth: 2
same_host: true
contains_tags:
  - img
tags:
  - img
  - video
attr: src
"""

NESTED_YAML = """
search:
  depth: 2
  same_host: true
  contains_tags:
    - img
record:
  tags:
    - img
    - video
  attr: src
"""

EXPECTED = CrawlConfig(
    max_depth=2,
    same_host_only=True,
    required_tags=frozenset({'img'}),
    record_tags=frozenset({'img', 'video'}),
    record_attr='src',
)


def test_flat_yaml():
    assert parse_config(FLAT_YAML).crawl == EXPECTED


def test_nested_search_and_record_sections():
    assert parse_config(NESTED_YAML).crawl == EXPECTED


def test_json_document():
    text = '{"depth": 2, "same_host": true, "contains_tags": ["img"], ' \
           '"tags": ["img", "video"], "attr": "src", "comment": "ignored"}'
    assert parse_config(text, 'json').crawl == EXPECTED


def test_missing_keys_take_zero_values():
    config = parse_config("same_host: true\n")
    assert config.crawl == CrawlConfig(same_host_only=True)
    assert config.crawl.max_depth == 0
    assert config.crawl.required_tags == frozenset()
    assert config.crawl.record_attr == ''


def test_empty_document_gives_defaults():
    config = parse_config("")
    assert config == Config()


def test_unknown_keys_are_ignored():
    config = parse_config("depth: 1\nfollow_redirects: true\nfetcher:\n  proxy: none\n")
    assert config.crawl.max_depth == 1


def test_tag_names_are_lowercased():
    assert parse_config("contains_tags: [IMG]").crawl.required_tags == frozenset({'img'})


def test_fetcher_and_logging_sections():
    config = parse_config("""
fetcher:
  user_agent: TestBot/1.0
  request_timeout: 5
  max_concurrent_requests: 3
  verify_ssl: true
logging:
  level: debug
  json: true
""")
    assert config.fetcher.user_agent == 'TestBot/1.0'
    assert config.fetcher.request_timeout == 5
    assert config.fetcher.max_concurrent_requests == 3
    assert config.fetcher.verify_ssl is True
    assert config.logging.level == 'debug'
    assert config.logging.json is True


def test_null_fetcher_and_logging_values_take_defaults():
    config = parse_config("""
fetcher:
  renderer:
  request_timeout:
  max_concurrent_requests: null
  max_content_size: ~
  verify_ssl:
logging:
  level:
  file:
""")
    assert config.fetcher == FetcherConfig()
    assert config.logging == LoggingConfig()


def test_browser_renderer_section():
    config = parse_config("fetcher:\n  renderer: browser\n  wait_until: networkidle\n"
                          "  request_timeout: 12.5\n")
    assert config.fetcher.renderer == 'browser'
    assert config.fetcher.wait_until == 'networkidle'
    assert config.fetcher.request_timeout == 12.5


def test_crawl_config_is_immutable():
    config = parse_config(FLAT_YAML)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.crawl.max_depth = 10


@pytest.mark.parametrize('text', [
    "depth: -1",
    "depth: two",
    "depth: 1.5",
    "depth: true",
    "same_host: 'yes'",
    "contains_tags: img",
    "tags: [1, 2]",
    "attr: 5",
    "- depth: 1",
    "search: [depth]",
    "depth: [1",
    "fetcher:\n  max_concurrent_requests: 0",
    "fetcher:\n  request_timeout: 0",
    "logging:\n  level: chatty",
    "fetcher:\n  request_timeout: abc",
    "fetcher:\n  request_timeout: '30'",
    "fetcher:\n  max_concurrent_requests: '10'",
    "fetcher:\n  max_concurrent_requests: 2.5",
    "fetcher:\n  max_content_size: [1]",
    "fetcher:\n  verify_ssl: 'no'",
    "fetcher:\n  user_agent: 5",
    "fetcher:\n  renderer: phantomjs",
    "fetcher:\n  wait_until: forever",
    "logging:\n  json: 1",
    "logging:\n  file: 7",
])
def test_malformed_documents_raise_config_error(text):
    with pytest.raises(ConfigError):
        parse_config(text)


def test_malformed_json_raises_config_error():
    with pytest.raises(ConfigError):
        parse_config('{"depth": 1,', 'json')


def test_load_yaml_file(tmp_path):
    path = tmp_path / 'crawl.yml'
    path.write_text(FLAT_YAML)
    assert load_config(path).crawl == EXPECTED


def test_load_json_file(tmp_path):
    path = tmp_path / 'crawl.json'
    path.write_text('{"depth": 3}')
    assert load_config(str(path)).crawl.max_depth == 3


def test_missing_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / 'absent.yaml')


def test_manager_requires_load_before_access(tmp_path):
    manager = ConfigManager(tmp_path / 'crawl.yml')
    with pytest.raises(ConfigError):
        manager.config
