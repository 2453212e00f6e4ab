"""
Link resolver tests

Covers:
- relative and absolute resolution
- normalization (case, ports, escapes, dot segments, query order)
- rejection reasons
- idempotence
"""

import pytest

from xcrawl.crawler.resolver import (
    RejectionReason, ResolutionRejection, normalize_url, resolve_ref
)

BASE = 'http://a.test/dir/page'


# ---------------------------------------------------------------------------
# resolution
# ---------------------------------------------------------------------------

def test_resolves_root_relative_reference():
    assert resolve_ref('http://a.test/', '/x') == 'http://a.test/x'


def test_resolves_parent_relative_reference():
    assert resolve_ref('http://a.test/a/b/', '../c') == 'http://a.test/a/c'


def test_resolves_sibling_reference():
    assert resolve_ref(BASE, 'other') == 'http://a.test/dir/other'


def test_absolute_reference_ignores_base():
    assert resolve_ref(BASE, 'https://b.test/y') == 'https://b.test/y'


def test_scheme_relative_reference_takes_base_scheme():
    assert resolve_ref('https://a.test/', '//b.test/y') == 'https://b.test/y'


def test_query_only_reference():
    assert resolve_ref(BASE, '?page=2') == 'http://a.test/dir/page?page=2'


# ---------------------------------------------------------------------------
# normalization
# ---------------------------------------------------------------------------

def test_lowercases_scheme_and_host():
    assert normalize_url('HTTP://A.Test/Path') == 'http://a.test/Path'


def test_removes_default_port():
    assert normalize_url('http://a.test:80/p') == 'http://a.test/p'
    assert normalize_url('https://a.test:443/p') == 'https://a.test/p'


def test_keeps_non_default_port():
    assert normalize_url('https://a.test:8443/') == 'https://a.test:8443/'


def test_empty_path_becomes_slash():
    assert normalize_url('http://a.test') == 'http://a.test/'


def test_drops_fragment():
    assert resolve_ref(BASE, '/p#section') == 'http://a.test/p'


def test_sorts_query_parameters():
    assert resolve_ref(BASE, '/s?z=1&a=2') == 'http://a.test/s?a=2&z=1'


def test_drops_empty_query():
    assert normalize_url('http://a.test/p?') == 'http://a.test/p'


def test_percent_escapes():
    # unreserved characters are decoded, the rest uppercased
    assert normalize_url('http://a.test/%7euser/a%2fb') == 'http://a.test/~user/a%2Fb'


def test_encodes_unsafe_characters():
    assert normalize_url('http://a.test/a b') == 'http://a.test/a%20b'
    assert normalize_url('http://a.test/café') == 'http://a.test/caf%C3%A9'


def test_cleans_up_path():
    assert normalize_url('http://a.test//a/./b/../c') == 'http://a.test/a/c'


def test_removes_directory_index():
    assert normalize_url('http://a.test/docs/index.html') == 'http://a.test/docs/'


def test_keeps_trailing_slash_and_www():
    assert normalize_url('http://www.a.test/dir/') == 'http://www.a.test/dir/'


def test_keeps_userinfo_and_ipv6_host():
    assert normalize_url('http://user:pw@A.test/') == 'http://user:pw@a.test/'
    assert normalize_url('http://[::1]:8080/x') == 'http://[::1]:8080/x'


def test_relative_reference_keeps_dot_segments():
    assert normalize_url('../x') == '../x'


# ---------------------------------------------------------------------------
# rejections
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('ref', ['http://[::1', 'http://a.test:99999/', 'http://a.test:abc/'])
def test_unparseable_reference_is_invalid(ref):
    with pytest.raises(ResolutionRejection) as exc_info:
        resolve_ref(BASE, ref)
    assert exc_info.value.reason is RejectionReason.INVALID_REFERENCE


@pytest.mark.parametrize('ref', ['mailto:someone@a.test', 'javascript:void(0)', '#top',
                                 'data:text/plain,hi'])
def test_reference_without_host_is_rejected(ref):
    with pytest.raises(ResolutionRejection) as exc_info:
        resolve_ref(BASE, ref)
    assert exc_info.value.reason is RejectionReason.NO_HOSTNAME


def test_cross_host_rejected_when_restricted():
    with pytest.raises(ResolutionRejection) as exc_info:
        resolve_ref('http://a.test/', 'http://b.test/y', same_host_only=True)
    assert exc_info.value.reason is RejectionReason.CROSS_HOST
    assert exc_info.value.uri == 'http://b.test/y'


def test_cross_host_allowed_when_unrestricted():
    assert resolve_ref('http://a.test/', 'http://b.test/y') == 'http://b.test/y'


def test_same_host_compare_is_after_normalization():
    assert resolve_ref('http://a.test/', 'http://A.TEST/z', same_host_only=True) == 'http://a.test/z'


def test_subdomain_counts_as_other_host():
    with pytest.raises(ResolutionRejection):
        resolve_ref('http://a.test/', 'http://www.a.test/', same_host_only=True)


# ---------------------------------------------------------------------------
# idempotence
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('ref', ['../up/./x?b=2&a=1#frag', '/%7Ea/b%2f c', 'index.html',
                                 '//B.test:80//p', 'https://c.test:443'])
def test_resolution_is_idempotent(ref):
    resolved = resolve_ref('http://a.test/one/two/', ref)
    assert resolve_ref(resolved, resolved) == resolved
    assert normalize_url(resolved) == resolved
