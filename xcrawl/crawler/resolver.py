"""
Link resolution: normalizes references and resolves them against a base URI.
"""

import re
from enum import Enum
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit, quote


class RejectionReason(Enum):
    """Why a candidate link was dropped."""
    INVALID_REFERENCE = "invalid_reference"
    NO_HOSTNAME = "no_hostname"
    CROSS_HOST = "cross_host"


class ResolutionRejection(Exception):
    """A candidate link that cannot become a work item."""

    def __init__(self, reason: RejectionReason, ref: str, detail: str = "",
                 uri: Optional[str] = None):
        self.reason = reason
        self.ref = ref
        self.detail = detail
        # Normalized absolute URI, when resolution got that far (cross-host links)
        self.uri = uri
        message = f"{reason.value}: {ref!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


DEFAULT_PORTS = {'http': 80, 'https': 443}

_ESCAPE_PATTERN = re.compile(r'%([0-9A-Fa-f]{2})')
_DUPLICATE_SLASHES = re.compile(r'/{2,}')
_DIRECTORY_INDEX = re.compile(r'(^|/)(?:default|index)\.\w{1,4}$')

_UNRESERVED = frozenset(
    'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~'
)
_PATH_SAFE = "/:@!$&'()*+,;=%~"
_QUERY_SAFE = "/?:@!$'()*+,;=%~"


def _fix_escape(match: re.Match) -> str:
    char = chr(int(match.group(1), 16))
    if char in _UNRESERVED:
        return char
    return match.group(0).upper()


def _normalize_escapes(component: str, safe: str) -> str:
    """Encode what must be escaped, decode what need not be, uppercase the rest."""
    return _ESCAPE_PATTERN.sub(_fix_escape, quote(component, safe=safe))


def _remove_dot_segments(path: str) -> str:
    output = []
    for segment in path.split('/'):
        if segment == '..':
            if len(output) > 1:
                output.pop()
        elif segment != '.':
            output.append(segment)
    if path.endswith(('/.', '/..')):
        output.append('')
    return '/'.join(output)


def _normalize_path(path: str) -> str:
    path = _DUPLICATE_SLASHES.sub('/', path)
    path = _remove_dot_segments(path)
    path = _DIRECTORY_INDEX.sub(r'\1', path)
    return path or '/'


def _normalize_query(query: str) -> str:
    params = [_normalize_escapes(p, _QUERY_SAFE) for p in query.split('&') if p]
    return '&'.join(sorted(params))


def normalize_url(url: str) -> str:
    """
    Normalize a URI (absolute or relative) into its canonical form.

    Lowercases scheme and host, strips default ports and fragments, cleans
    up the path (dot segments, duplicate slashes, directory index), fixes
    percent-escapes and sorts the query. Applying it twice is a no-op.

    Raises:
        ResolutionRejection: with INVALID_REFERENCE if the URI cannot be parsed
    """
    try:
        parts = urlsplit(url.strip())
        port = parts.port
        hostname = parts.hostname
    except ValueError as e:
        raise ResolutionRejection(RejectionReason.INVALID_REFERENCE, url, str(e))

    scheme = parts.scheme.lower()
    path = _normalize_escapes(parts.path, _PATH_SAFE)

    netloc = parts.netloc
    if netloc:
        host = hostname or ''
        if ':' in host:
            host = f"[{host}]"
        if port is not None and port != DEFAULT_PORTS.get(scheme):
            host = f"{host}:{port}"
        userinfo, sep, _ = parts.netloc.rpartition('@')
        netloc = f"{userinfo}@{host}" if sep else host
        # Relative references keep their dot segments until they are resolved
        path = _normalize_path(path)

    return urlunsplit((scheme, netloc, path, _normalize_query(parts.query), ''))


def get_hostname(url: str) -> str:
    """Return the lowercased host of a URI, or an empty string."""
    try:
        return urlsplit(url).hostname or ''
    except ValueError:
        return ''


def resolve_ref(base: str, ref: str, same_host_only: bool = False) -> str:
    """
    Resolve a link found on the page at `base` into a crawlable absolute URI.

    Args:
        base: URI of the page the reference was found on
        ref: Raw href value
        same_host_only: Reject references leaving the base host

    Returns:
        The normalized absolute URI

    Raises:
        ResolutionRejection: if the reference is malformed, has no host,
            or leaves the base host while same_host_only is set
    """
    if ref.strip().startswith('#'):
        raise ResolutionRejection(RejectionReason.NO_HOSTNAME, ref, "fragment-only reference")

    normalized_ref = normalize_url(ref)
    normalized_base = normalize_url(base)
    try:
        joined = urljoin(normalized_base, normalized_ref)
    except ValueError as e:
        raise ResolutionRejection(RejectionReason.INVALID_REFERENCE, ref, str(e))
    resolved = normalize_url(joined)

    hostname = get_hostname(resolved)
    if not hostname:
        raise ResolutionRejection(RejectionReason.NO_HOSTNAME, ref, f"no host in {resolved}")

    if same_host_only:
        base_hostname = get_hostname(normalized_base)
        if hostname != base_hostname:
            raise ResolutionRejection(
                RejectionReason.CROSS_HOST, ref,
                f"{hostname} differs from {base_hostname}", uri=resolved
            )

    return resolved
