"""URL & query normalization for request paths and referers.

Request paths are first-party input: they are resolved against the configured
origin and must stay on the origin's host. Referers are third-party input: a
referer that does not parse as an absolute URL is simply dropped.
"""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import SplitResult, parse_qsl, quote, urljoin, urlsplit, urlunsplit

from log2duck.models import Referer

# Schemes that always carry a host, with their default ports.
SPECIAL_SCHEMES = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*$")
_REPEATED_SLASHES = re.compile(r"/{2,}")
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
# Code points a URL host may not contain once parsed.
_FORBIDDEN_HOST = re.compile(r"[\x00-\x20#%/<>?@\[\\\]^|\x7f]")


@dataclass(frozen=True)
class RequestUrl:
    host: str | None
    path: str
    extension: str | None = None
    query: str | None = None
    parsed_query: dict[str, str] | None = None


def collapse_leading_slashes(path: str) -> str:
    """Turn a leading run of ``//`` into a single ``/``.

    A request path such as ``//evil.example/x`` would otherwise be read as a
    scheme-relative URL pointing at another host.
    """
    while path.startswith("//"):
        path = path[1:]
    return path


def origin_host(url: str) -> str | None:
    """Return the lower-cased host of an absolute URL, or None."""
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


def parse_query(query: str | None) -> dict[str, str] | None:
    """Decode a raw query string into a map. Duplicate keys keep the last value."""
    if query is None:
        return None
    return dict(parse_qsl(query, keep_blank_values=True))


def file_extension(path: str) -> str | None:
    suffix = PurePosixPath(path).suffix
    return suffix[1:].lower() or None


def resolve_request(origin: str, raw_path: str) -> RequestUrl | None:
    """Resolve a raw request path against *origin*.

    Returns None when the result is not a usable URL (bad authority, bad port,
    broken IPv6 literal, or a special scheme without a host). The caller is
    responsible for comparing ``host`` with the origin's host.
    """
    try:
        joined = urljoin(origin, collapse_leading_slashes(raw_path))
        parts = urlsplit(joined)
        host = parts.hostname
        parts.port
    except ValueError:
        return None
    if parts.scheme in SPECIAL_SCHEMES and not host:
        return None
    if host and not _valid_host(host):
        return None

    path = _REPEATED_SLASHES.sub("/", _quote_path(parts))
    query = _query_of(raw_path, parts)
    return RequestUrl(
        host=host,
        path=path,
        extension=file_extension(path),
        query=query,
        parsed_query=parse_query(query),
    )


def parse_referer(raw: str) -> Referer | None:
    """Parse a referer header value. Anything but an absolute URL gives None."""
    try:
        parts = urlsplit(raw)
        parts.port
    except ValueError:
        return None
    if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
        return None

    default_port = SPECIAL_SCHEMES.get(parts.scheme)
    if default_port is not None and not parts.hostname:
        return None
    if parts.hostname and not _valid_host(parts.hostname):
        return None

    if default_port is None:
        netloc = parts.netloc
        origin = "null"
        path = parts.path
    else:
        host_port = _host_port(parts, default_port)
        userinfo = parts.netloc.rpartition("@")[0]
        netloc = f"{userinfo}@{host_port}" if userinfo else host_port
        origin = f"{parts.scheme}://{host_port}"
        path = _quote_path(parts)

    query = _query_of(raw, parts)
    url = urlunsplit((parts.scheme, netloc, path, "", ""))
    if query is not None:
        url = f"{url}?{query}"
    if parts.fragment:
        url = f"{url}#{parts.fragment}"

    return Referer(
        url=url,
        origin=origin,
        path=path,
        query=query,
        parsed_query=parse_query(query),
    )


def _quote_path(parts: SplitResult) -> str:
    return quote(parts.path or "/", safe=_PATH_SAFE)


def _valid_host(host: str) -> bool:
    # IPv6 literals come back from urlsplit without brackets, colons included.
    return not _FORBIDDEN_HOST.search(host)


def _query_of(url: str, parts: SplitResult) -> str | None:
    # "/a?" has an empty query, "/a" has none.
    if parts.query or "?" in url.partition("#")[0]:
        return parts.query
    return None


def _host_port(parts: SplitResult, default_port: int) -> str:
    host = parts.hostname
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is None or port == default_port:
        return host
    return f"{host}:{port}"
