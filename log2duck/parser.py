"""Parses combined access-log lines into enriched LogEntry records.

Grammar, scanned strictly left to right:

  IP IDENTITY USER [TIMESTAMP] "METHOD PATH HTTP/VERSION" STATUS SIZE "REFERER" "USER-AGENT"

Every field is validated as soon as it is read and the first failure ends the
line. The timestamp is checked against the watermark before any URL work or
enrichment is done, so already-ingested lines cost almost nothing.
"""

import ipaddress

from log2duck.config import ParseConfig
from log2duck.cursor import find
from log2duck.enrichment import ParserServices
from log2duck.models import HttpMethod, HttpVersion, LogEntry, LogError
from log2duck.urls import parse_referer, resolve_request
from log2duck.watermark import is_new, parse_timestamp

SPACE = " "
QUOTE = '"'
BRACKET = "]"
HTTP = " HTTP/"

MAX_STATUS_CODE = 65535
MAX_SIZE = 2**64 - 1  # UBIGINT


class _Rejected(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def _take(line: str, start: int, pattern: str, missing: str) -> tuple[str, int]:
    found = find(start, line, pattern)
    if found is None:
        raise _Rejected(missing)
    return found


def _optional(value: str) -> str | None:
    return None if value == "-" else value


def _parse_unsigned(value: str, limit: int | None = None) -> int | None:
    if not value.isascii() or not value.isdigit():
        return None
    number = int(value)
    if limit is not None and number > limit:
        return None
    return number


def parse_entry(line: str, services: ParserServices, config: ParseConfig) -> LogEntry | LogError:
    """Parse one line. Never raises for bad input; failures come back as LogError."""
    try:
        return _parse(line, services, config)
    except _Rejected as e:
        return LogError.rejected(line, e.reason)


def _parse(line: str, services: ParserServices, config: ParseConfig) -> LogEntry | LogError:
    ip_text, pos = _take(line, 0, SPACE, "IP not found")
    try:
        ip = ipaddress.ip_address(ip_text)
    except ValueError:
        raise _Rejected("Invalid IP") from None

    identity, pos = _take(line, pos + 1, SPACE, "Identity not found")
    user, pos = _take(line, pos + 1, SPACE, "User not found")

    # ' ['
    timestamp_text, pos = _take(line, pos + 2, BRACKET, "Datetime not found")
    timestamp = parse_timestamp(timestamp_text)
    if timestamp is None:
        raise _Rejected("Invalid datetime")
    if not is_new(timestamp, config.watermark):
        return LogError.already_ingested(line)

    # '] "'
    request, _ = _take(line, pos + 3, QUOTE, "Request not found")
    if not request:
        raise _Rejected("Empty request")

    method_text, pos = _take(line, pos + 3, SPACE, "HTTP method not found")
    method = HttpMethod.parse(method_text)
    if method is None:
        raise _Rejected("Invalid HTTP method")

    raw_path, pos = _take(line, pos + 1, HTTP, "Path not found")
    url = resolve_request(config.origin, raw_path)
    if url is None:
        raise _Rejected("Path not valid")
    # Host only: scheme and port are not compared.
    if url.host != config.host:
        raise _Rejected("Path has a different host")

    version_text, pos = _take(line, pos + 1, QUOTE, "HTTP version not found")
    http_version = HttpVersion.parse(version_text)
    if http_version is None:
        raise _Rejected("Invalid HTTP version")

    # '" '
    status_text, pos = _take(line, pos + 2, SPACE, "Status code not found")
    status_code = _parse_unsigned(status_text, MAX_STATUS_CODE)
    if status_code is None:
        raise _Rejected("Invalid status code")

    size_text, pos = _take(line, pos + 1, SPACE, "Size not found")
    size = _parse_unsigned(size_text, MAX_SIZE)
    if size is None:
        raise _Rejected("Invalid size")

    # ' "'
    referer_text, pos = _take(line, pos + 2, QUOTE, "Referer not found")
    referer = parse_referer(referer_text)

    # '" "'
    user_agent, _ = _take(line, pos + 3, QUOTE, "User agent not found")
    user_agent = user_agent or None
    agent = services.get_agent(user_agent) if user_agent else None

    return LogEntry(
        line=line,
        ip=ip,
        identity=_optional(identity),
        user=_optional(user),
        timestamp=timestamp,
        method=method,
        path=url.path,
        extension=url.extension,
        query=url.query,
        parsed_query=url.parsed_query,
        http_version=http_version,
        status_code=status_code,
        size=size,
        referer=referer,
        user_agent=user_agent,
        agent=agent,
        geolocation=services.get_geolocation(ip),
    )
