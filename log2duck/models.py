"""Typed records produced by the access-log parser."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from ipaddress import IPv4Address, IPv6Address


class _Literal(Enum):
    """Closed set of string literals with an exact parse/render round-trip."""

    @classmethod
    def parse(cls, token: str):
        """Return the member rendered as *token*, or None. Case-sensitive."""
        try:
            return cls(token)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


class HttpMethod(_Literal):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    CONNECT = "CONNECT"
    TRACE = "TRACE"
    PATCH = "PATCH"


class HttpVersion(_Literal):
    HTTP10 = "HTTP/1.0"
    HTTP11 = "HTTP/1.1"
    HTTP20 = "HTTP/2.0"
    HTTP30 = "HTTP/3.0"


@dataclass(frozen=True)
class Browser:
    family: str
    major: int | None = None
    minor: int | None = None
    patch: int | None = None
    patch_minor: int | None = None


@dataclass(frozen=True)
class OperatingSystem:
    family: str
    major: int | None = None
    minor: int | None = None
    patch: int | None = None
    patch_minor: int | None = None


@dataclass(frozen=True)
class Device:
    family: str
    brand: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class Agent:
    """Decomposed user-agent string. Every part is independently optional."""

    browser: Browser | None = None
    os: OperatingSystem | None = None
    device: Device | None = None


@dataclass(frozen=True)
class GeoLocation:
    country: str | None = None
    continent: str | None = None
    asn: str | None = None
    as_name: str | None = None
    as_domain: str | None = None


@dataclass(frozen=True)
class Referer:
    url: str
    origin: str
    path: str
    query: str | None = None
    parsed_query: dict[str, str] | None = None


@dataclass(frozen=True)
class LogEntry:
    """One successfully parsed and enriched access-log line."""

    line: str
    ip: IPv4Address | IPv6Address
    timestamp: datetime  # always UTC
    method: HttpMethod
    path: str
    http_version: HttpVersion
    status_code: int
    size: int
    identity: str | None = None
    user: str | None = None
    extension: str | None = None
    query: str | None = None
    parsed_query: dict[str, str] | None = None
    referer: Referer | None = None
    user_agent: str | None = None
    agent: Agent | None = None
    geolocation: GeoLocation = field(default_factory=GeoLocation)


@dataclass(frozen=True)
class LogError:
    """A line that did not produce a LogEntry.

    ``filtered`` lines were already ingested by a previous run (their timestamp
    is at or below the watermark) and carry no reason. Every other LogError is a
    structural parse failure with a short, stable reason string.
    """

    line: str
    reason: str = ""
    filtered: bool = False

    @classmethod
    def rejected(cls, line: str, reason: str) -> "LogError":
        return cls(line=line, reason=reason)

    @classmethod
    def already_ingested(cls, line: str) -> "LogError":
        return cls(line=line, filtered=True)

    def __str__(self) -> str:
        return f"Invalid entry: {self.line} ({self.reason})"
