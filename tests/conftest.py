"""Shared pytest fixtures for the log2duck test suite."""

import pytest

from log2duck.config import ParseConfig
from log2duck.enrichment import ParserServices
from log2duck.models import Agent, Browser, Device, GeoLocation, OperatingSystem

ORIGIN = "https://example.com"

SAMPLE_LINE = (
    '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] '
    '"GET /a//b.html?x=1 HTTP/1.1" 200 512 "-" "Mozlila/5.0"'
)


def make_line(
    ip="203.0.113.7",
    identity="-",
    user="-",
    timestamp="10/Oct/2023:13:55:36 +0000",
    request="GET /index.html HTTP/1.1",
    status="200",
    size="1024",
    referer="https://www.google.com/",
    user_agent="Mozilla/5.0 (X11; Linux x86_64; rv:118.0) Gecko/20100101 Firefox/118.0",
) -> str:
    return (
        f'{ip} {identity} {user} [{timestamp}] "{request}" {status} {size} '
        f'"{referer}" "{user_agent}"'
    )


class CountingExtractor:
    """AgentExtractor stand-in that records every call."""

    def __init__(self, agent: Agent | None = None):
        self.calls: list[str] = []
        self._agent = agent or Agent(
            browser=Browser(family="Firefox", major=118, minor=0),
            os=OperatingSystem(family="Linux"),
            device=Device(family="Other"),
        )

    def extract(self, user_agent: str) -> Agent:
        self.calls.append(user_agent)
        return self._agent


class CountingLocator:
    """IpLocator stand-in that records every call."""

    def __init__(self, geolocation: GeoLocation | None = None):
        self.calls: list[str] = []
        self._geolocation = geolocation or GeoLocation(
            country="US", continent="NA", asn="AS64500", as_name="Example Net",
            as_domain="example.net",
        )

    def lookup(self, ip) -> GeoLocation:
        self.calls.append(str(ip))
        return self._geolocation


@pytest.fixture()
def extractor() -> CountingExtractor:
    return CountingExtractor()


@pytest.fixture()
def locator() -> CountingLocator:
    return CountingLocator()


@pytest.fixture()
def services(extractor, locator) -> ParserServices:
    return ParserServices(extractor, locator)


@pytest.fixture()
def parse_config() -> ParseConfig:
    return ParseConfig(watermark=0, origin=ORIGIN)
