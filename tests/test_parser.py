"""Tests for the combined-log line parser."""

from datetime import datetime, timezone
from ipaddress import IPv6Address, ip_address

import pytest

from conftest import ORIGIN, SAMPLE_LINE, CountingExtractor, CountingLocator, make_line
from log2duck.config import ParseConfig
from log2duck.enrichment import ParserServices
from log2duck.models import (
    Agent,
    Device,
    GeoLocation,
    HttpMethod,
    HttpVersion,
    LogEntry,
    LogError,
)
from log2duck.parser import parse_entry
from log2duck.watermark import to_micros

SAMPLE_TIME = datetime(2023, 10, 10, 13, 55, 36, tzinfo=timezone.utc)


def _reason(line, services, config):
    result = parse_entry(line, services, config)
    assert isinstance(result, LogError), result
    assert not result.filtered
    return result.reason


class TestSampleLine:
    def test_parses_sample(self, parse_config):
        services = ParserServices(CountingExtractor(Agent()), CountingLocator())
        entry = parse_entry(SAMPLE_LINE, services, parse_config)

        assert isinstance(entry, LogEntry)
        assert entry.line == SAMPLE_LINE
        assert entry.ip == ip_address("127.0.0.1")
        assert entry.identity is None
        assert entry.user is None
        assert entry.timestamp == SAMPLE_TIME
        assert entry.method is HttpMethod.GET
        assert entry.path == "/a/b.html"
        assert entry.extension == "html"
        assert entry.query == "x=1"
        assert entry.parsed_query == {"x": "1"}
        assert entry.http_version is HttpVersion.HTTP11
        assert entry.status_code == 200
        assert entry.size == 512
        assert entry.referer is None
        assert entry.user_agent == "Mozlila/5.0"
        assert entry.agent.device.family == "Spider"

    def test_deterministic(self, parse_config):
        services = ParserServices(CountingExtractor(), CountingLocator())
        first = parse_entry(SAMPLE_LINE, services, parse_config)
        second = parse_entry(SAMPLE_LINE, services, parse_config)
        assert first == second

    def test_deterministic_across_fresh_caches(self, parse_config):
        first = parse_entry(SAMPLE_LINE, ParserServices(CountingExtractor()), parse_config)
        second = parse_entry(SAMPLE_LINE, ParserServices(CountingExtractor()), parse_config)
        assert first == second


class TestFields:
    def test_identity_and_user(self, services, parse_config):
        entry = parse_entry(make_line(identity="ident", user="frank"), services, parse_config)
        assert entry.identity == "ident"
        assert entry.user == "frank"

    def test_ipv6_client(self, services, parse_config):
        entry = parse_entry(make_line(ip="2001:db8::1"), services, parse_config)
        assert entry.ip == IPv6Address("2001:db8::1")

    def test_timestamp_converted_to_utc(self, services, parse_config):
        entry = parse_entry(
            make_line(timestamp="10/Oct/2023:15:55:36 +0200"), services, parse_config
        )
        assert entry.timestamp == SAMPLE_TIME

    def test_every_method(self, services, parse_config):
        for method in HttpMethod:
            entry = parse_entry(
                make_line(request=f"{method} / HTTP/1.1"), services, parse_config
            )
            assert entry.method is method

    def test_every_version(self, services, parse_config):
        for version in HttpVersion:
            entry = parse_entry(
                make_line(request=f"GET / {version}"), services, parse_config
            )
            assert entry.http_version is version

    def test_referer_components(self, services, parse_config):
        entry = parse_entry(
            make_line(referer="https://www.google.com/search?q=logs"), services, parse_config
        )
        assert entry.referer.url == "https://www.google.com/search?q=logs"
        assert entry.referer.origin == "https://www.google.com"
        assert entry.referer.path == "/search"
        assert entry.referer.query == "q=logs"
        assert entry.referer.parsed_query == {"q": "logs"}

    def test_empty_user_agent_is_absent(self, services, parse_config, extractor):
        entry = parse_entry(make_line(user_agent=""), services, parse_config)
        assert entry.user_agent is None
        assert entry.agent is None
        assert extractor.calls == []

    def test_agent_and_geolocation_attached(self, services, parse_config):
        entry = parse_entry(make_line(), services, parse_config)
        assert entry.agent.browser.family == "Firefox"
        assert entry.agent.device == Device(family="Other")
        assert entry.geolocation.country == "US"

    def test_geolocation_absent_without_locator(self, parse_config):
        services = ParserServices(CountingExtractor())
        entry = parse_entry(make_line(), services, parse_config)
        assert entry.geolocation == GeoLocation()

    def test_zero_size_and_large_status(self, services, parse_config):
        entry = parse_entry(make_line(status="65535", size="0"), services, parse_config)
        assert entry.status_code == 65535
        assert entry.size == 0

    def test_same_host_absolute_url_accepted(self, services, parse_config):
        entry = parse_entry(
            make_line(request="GET http://example.com:8080/x HTTP/1.1"), services, parse_config
        )
        assert entry.path == "/x"

    def test_entry_is_immutable(self, services, parse_config):
        entry = parse_entry(make_line(), services, parse_config)
        with pytest.raises(AttributeError):
            entry.status_code = 500


class TestMalformedReferer:
    @pytest.mark.parametrize("referer", ["-", "", "not a url", "https://", "http://x:bad/"])
    def test_referer_degrades_to_absent(self, services, parse_config, referer):
        entry = parse_entry(make_line(referer=referer), services, parse_config)
        assert isinstance(entry, LogEntry)
        assert entry.referer is None


class TestRejections:
    @pytest.mark.parametrize(
        "line, reason",
        [
            ("", "IP not found"),
            ("127.0.0.1", "IP not found"),
            ("127.0.0.1 -", "Identity not found"),
            ("127.0.0.1 - -", "User not found"),
            ("127.0.0.1 - - [10/Oct/2023:13:55:36 +0000", "Datetime not found"),
        ],
    )
    def test_truncated_lines(self, services, parse_config, line, reason):
        assert _reason(line, services, parse_config) == reason

    def test_invalid_ip(self, services, parse_config):
        assert _reason(make_line(ip="999.1.1.1"), services, parse_config) == "Invalid IP"
        assert _reason(make_line(ip="example.com"), services, parse_config) == "Invalid IP"

    def test_invalid_datetime(self, services, parse_config):
        line = make_line(timestamp="2023-10-10T13:55:36Z")
        assert _reason(line, services, parse_config) == "Invalid datetime"

    def test_request_not_found(self, services, parse_config):
        line = '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "GET / HTTP/1.1'
        assert _reason(line, services, parse_config) == "Request not found"

    def test_empty_request(self, services, parse_config):
        line = make_line(request="")
        assert _reason(line, services, parse_config) == "Empty request"

    def test_invalid_method(self, services, parse_config):
        for request in ("get / HTTP/1.1", "PROPFIND / HTTP/1.1", "\\x16\\x03\\x01 / HTTP/1.1"):
            line = make_line(request=request)
            assert _reason(line, services, parse_config) == "Invalid HTTP method"

    def test_path_not_found(self, services, parse_config):
        line = make_line(request="GET /index.html")
        assert _reason(line, services, parse_config) == "Path not found"

    def test_path_not_valid(self, services, parse_config):
        for request in ("GET http://[::1/x HTTP/1.1", "GET http://example.com:99999/ HTTP/1.1"):
            line = make_line(request=request)
            assert _reason(line, services, parse_config) == "Path not valid"

    def test_foreign_host(self, services):
        config = ParseConfig(watermark=0, origin="https://good.example")
        line = make_line(request="GET http://evil.example HTTP/1.1")
        assert _reason(line, services, config) == "Path has a different host"

    def test_scheme_relative_prefix_is_not_foreign(self, services, parse_config):
        entry = parse_entry(
            make_line(request="GET //evil.example/x HTTP/1.1"), services, parse_config
        )
        assert entry.path == "/evil.example/x"

    def test_invalid_http_version(self, services, parse_config):
        for request in ("GET / HTTP/9.9", "GET / HTTP/2"):
            line = make_line(request=request)
            assert _reason(line, services, parse_config) == "Invalid HTTP version"

    def test_http_version_not_found(self, services, parse_config):
        # The only " HTTP/" sits past the request's closing quote.
        line = '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "GET /x" 200 512 "- HTTP/1.1'
        assert _reason(line, services, parse_config) == "HTTP version not found"

    def test_status_code(self, services, parse_config):
        for status in ("abc", "70000", "-1", "2OO"):
            line = make_line(status=status)
            assert _reason(line, services, parse_config) == "Invalid status code"

    def test_status_code_not_found(self, services, parse_config):
        line = '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "GET / HTTP/1.1" 200'
        assert _reason(line, services, parse_config) == "Status code not found"

    def test_size(self, services, parse_config):
        for size in ("-", "1.5", "-10"):
            line = make_line(size=size)
            assert _reason(line, services, parse_config) == "Invalid size"

    def test_size_overflowing_ubigint(self, services, parse_config):
        line = make_line(size="18446744073709551616")
        assert _reason(line, services, parse_config) == "Invalid size"

    def test_size_at_ubigint_max(self, services, parse_config):
        entry = parse_entry(make_line(size="18446744073709551615"), services, parse_config)
        assert entry.size == 2**64 - 1

    def test_host_with_space_is_not_valid(self, services, parse_config):
        line = make_line(request="GET http://exa mple.com/ HTTP/1.1")
        assert _reason(line, services, parse_config) == "Path not valid"

    def test_size_not_found(self, services, parse_config):
        line = '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "GET / HTTP/1.1" 200 512'
        assert _reason(line, services, parse_config) == "Size not found"

    def test_referer_not_found(self, services, parse_config):
        line = '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "GET / HTTP/1.1" 200 512 "-'
        assert _reason(line, services, parse_config) == "Referer not found"

    def test_user_agent_not_found(self, services, parse_config):
        line = '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "GET / HTTP/1.1" 200 512 "-" "curl'
        assert _reason(line, services, parse_config) == "User agent not found"

    def test_rejection_renders_for_error_file(self, services, parse_config):
        result = parse_entry("garbage", services, parse_config)
        assert str(result) == "Invalid entry: garbage (IP not found)"


class TestWatermark:
    def test_line_at_watermark_is_filtered(self, services):
        config = ParseConfig(watermark=to_micros(SAMPLE_TIME), origin=ORIGIN)
        result = parse_entry(SAMPLE_LINE, services, config)
        assert isinstance(result, LogError)
        assert result.filtered
        assert result.reason == ""

    def test_line_before_watermark_is_filtered(self, services):
        config = ParseConfig(watermark=to_micros(SAMPLE_TIME) + 1_000_000, origin=ORIGIN)
        assert parse_entry(SAMPLE_LINE, services, config).filtered

    def test_line_after_watermark_is_parsed(self, services):
        config = ParseConfig(watermark=to_micros(SAMPLE_TIME) - 1, origin=ORIGIN)
        assert isinstance(parse_entry(SAMPLE_LINE, services, config), LogEntry)

    def test_filtered_wins_over_later_field_errors(self, services):
        config = ParseConfig(watermark=to_micros(SAMPLE_TIME), origin=ORIGIN)
        for line in (
            make_line(request="BREW /pot HTTP/1.1"),
            make_line(request="GET http://evil.example HTTP/1.1"),
            make_line(status="abc"),
            '127.0.0.1 - - [10/Oct/2023:13:55:36 +0000] "',
        ):
            result = parse_entry(line, services, config)
            assert isinstance(result, LogError)
            assert result.filtered

    def test_filtered_lines_skip_enrichment(self, extractor, locator, services):
        config = ParseConfig(watermark=to_micros(SAMPLE_TIME), origin=ORIGIN)
        parse_entry(make_line(), services, config)
        assert extractor.calls == []
        assert locator.calls == []
