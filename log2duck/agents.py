"""User-agent decomposition backed by ua-parser (uap-core regexes)."""

import ua_parser

from log2duck.models import Agent, Browser, Device, OperatingSystem

_MAX_VERSION_PART = 65535


def _version_part(value: str | None) -> int | None:
    """'118' -> 118. Non-numeric parts ('0b3') and overflowing ones are dropped."""
    if value is None or not value.isascii() or not value.isdigit():
        return None
    number = int(value)
    return number if number <= _MAX_VERSION_PART else None


class UaParserExtractor:
    """Adapts ``ua_parser.parse`` to the AgentExtractor interface."""

    def __init__(self, parse=ua_parser.parse):
        self._parse = parse

    def extract(self, user_agent: str) -> Agent:
        result = self._parse(user_agent)

        browser = None
        if result.user_agent is not None:
            ua = result.user_agent
            browser = Browser(
                family=ua.family,
                major=_version_part(ua.major),
                minor=_version_part(ua.minor),
                patch=_version_part(ua.patch),
                patch_minor=_version_part(ua.patch_minor),
            )

        os = None
        if result.os is not None:
            os = OperatingSystem(
                family=result.os.family,
                major=_version_part(result.os.major),
                minor=_version_part(result.os.minor),
                patch=_version_part(result.os.patch),
                patch_minor=_version_part(result.os.patch_minor),
            )

        device = None
        if result.device is not None:
            device = Device(
                family=result.device.family,
                brand=result.device.brand,
                model=result.device.model,
            )

        return Agent(browser=browser, os=os, device=device)
