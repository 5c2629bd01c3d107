"""Run-scoped memoization of user-agent and geolocation lookups.

Access logs repeat the same handful of user agents and client IPs over and
over, so each distinct value is looked up once per run and kept for the rest of
it. The caches never evict; a run is a bounded batch job.
"""

import dataclasses
import logging
from ipaddress import IPv4Address, IPv6Address
from typing import Protocol

from log2duck.models import Agent, Device, GeoLocation

logger = logging.getLogger(__name__)

# Typosquatted "Mozilla" used by a well-known scanner bot.
MOZLILA_SIGNATURE = "Mozlila"
SPIDER_DEVICE = "Spider"


class AgentExtractor(Protocol):
    def extract(self, user_agent: str) -> Agent: ...


class IpLocator(Protocol):
    def lookup(self, ip: IPv4Address | IPv6Address) -> GeoLocation: ...


class NullLocator:
    """Locator used when no geolocation database is configured."""

    def lookup(self, ip: IPv4Address | IPv6Address) -> GeoLocation:
        return GeoLocation()


class ParserServices:
    """Owns both enrichment caches for one ingestion run. Not thread-safe."""

    def __init__(self, agent_extractor: AgentExtractor, ip_locator: IpLocator | None = None):
        self._agent_extractor = agent_extractor
        self._ip_locator = ip_locator or NullLocator()
        self._agents: dict[str, Agent] = {}
        self._geolocations: dict[str, GeoLocation] = {}
        self.cache_stats = {
            "ua_hits": 0,
            "ua_misses": 0,
            "ip_hits": 0,
            "ip_misses": 0,
        }

    def get_agent(self, user_agent: str) -> Agent:
        agent = self._agents.get(user_agent)
        if agent is not None:
            self.cache_stats["ua_hits"] += 1
            return agent

        self.cache_stats["ua_misses"] += 1
        agent = self._agent_extractor.extract(user_agent)
        if MOZLILA_SIGNATURE in user_agent:
            agent = _as_spider(agent)
        self._agents[user_agent] = agent
        return agent

    def get_geolocation(self, ip: IPv4Address | IPv6Address) -> GeoLocation:
        key = str(ip)
        geolocation = self._geolocations.get(key)
        if geolocation is not None:
            self.cache_stats["ip_hits"] += 1
            return geolocation

        self.cache_stats["ip_misses"] += 1
        geolocation = self._ip_locator.lookup(ip)
        self._geolocations[key] = geolocation
        return geolocation

    def log_stats(self) -> None:
        logger.info(
            "Enrichment caches: %d user agents (%d hits), %d IPs (%d hits)",
            len(self._agents), self.cache_stats["ua_hits"],
            len(self._geolocations), self.cache_stats["ip_hits"],
        )


def _as_spider(agent: Agent) -> Agent:
    if agent.device is None:
        return dataclasses.replace(agent, device=Device(family=SPIDER_DEVICE))
    return dataclasses.replace(
        agent, device=dataclasses.replace(agent.device, family=SPIDER_DEVICE)
    )
