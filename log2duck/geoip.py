"""IP geolocation backed by an IPinfo Lite MaxMind DB (.mmdb) file."""

import logging
from ipaddress import IPv4Address, IPv6Address

import maxminddb

from log2duck.models import GeoLocation

logger = logging.getLogger(__name__)

IPINFO_FIELDS = ("country", "continent", "asn", "as_name", "as_domain")


class IpInfoLocator:
    """Looks up IPinfo Lite records. Misses and malformed records give an empty GeoLocation."""

    def __init__(self, reader):
        self._reader = reader

    @classmethod
    def open(cls, path: str) -> "IpInfoLocator":
        reader = maxminddb.open_database(path)
        logger.info("Loaded geolocation database %s", path)
        return cls(reader)

    def lookup(self, ip: IPv4Address | IPv6Address) -> GeoLocation:
        try:
            record = self._reader.get(ip)
        except (ValueError, maxminddb.InvalidDatabaseError) as e:
            logger.debug("Geolocation lookup failed for %s: %s", ip, e)
            return GeoLocation()
        if not isinstance(record, dict):
            return GeoLocation()

        values = {}
        for name in IPINFO_FIELDS:
            value = record.get(name)
            if isinstance(value, str):
                values[name] = value
        return GeoLocation(**values)

    def close(self) -> None:
        self._reader.close()
