"""DuckDB sink: one ``log`` table row per parsed access-log line."""

import logging

import duckdb

from log2duck.models import HttpMethod, HttpVersion, LogEntry

logger = logging.getLogger(__name__)

TABLE = "log"

COLUMNS = (
    "ip", "identity", "user", "timestamp", "method", "path", "extension",
    "query", "parsed_query", "http_version", "status_code", "size",
    "referer", "referer_origin", "referer_path", "referer_query",
    "referer_parsed_query", "user_agent",
    "browser", "browser_major", "browser_minor", "browser_patch", "browser_patch_minor",
    "os", "os_major", "os_minor", "os_patch", "os_patch_minor",
    "device", "brand", "model",
    "country", "continent", "asn", "as_name", "as_domain",
)

_CREATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {TABLE} (
    ip                   VARCHAR NOT NULL,
    identity             VARCHAR,
    "user"               VARCHAR,
    timestamp            TIMESTAMP NOT NULL,
    method               http_method NOT NULL,
    path                 VARCHAR NOT NULL,
    extension            VARCHAR,
    query                VARCHAR,
    parsed_query         MAP(VARCHAR, VARCHAR),
    http_version         http_version NOT NULL,
    status_code          USMALLINT NOT NULL,
    size                 UBIGINT NOT NULL,
    referer              VARCHAR,
    referer_origin       VARCHAR,
    referer_path         VARCHAR,
    referer_query        VARCHAR,
    referer_parsed_query VARCHAR,
    user_agent           VARCHAR,
    browser              VARCHAR,
    browser_major        USMALLINT,
    browser_minor        USMALLINT,
    browser_patch        USMALLINT,
    browser_patch_minor  USMALLINT,
    os                   VARCHAR,
    os_major             USMALLINT,
    os_minor             USMALLINT,
    os_patch             USMALLINT,
    os_patch_minor       USMALLINT,
    device               VARCHAR,
    brand                VARCHAR,
    model                VARCHAR,
    country              VARCHAR,
    continent            VARCHAR,
    asn                  VARCHAR,
    as_name              VARCHAR,
    as_domain            VARCHAR
)
"""

_INSERT = "INSERT INTO {table} VALUES ({placeholders})".format(
    table=TABLE,
    placeholders=", ".join(
        "CAST(? AS MAP(VARCHAR, VARCHAR))" if column == "parsed_query" else "?"
        for column in COLUMNS
    ),
)

_ENUM_TYPES = {
    "http_method": tuple(str(m) for m in HttpMethod),
    "http_version": tuple(str(v) for v in HttpVersion),
}


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def map_literal(values: dict[str, str] | None) -> str | None:
    """{'a': '1'} -> "{'a'='1'}", the textual form DuckDB casts to a MAP."""
    if values is None:
        return None
    entries = ", ".join(f"'{_escape(k)}'='{_escape(v)}'" for k, v in values.items())
    return "{" + entries + "}"


def entry_to_row(entry: LogEntry) -> tuple:
    """Flatten a LogEntry into the column order of the ``log`` table."""
    referer = entry.referer
    agent = entry.agent
    browser = agent.browser if agent else None
    os = agent.os if agent else None
    device = agent.device if agent else None
    geo = entry.geolocation

    return (
        str(entry.ip),
        entry.identity,
        entry.user,
        entry.timestamp.replace(tzinfo=None),  # TIMESTAMP columns hold naive UTC
        str(entry.method),
        entry.path,
        entry.extension,
        entry.query,
        map_literal(entry.parsed_query),
        str(entry.http_version),
        entry.status_code,
        entry.size,
        referer.url if referer else None,
        referer.origin if referer else None,
        referer.path if referer else None,
        referer.query if referer else None,
        map_literal(referer.parsed_query) if referer else None,
        entry.user_agent,
        browser.family if browser else None,
        browser.major if browser else None,
        browser.minor if browser else None,
        browser.patch if browser else None,
        browser.patch_minor if browser else None,
        os.family if os else None,
        os.major if os else None,
        os.minor if os else None,
        os.patch if os else None,
        os.patch_minor if os else None,
        device.family if device else None,
        device.brand if device else None,
        device.model if device else None,
        geo.country,
        geo.continent,
        geo.asn,
        geo.as_name,
        geo.as_domain,
    )


class DuckDBSink:
    """Creates the schema on open and appends rows in batches."""

    def __init__(self, path: str = ":memory:", batch_size: int = 1000):
        self._path = path
        self._batch_size = batch_size
        self._buffer: list[tuple] = []
        self._conn = duckdb.connect(path)
        self._create_schema()

    def _create_schema(self) -> None:
        for name, values in _ENUM_TYPES.items():
            exists = self._conn.execute(
                "SELECT count(*) FROM duckdb_types() WHERE type_name = ?", [name]
            ).fetchone()[0]
            if not exists:
                members = ", ".join(f"'{v}'" for v in values)
                self._conn.execute(f"CREATE TYPE {name} AS ENUM ({members})")
        self._conn.execute(_CREATE_TABLE)

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        return self._conn

    def max_timestamp(self) -> int:
        """Newest stored timestamp in microseconds since the epoch, or 0 if empty."""
        row = self._conn.execute(f"SELECT epoch_us(max(timestamp)) FROM {TABLE}").fetchone()
        return row[0] or 0

    def append(self, entry: LogEntry) -> None:
        self._buffer.append(entry_to_row(entry))
        if len(self._buffer) >= self._batch_size:
            self.flush()

    def flush(self) -> None:
        if not self._buffer:
            return
        self._conn.executemany(_INSERT, self._buffer)
        logger.debug("Flushed %d rows to %s", len(self._buffer), self._path)
        self._buffer.clear()

    def close(self) -> None:
        self.flush()
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
