"""log2duck: load web-server access logs into a DuckDB database."""

import logging
import sys
from argparse import ArgumentParser

import duckdb
import maxminddb

from log2duck.config import load_config, load_yaml_config
from log2duck.ingest import run

VERSION = "1.0.0"

LOG_FORMAT = "%(asctime)s [log2duck] %(levelname)s %(message)s"

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="log2duck",
        description="Parse and enrich an access log (combined format) into a DuckDB database.",
        epilog="Example: log2duck access.log 'https://mydomain.com'",
    )
    parser.add_argument("file", nargs="?", help="Access log file to read")
    parser.add_argument(
        "origin",
        nargs="?",
        help="Site origin used to resolve request paths (e.g. https://mydomain.com)",
    )
    parser.add_argument("--output", help="DuckDB database file (default: <file>.db)")
    parser.add_argument("--errors", help="File for rejected lines (default: <file>.err)")
    parser.add_argument("--ipinfo-db", help="IPinfo Lite .mmdb file for IP geolocation")
    parser.add_argument("--config", help="Optional YAML config file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.file:
        print(f"log2duck {VERSION}\n")
        parser.print_help()
        return 0

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, stream=sys.stderr)

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ValueError as e:
        logger.error("%s", e)
        return 1
    logging.getLogger().setLevel(config.log_level)

    try:
        run(config)
    except (OSError, ValueError, duckdb.Error, maxminddb.InvalidDatabaseError) as e:
        logger.error("Ingestion failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
