"""Ingestion driver: reads a log file, parses every line and feeds the sink."""

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Iterable, Iterator, TextIO

from log2duck.agents import UaParserExtractor
from log2duck.config import Config, ParseConfig
from log2duck.enrichment import ParserServices
from log2duck.geoip import IpInfoLocator
from log2duck.models import LogEntry, LogError
from log2duck.parser import parse_entry
from log2duck.reader import read_lines
from log2duck.sink import DuckDBSink
from log2duck.watermark import from_micros

logger = logging.getLogger(__name__)


@dataclass
class IngestStats:
    added: int = 0
    skipped: int = 0
    rejected: int = 0


def parse_lines(
    lines: Iterable[str], services: ParserServices, config: ParseConfig
) -> Iterator[LogEntry | LogError]:
    for line in lines:
        yield parse_entry(line, services, config)


def ingest(
    lines: Iterable[str],
    sink: DuckDBSink,
    services: ParserServices,
    config: ParseConfig,
    errors: TextIO,
    progress_interval: int = 50000,
) -> IngestStats:
    """Append new lines to *sink*, write rejected ones to *errors*, count the rest."""
    stats = IngestStats()
    for result in parse_lines(lines, services, config):
        if isinstance(result, LogError):
            if result.filtered:
                stats.skipped += 1
                if stats.skipped % progress_interval == 0:
                    logger.info("Skipped logs: %d", stats.skipped)
            else:
                stats.rejected += 1
                errors.write(f"{result}\n")
            continue

        sink.append(result)
        stats.added += 1
        if stats.added % progress_interval == 0:
            logger.info("Adding new logs: %d", stats.added)

    sink.flush()
    return stats


def run(config: Config) -> IngestStats:
    """One full ingestion run as configured. Raises on run-level failures."""
    if not os.path.isfile(config.input_path):
        raise FileNotFoundError(f"Log file not found: {config.input_path}")
    parse_config = ParseConfig(watermark=0, origin=config.origin)

    logger.info("Preparing to read log file %s", config.input_path)
    locator = IpInfoLocator.open(config.ipinfo_db) if config.ipinfo_db else None
    services = ParserServices(UaParserExtractor(), locator)

    try:
        with DuckDBSink(config.output_path, config.batch_size) as sink:
            parse_config = dataclasses.replace(parse_config, watermark=sink.max_timestamp())
            if parse_config.watermark:
                logger.info(
                    "Searching logs newer than %s...",
                    from_micros(parse_config.watermark).isoformat(),
                )
            else:
                logger.info("Empty database, every log is new")
            with open(config.errors_path, "w", encoding="utf-8") as errors:
                stats = ingest(
                    read_lines(config.input_path),
                    sink,
                    services,
                    parse_config,
                    errors,
                    config.progress_interval,
                )
    finally:
        if locator is not None:
            locator.close()

    services.log_stats()
    logger.info("Process finished!")
    logger.info("%d logs added to the database %s", stats.added, config.output_path)
    logger.info("%d logs were already in the database", stats.skipped)
    logger.info("%d errors are logged in the file %s", stats.rejected, config.errors_path)
    return stats
