"""Configuration loading from CLI args, env vars, and optional YAML file."""

import logging
import os
from dataclasses import dataclass, field

import yaml

from log2duck.urls import origin_host

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Config:
    input_path: str
    origin: str
    output_path: str
    errors_path: str
    ipinfo_db: str | None = None
    batch_size: int = 1000
    progress_interval: int = 50000
    log_level: str = "INFO"


@dataclass(frozen=True)
class ParseConfig:
    """Per-run parse settings: the ingestion watermark and the site origin.

    ``watermark`` is in microseconds since the epoch; only lines strictly newer
    are parsed. ``origin`` must be an absolute URL with a host.
    """

    watermark: int
    origin: str
    host: str = field(init=False, repr=False)

    def __post_init__(self):
        host = origin_host(self.origin)
        if not host:
            raise ValueError(f"Origin must be an absolute URL with a host: {self.origin!r}")
        object.__setattr__(self, "host", host)


def replace_extension(path: str, extension: str) -> str:
    """'access.log' -> 'access.db'; names without '.log' get the extension appended."""
    if path.endswith(".log"):
        return path[:-4] + extension
    return path + extension


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def load_config(cli_args, yaml_data: dict) -> Config:
    """Build Config from CLI args, YAML data and env vars, in that order of precedence."""
    origin = cli_args.origin or yaml_data.get("origin")
    if not origin:
        raise ValueError("An origin URL is required, e.g. 'https://example.com'")

    log_level = str(
        yaml_data.get("log_level", os.environ.get("LOG2DUCK_LOG_LEVEL", Config.log_level))
    ).upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level: {log_level}")

    return Config(
        input_path=cli_args.file,
        origin=origin,
        output_path=(
            cli_args.output
            or yaml_data.get("output")
            or replace_extension(cli_args.file, ".db")
        ),
        errors_path=(
            cli_args.errors
            or yaml_data.get("errors")
            or replace_extension(cli_args.file, ".err")
        ),
        ipinfo_db=(
            cli_args.ipinfo_db
            or yaml_data.get("ipinfo_db")
            or os.environ.get("LOG2DUCK_IPINFO_DB")
            or None
        ),
        batch_size=int(
            yaml_data.get("batch_size", os.environ.get("LOG2DUCK_BATCH_SIZE", Config.batch_size))
        ),
        progress_interval=int(
            yaml_data.get(
                "progress_interval",
                os.environ.get("LOG2DUCK_PROGRESS_INTERVAL", Config.progress_interval),
            )
        ),
        log_level=log_level,
    )
