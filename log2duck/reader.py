"""Generator-based reading of access-log files, one line at a time."""

import logging
from typing import Generator

logger = logging.getLogger(__name__)


def read_lines(filepath: str) -> Generator[str, None, None]:
    """Yield each non-blank line of *filepath* without its line ending.

    Lines that are not valid UTF-8 are skipped with a warning.
    """
    with open(filepath, "rb") as f:
        for number, raw in enumerate(f, start=1):
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Skipping line %d of %s: not valid UTF-8", number, filepath)
                continue
            line = line.rstrip("\r\n")
            if not line.strip():
                continue
            yield line
