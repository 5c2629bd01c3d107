"""log2duck entry point: ``python main.py access.log https://example.com``."""

import sys

from log2duck.cli import main

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
