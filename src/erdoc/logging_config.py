"""
ERDoc - Logging setup.

Modules log through logging.getLogger(__name__); this only configures the
root handler once at startup.
"""

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Send log records to stderr and quiet the HTTP client libraries."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)
