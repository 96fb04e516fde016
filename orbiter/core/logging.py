"""
Logging utilities for the CLI commands and the OAuth callback listener.

Logs go to stderr so they never interleave with command output.
"""

import logging
import sys


def configure_logging(level: str = "WARNING") -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stderr,
    )
    # Per-request lines from the login listener.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
