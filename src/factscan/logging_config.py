"""structlog configuration for factscan.

Log output goes to stderr so ``factscan scan --stdout`` can pipe the JSON
document cleanly. Set ``FACTSCAN_DEBUG=1`` to see per-fragment decisions
(dropped associations, skipped swagger blocks, and so on).
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

DEBUG_ENV = "FACTSCAN_DEBUG"

_configured = False


def is_debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "").lower() in ("1", "true", "yes")


def configure_logging(verbose: bool = False, force: bool = False) -> None:
    """Configure structlog and bridge stdlib logging into the same sink.

    Safe to call more than once; later calls are ignored unless ``force``
    is set (the CLI forces a reconfigure when ``--verbose`` is passed).
    """
    global _configured
    if _configured and not force:
        return

    level = logging.DEBUG if (verbose or is_debug_enabled()) else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    _configured = True
