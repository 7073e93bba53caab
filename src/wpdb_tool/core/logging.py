"""structlog setup for wpdb-tool.

Everything is logged to stderr; stdout carries query output only.
"""

import logging
import sys
from typing import Any

import structlog

# Event keys whose values never reach the log.
_SECRET_KEYS = frozenset({"password", "passwd", "placeholder_salt"})
_MAX_QUERY_CHARS = 500


class _LazyStderrFactory:
    """PrintLogger bound to whatever sys.stderr is when the logger is built.

    CliRunner swaps stderr per invocation, so a stream captured once at
    configure() time goes stale.
    """

    def __call__(self, *args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)


def scrub_event(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credentials and clip oversized SQL before rendering."""
    for key in _SECRET_KEYS & event_dict.keys():
        event_dict[key] = "***"
    query = event_dict.get("query")
    if isinstance(query, str) and len(query) > _MAX_QUERY_CHARS:
        event_dict["query"] = f"{query[:_MAX_QUERY_CHARS]}... ({len(query)} chars)"
    return event_dict


def setup_logging(verbose: bool = False) -> None:
    """Configure structlog. ``verbose`` lowers the threshold from INFO to DEBUG."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            scrub_event,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
        context_class=dict,
        logger_factory=_LazyStderrFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger, bound to ``name`` when given.

    Call inside functions, not at import time, so setup_logging() applies.
    """
    logger = structlog.get_logger()
    return logger.bind(logger=name) if name else logger
