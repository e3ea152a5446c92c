import logging
import sys
from contextlib import contextmanager
from pathlib import Path

import structlog

from .config import settings

# Chatty transport loggers; they only pass warnings through.
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3")


def _level(name: str | None) -> int:
    return getattr(logging, (name or "INFO").upper(), logging.INFO)


def _attach(root: logging.Logger, handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    return handler


def setup_logging(level: str | None = None, error_file: str | None = None) -> int:
    """JSON lines on stdout, plus ERROR and above to ``error_file`` when one is configured.

    Returns the effective stdout level.
    """
    log_level = _level(level or settings.log_level)
    error_path = (error_file if error_file is not None else settings.log_error_file or "").strip()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)
    _attach(root, logging.StreamHandler(sys.stdout), log_level)
    if error_path:
        Path(error_path).parent.mkdir(parents=True, exist_ok=True)
        _attach(root, logging.FileHandler(error_path), logging.ERROR)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(min(log_level, logging.ERROR)),
        cache_logger_on_first_use=False,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
    return log_level


@contextmanager
def bind_run(run_id: str, **fields):
    """Tag every event logged inside the block with ``run_id``."""
    with structlog.contextvars.bound_contextvars(run_id=run_id, **fields):
        yield
