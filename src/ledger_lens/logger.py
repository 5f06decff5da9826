"""Logging setup for ledger-lens. Logs go to stderr; stdout carries JSON."""

import logging
import os
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Client libraries that log every HTTP request at DEBUG
NOISY_LOGGERS = ("web3", "urllib3")

LEVEL_COLORS = {
    "TRACE": "90",
    "DEBUG": "36",
    "INFO": "32",
    "WARNING": "33",
    "ERROR": "31",
    "CRITICAL": "35",
}


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps the level name in a bold ANSI color."""

    def __init__(self, *args, use_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        code = LEVEL_COLORS.get(levelname)
        if self.use_color and code:
            record.levelname = f"\033[{code};1m{levelname}\033[0m"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def resolve_level(log_level: str | None = None) -> int:
    """Numeric level for ``log_level``, falling back to ``LOG_LEVEL`` then INFO."""
    name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.INFO)


def setup_logging(log_level: str | None = None) -> None:
    """Route ledger-lens logs to stderr at ``log_level``.

    HTTP client chatter stays at WARNING unless the level is TRACE.
    """
    level = resolve_level(log_level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            use_color=sys.stderr.isatty(),
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(TRACE if level == TRACE else max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
