"""Console logging for chainspread, with a TRACE level below DEBUG."""

import logging
import os
import sys

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

# Libraries that flood DEBUG output with request/response dumps
NOISY_LOGGERS = ("web3", "urllib3", "backoff")

LEVEL_COLORS = {
    "TRACE": "\033[90m",
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}


class ColoredFormatter(logging.Formatter):
    """Paints the level name; the rest of the record is left untouched."""

    RESET = "\033[0m"
    BOLD = "\033[1m"

    def __init__(self, *args, use_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelname)
        if not self.use_color or color is None:
            return super().format(record)

        levelname = record.levelname
        record.levelname = f"{color}{self.BOLD}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def resolve_level(log_level: str | None) -> int:
    name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.INFO)


def setup_logging(log_level: str | None = None) -> None:
    """Configure the root logger once per process.

    ``log_level`` falls back to the LOG_LEVEL environment variable, then INFO.
    Colors are dropped when stdout is not a terminal or NO_COLOR is set.
    At DEBUG the loggers in NOISY_LOGGERS stay at WARNING; TRACE opens them.
    """
    level = resolve_level(log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ColoredFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            use_color=sys.stdout.isatty() and "NO_COLOR" not in os.environ,
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(TRACE if level <= TRACE else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)
