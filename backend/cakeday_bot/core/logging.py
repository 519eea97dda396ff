"""Process-wide logging setup (Rich console output)"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

DATE_FORMAT = "[%Y-%m-%d %H:%M:%S]"
PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers capped regardless of LOG_LEVEL
QUIET_LOGGERS = {
    "discord": logging.WARNING,
    "discord.http": logging.WARNING,
    "discord.gateway": logging.ERROR,
    "aiohttp.access": logging.WARNING,
    "asyncpg": logging.WARNING,
}


def _rich_handler() -> RichHandler:
    # Width only matters when Rich can't detect a terminal (containers, log files)
    handler = RichHandler(
        console=Console(width=120),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_width=120,
        log_time_format=DATE_FORMAT,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(level_name: str | None = None) -> None:
    """Install the Rich handler on the root logger at *level_name* (or $LOG_LEVEL)."""
    level_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    try:
        logging.basicConfig(level=level, handlers=[_rich_handler()], force=True)
    except Exception as e:
        logging.basicConfig(level=level, format=PLAIN_FORMAT, force=True)
        logging.getLogger(__name__).warning(f"Rich logging unavailable ({e}), using plain output")

    for name, cap in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(cap, level))
