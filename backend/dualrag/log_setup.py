"""
Colored Logging Setup

Installs a single stderr handler on the "dualrag" logger with
module.function prefixes and level coloring.
"""

import logging
import os
import sys
from datetime import datetime
from typing import Optional


class ColorCodes:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    RED = '\033[31m'
    WHITE = '\033[37m'
    BRIGHT_BLACK = '\033[90m'
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_CYAN = '\033[96m'
    BG_WHITE = '\033[47m'


LEVEL_COLORS = {
    'DEBUG': ColorCodes.BRIGHT_BLACK,
    'INFO': ColorCodes.BRIGHT_BLUE,
    'WARNING': ColorCodes.BRIGHT_YELLOW,
    'ERROR': ColorCodes.BRIGHT_RED,
    'CRITICAL': ColorCodes.RED + ColorCodes.BG_WHITE + ColorCodes.BOLD,
}


class ColoredFormatter(logging.Formatter):
    """Formatter producing `timestamp [LEVEL] [module.function] message`"""

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        reset = ColorCodes.RESET if self.use_colors else ''

        level_str = f"[{record.levelname:8}]"
        if self.use_colors:
            level_str = f"{LEVEL_COLORS.get(record.levelname, ColorCodes.WHITE)}{level_str}{reset}"

        module = record.name.rsplit('.', 1)[-1]
        if self.use_colors:
            location = f"{ColorCodes.BRIGHT_CYAN}{module}{ColorCodes.WHITE}.{ColorCodes.BRIGHT_GREEN}{record.funcName}{reset}"
            stamp = f"{ColorCodes.DIM}{timestamp}{reset}"
        else:
            location = f"{module}.{record.funcName}"
            stamp = timestamp

        formatted = " ".join([stamp, level_str, f"[{location}]", record.getMessage()])

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def _colors_wanted() -> bool:
    if os.getenv('NO_COLOR') is not None:
        return False
    if os.getenv('FORCE_COLOR', '').lower() in ('1', 'true', 'yes'):
        return True
    return sys.stderr.isatty() and os.getenv('TERM') != 'dumb'


def setup_logging(level: Optional[str] = None, use_colors: Optional[bool] = None) -> logging.Logger:
    """Configure the package logger once; safe to call repeatedly."""
    logger = logging.getLogger("dualrag")

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColoredFormatter(
        use_colors=_colors_wanted() if use_colors is None else use_colors
    ))
    logger.addHandler(handler)

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Prevent duplicate logs through the root logger
    logger.propagate = False
    return logger
