"""Console line format shared by the logger and the pull progress renderer.

Every line reads `[testbox] <icon><message>` with the tag in cyan.
"""
import logging
import sys
from typing import TextIO

NONE_ICON = ""
ERROR_ICON = " ❌  "
SUCCESS_ICON = " ✅  "
DOCKER_ICON = " \U0001f433 "

_TAG = "testbox"
_TAG_COLOR = 36  # cyan


def format_line(message: str, icon: str = NONE_ICON) -> str:
    return f"\x1b[{_TAG_COLOR}m[{_TAG}] \x1b[0m{icon}{message}"


class ConsoleFormatter(logging.Formatter):
    """Renders records in the console line format.

    The icon comes from the `icon` extra when given, otherwise from the level.
    """

    def format(self, record: logging.LogRecord) -> str:
        icon = getattr(record, "icon", None)
        if icon is None:
            icon = ERROR_ICON if record.levelno >= logging.ERROR else DOCKER_ICON
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return format_line(message, icon)


def configure_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Route all logging to stdout (or `stream`) in the console line format."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(ConsoleFormatter())
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
