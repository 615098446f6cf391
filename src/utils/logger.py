import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_log_console: Console | None = None


class CenteredFormatter(logging.Formatter):
    longest_name_length = 12  # grows as longer logger names show up

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=12):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        width = CenteredFormatter.longest_name_length
        record.name = record.name.center(width)
        return super().format(record)


def _console() -> Console:
    """
    Console shared by every handler.
    The TUI owns the terminal, so STORE_LOG_FILE redirects log output to a file.
    """
    global _log_console
    if _log_console is None:
        log_file = os.getenv("STORE_LOG_FILE")
        if log_file:
            _log_console = Console(file=open(log_file, "a"), width=140)
        else:
            _log_console = Console(stderr=True)
    return _log_console


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger configured with RichHandler for rich output.
    """
    if name is None:
        name = "storefront"
    logger = logging.getLogger(name)
    log_level = logging.DEBUG if os.getenv("DEBUG") else logging.INFO
    logger.setLevel(log_level)

    if not logger.handlers:
        formatter = CenteredFormatter("[%(name)s]  %(message)s")

        handler = RichHandler(
            console=_console(),
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        logger.addHandler(handler)

        logger.propagate = False
        logger.debug(f"Logger '{name}' ready.")

    return logger
