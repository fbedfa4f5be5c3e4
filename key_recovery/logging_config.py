"""
Logging for recovery runs.

Stage work runs on pool threads while a tqdm bar may be drawn on stderr, so
console records go through ``tqdm.write`` and file records carry the thread
name of the worker that emitted them.
"""
import logging
import os
import sys
from typing import Optional, TextIO

from tqdm import tqdm

LOGGER_NAME = "key_recovery"

CONSOLE_FORMAT = '%(levelname)s %(name)s: %(message)s'
FILE_FORMAT = '%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s'


class TqdmLoggingHandler(logging.Handler):
    """Writes records above any active progress bar instead of through it."""

    def __init__(self, stream: Optional[TextIO] = None, level=logging.NOTSET):
        super().__init__(level)
        self.stream = stream

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=self.stream or sys.stderr)
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def _detach_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _open_log_file(path: str) -> logging.FileHandler:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = logging.FileHandler(path, encoding='utf-8')
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def setup_logger(log_level_str: str, log_file_path: Optional[str], log_to_console: bool) -> logging.Logger:
    """
    Configure the ``key_recovery`` logger that every module logs under.

    Calling it again replaces (and closes) the handlers of the previous
    call. Unknown level names fall back to INFO.

    Args:
        log_level_str: Level name such as 'INFO' or 'DEBUG'.
        log_file_path: Log file to append to; None or empty for none.
        log_to_console: Also log to stderr, above any progress bar.
    """
    logger = logging.getLogger(LOGGER_NAME)
    _detach_handlers(logger)
    logger.setLevel(_level_from_name(log_level_str))
    logger.propagate = False

    if log_file_path:
        logger.addHandler(_open_log_file(log_file_path))
    if log_to_console:
        console = TqdmLoggingHandler()
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        logger.addHandler(console)
    return logger
