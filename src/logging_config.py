import logging
import os
import sys
from typing import Optional, TextIO

from tqdm import tqdm

LOGGER_NAME = "lang_translator"

FILE_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'
CONSOLE_LOG_FORMAT = '%(levelname)s: %(message)s'


def get_logger(module_name: str) -> logging.Logger:
    """
    Return the logger for a translator module.

    ``src.batch_translator`` becomes ``lang_translator.batch_translator``, so
    every module logs through the handlers configured by :func:`setup_logger`.
    """
    return logging.getLogger(f"{LOGGER_NAME}.{module_name.rsplit('.', 1)[-1]}")


class TqdmLoggingHandler(logging.StreamHandler):
    """Writes records above the locale progress bar instead of through it."""

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=self.stream, end=self.terminator)
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


def _file_handler(log_file_path: str) -> logging.Handler:
    log_dir = os.path.dirname(log_file_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    handler = logging.FileHandler(log_file_path, encoding='utf-8')
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
    return handler


def setup_logger(log_level_str: str, log_file_path: Optional[str], log_to_console: bool,
                 console_stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the ``lang_translator`` logger that all module loggers report to.

    Calling it again replaces the handlers of the previous call.

    Args:
        log_level_str: Level name such as 'INFO' or 'DEBUG'. Unknown names fall back to INFO.
        log_file_path: Log file to append to. An empty value disables file logging.
        log_to_console: Whether to write records to the console, above any progress bar.
        console_stream: Stream for console records. Defaults to stderr, leaving stdout
            to the translated output.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.getLevelName(log_level_str.upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file_path:
        logger.addHandler(_file_handler(log_file_path))

    if log_to_console:
        console_handler = TqdmLoggingHandler(console_stream or sys.stderr)
        console_handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
        logger.addHandler(console_handler)

    return logger
