"""
Logging configuration for retracer.

Console output goes to stderr so ``--json`` output on stdout stays clean.
While a transaction is being retraced every record is tagged with the short
hash of that transaction, which keeps interleaved lookups readable when
several references are resolved in one run.
"""

import logging
import sys
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from retracer.utils.colors import Colors

# Below DEBUG: one record per VM log line or executed step
TRACE = 5
logging.addLevelName(TRACE, 'TRACE')

ROOT_LOGGER = 'retracer'
TX_TAG_LENGTH = 8

# Third-party loggers that only matter when tracing
NOISY_LOGGERS = ('urllib3', 'requests')

_context = threading.local()


def current_transaction() -> Optional[str]:
    return getattr(_context, 'tx_hash', None)


@contextmanager
def transaction_context(tx_hash: str) -> Iterator[None]:
    """Tag records emitted inside the block with ``tx_hash``."""
    previous = current_transaction()
    _context.tx_hash = tx_hash
    try:
        yield
    finally:
        _context.tx_hash = previous


class TransactionFilter(logging.Filter):
    """Adds ``record.tx`` holding ``[3e5f4979] `` or an empty string."""

    def filter(self, record: logging.LogRecord) -> bool:
        tx_hash = current_transaction()
        record.tx = f"[{tx_hash[:TX_TAG_LENGTH]}] " if tx_hash else ''
        return True


class ColoredFormatter(logging.Formatter):
    """Colors the level name when the stream is a terminal."""

    LEVEL_COLORS = {
        TRACE: Colors.DIM,
        logging.DEBUG: Colors.DIM,
        logging.INFO: Colors.BRIGHT_CYAN,
        logging.WARNING: Colors.BRIGHT_YELLOW,
        logging.ERROR: Colors.BRIGHT_RED,
        logging.CRITICAL: Colors.BOLD + Colors.BRIGHT_RED,
    }

    def __init__(self, fmt: str = None, datefmt: str = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, 'tx'):
            record.tx = ''
        if not self.use_colors:
            return super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno, '')
        original = record.levelname
        record.levelname = f"{color}{original}{Colors.RESET}" if color else original
        try:
            return super().format(record)
        finally:
            record.levelname = original


class RetracerLogger(logging.Logger):
    """Logger with a ``trace`` method for the TRACE level."""

    def trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)


logging.setLoggerClass(RetracerLogger)


def setup_logging(
    level: int = logging.WARNING,
    quiet: bool = False,
    debug: bool = False,
    verbose: bool = False,
    log_file: Optional[str] = None,
    use_colors: bool = True
) -> logging.Logger:
    """
    Configure the ``retracer`` logger tree.

    ``verbose`` selects TRACE, ``debug`` selects DEBUG. A log file always
    receives DEBUG and up, whatever the console level. HTTP client loggers
    are held at WARNING unless tracing.
    """
    if verbose:
        console_level = TRACE
    elif debug:
        console_level = logging.DEBUG
    else:
        console_level = level

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.propagate = False
    root.setLevel(min(console_level, logging.DEBUG) if log_file else console_level)
    tx_filter = TransactionFilter()

    if not quiet:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(console_level)
        handler.addFilter(tx_filter)
        colored = use_colors and hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()
        handler.setFormatter(ColoredFormatter('%(levelname)s: %(tx)s%(message)s', use_colors=colored))
        root.addHandler(handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(tx_filter)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(tx)s%(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return root


def get_logger(name: str = None) -> logging.Logger:
    """``retracer`` itself, or the child ``retracer.<name>``."""
    if name:
        return logging.getLogger(f'{ROOT_LOGGER}.{name}')
    return logging.getLogger(ROOT_LOGGER)


logger = get_logger()


def log_trace(msg: str, *args, **kwargs):
    logger.log(TRACE, msg, *args, **kwargs)
