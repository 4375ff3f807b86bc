"""
Utilities module for retracer.

Provides exception handling, logging and colors. Display helpers live in
``retracer.utils.helpers`` and are imported from there directly.
"""

from .exceptions import (
    RetracerError,
    StackStructureError,
    StackDecodeError,
    IndexerError,
    ResolutionError,
    ConsistencyError,
    EmulationError,
    format_error,
    format_error_json,
)
from .logging import setup_logging, get_logger, logger, transaction_context
from .colors import (
    Colors,
    SUPPORTS_COLOR,
    red, green, yellow, blue, magenta, cyan,
    bold, dim, underline,
    error, success, warning, info, highlight,
    opcode, address, number, stack_item, gas_value,
    bullet_point,
)

__all__ = [
    # Exceptions
    'RetracerError',
    'StackStructureError',
    'StackDecodeError',
    'IndexerError',
    'ResolutionError',
    'ConsistencyError',
    'EmulationError',
    # Formatting
    'format_error',
    'format_error_json',
    # Logging
    'setup_logging',
    'get_logger',
    'logger',
    'transaction_context',
    # Colors
    'Colors',
    'SUPPORTS_COLOR',
    'red', 'green', 'yellow', 'blue', 'magenta', 'cyan',
    'bold', 'dim', 'underline',
    'error', 'success', 'warning', 'info', 'highlight',
    'opcode', 'address', 'number', 'stack_item', 'gas_value',
    'bullet_point',
]
