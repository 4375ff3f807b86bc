"""
retracer - TON transaction retracer
"""

__version__ = "0.1.0"

# Main entry point
from .cli.main import main

# Core components
from .core import (
    IndexClient,
    LocatorResolver,
    TransactionLocator,
    Retracer,
    TraceReport,
    TraceSerializer,
)

# Parsers
from .parsers import (
    StackEffect,
    parse_stack_effect,
    decode_stack,
    OpcodeCatalog,
    classify,
    parse_c5,
)

# Utilities
from .utils import (
    RetracerError,
    ResolutionError,
    setup_logging,
)

__all__ = [
    # Version
    '__version__',
    # Main
    'main',
    # Core
    'IndexClient',
    'LocatorResolver',
    'TransactionLocator',
    'Retracer',
    'TraceReport',
    'TraceSerializer',
    # Parsers
    'StackEffect',
    'parse_stack_effect',
    'decode_stack',
    'OpcodeCatalog',
    'classify',
    'parse_c5',
    # Utils
    'RetracerError',
    'ResolutionError',
    'setup_logging',
]
