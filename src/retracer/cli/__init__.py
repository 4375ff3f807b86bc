"""
CLI module for retracer commands.

This module provides the command-line interface for retracer,
including the resolve, trace, block and offline decoding commands.
"""

from .main import main

__all__ = [
    'main',
    'resolve_command',
    'trace_command',
    'block_command',
    'decode_stack_command',
    'stack_effect_command',
    'classify_command',
]

# Lazy imports to avoid circular dependencies
def resolve_command(args):
    """Execute the resolve command."""
    from .resolve import resolve_command as _resolve_command
    return _resolve_command(args)

def trace_command(args):
    """Execute the trace command."""
    from .trace import trace_command as _trace_command
    return _trace_command(args)

def block_command(args):
    """Execute the block command."""
    from .block import block_command as _block_command
    return _block_command(args)

def decode_stack_command(args):
    """Execute the decode-stack command."""
    from .decode import decode_stack_command as _decode_stack_command
    return _decode_stack_command(args)

def stack_effect_command(args):
    """Execute the stack-effect command."""
    from .decode import stack_effect_command as _stack_effect_command
    return _stack_effect_command(args)

def classify_command(args):
    """Execute the classify command."""
    from .decode import classify_command as _classify_command
    return _classify_command(args)
