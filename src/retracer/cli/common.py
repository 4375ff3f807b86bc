"""
Common utilities for CLI commands.

This module provides shared functionality used across multiple CLI commands
to reduce code duplication and ensure consistent behavior.
"""

import json
import sys
from typing import Any, List, Optional

from retracer.config import RetracerConfig
from retracer.core.indexer import IndexClient
from retracer.core.locator import LocatorResolver
from retracer.parsers.opcodes import OpcodeCatalog, load_catalog
from retracer.parsers.stack import StackValue, TupleValue
from retracer.utils.colors import dim, highlight, stack_item
from retracer.utils.exceptions import format_error
from retracer.utils.helpers import format_stack_item
from retracer.utils.logging import logger


def load_config(args: Any) -> RetracerConfig:
    """
    Build the runtime configuration for a command.

    Environment variables come first, command-line flags override them.
    """
    config = RetracerConfig.from_env()
    return config.with_overrides(
        api_key=getattr(args, 'api_key', None),
        rate_limit_interval=getattr(args, 'rate_limit', None),
    )


def create_index_client(config: RetracerConfig) -> IndexClient:
    """
    Create an IndexClient on the shared rate gate, paced by the configured limit.

    Args:
        config: Runtime configuration

    Returns:
        Configured IndexClient instance
    """
    logger.debug(f"Index endpoint: {config.index_url(False)} (rate limit {config.rate_limit_interval}s)")
    return IndexClient(config)


def create_resolver(config: RetracerConfig) -> LocatorResolver:
    return LocatorResolver(create_index_client(config))


def network_hint(args: Any) -> Optional[bool]:
    """True for --testnet, False for --mainnet, None to try both."""
    if getattr(args, 'testnet', False):
        return True
    if getattr(args, 'mainnet', False):
        return False
    return None


def load_opcodes(args: Any, config: RetracerConfig) -> OpcodeCatalog:
    source = getattr(args, 'opcodes', None) or config.opcodes_url
    return load_catalog(source, timeout=config.request_timeout)


def handle_command_error(
    e: Exception,
    json_mode: bool = False,
    exit_code: int = 1
) -> int:
    """
    Handle command errors uniformly.

    Args:
        e: The exception that occurred
        json_mode: If True, output as JSON
        exit_code: Exit code to return

    Returns:
        Exit code
    """
    error_output = format_error(e, json_mode)
    if json_mode:
        print(error_output)
    else:
        print(error_output, file=sys.stderr)
    return exit_code


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def print_stack(
    stack: List[StackValue],
    highlighted: Optional[List[int]] = None,
    before: bool = False,
    indent: int = 0,
) -> None:
    """
    Print a top-first stack, one item per line, expanding tuples in place.

    Args:
        stack: Values, top of stack first
        highlighted: Indices to mark as touched by the instruction
        before: Use the "consumed" highlight instead of the "produced" one
        indent: Nesting level of tuples
    """
    marks = set(highlighted or [])
    pad = '  ' * indent
    if not stack:
        print(f"{pad}{dim('(empty)')}")
        return
    for i, value in enumerate(stack):
        text = format_stack_item(value)
        if i in marks:
            text = highlight(text, before=before)
        print(f"{pad}{stack_item(i, text)}")
        if isinstance(value, TupleValue):
            print_stack(value.items, indent=indent + 1)
