"""
Custom exceptions for retracer.

This module provides a hierarchy of exceptions for the different failure
modes of trace decoding and transaction resolution, along with utilities
for formatting errors consistently.
"""

import json
from typing import Any, Dict, List, Optional


class RetracerError(Exception):
    """
    Base exception for all retracer errors.

    Attributes:
        message: Human-readable error message
        details: Additional context as key-value pairs
        error_code: Optional error code for programmatic handling
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": True,
            "type": self.error_code,
            "message": self.message,
            **self.details
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


# ============================================================================
# Stack Decoding Errors
# ============================================================================

class StackStructureError(RetracerError):
    """Raised when a stack dump has unbalanced or too deeply nested brackets."""

    def __init__(self, message: str, line: Optional[str] = None, **kwargs):
        details = {"line": line} if line is not None else {}
        details.update(kwargs)
        super().__init__(message, details, "StructureError")


class StackDecodeError(RetracerError):
    """Raised when a single typed stack token cannot be decoded."""

    def __init__(self, message: str, token: Optional[str] = None, **kwargs):
        details = {"token": token} if token is not None else {}
        details.update(kwargs)
        super().__init__(message, details, "DecodeError")


# ============================================================================
# Resolution Errors
# ============================================================================

class IndexerError(RetracerError):
    """Raised when the indexed lookup service cannot be reached or answers garbage."""

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        details = {"url": url} if url else {}
        details.update(kwargs)
        super().__init__(message, details, "IndexerError")


class ResolutionError(RetracerError):
    """
    Raised when a transaction reference cannot be turned into a locator.

    ``attempted`` lists every format and network combination that was tried,
    in order, so the user can see why nothing matched.
    """

    def __init__(
        self,
        message: str,
        attempted: Optional[List[str]] = None,
        reference: Optional[str] = None,
        **kwargs
    ):
        self.attempted = list(attempted or [])
        details: Dict[str, Any] = {"attempted": self.attempted}
        if reference is not None:
            details["reference"] = reference
        details.update(kwargs)
        if self.attempted:
            message = f"{message} (tried: {', '.join(self.attempted)})"
        super().__init__(message, details, "ResolutionError")


class ConsistencyError(RetracerError):
    """Raised when data looked up from the index contradicts locally known data."""

    def __init__(
        self,
        message: str,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        **kwargs
    ):
        details = {}
        if expected is not None:
            details["expected"] = expected
        if actual is not None:
            details["actual"] = actual
        details.update(kwargs)
        super().__init__(message, details, "ConsistencyError")


# ============================================================================
# Emulation Errors
# ============================================================================

class EmulationError(RetracerError):
    """Raised when emulator output cannot be read."""

    def __init__(self, message: str, source: Optional[str] = None, **kwargs):
        details = {"source": source} if source else {}
        details.update(kwargs)
        super().__init__(message, details, "EmulationError")


# ============================================================================
# Error Formatting Utilities
# ============================================================================

def format_error(e: Exception, json_mode: bool = False) -> str:
    """
    Format an exception for display.

    Args:
        e: The exception to format
        json_mode: If True, output as JSON; otherwise use colored text

    Returns:
        Formatted error string
    """
    from retracer.utils.colors import error

    if isinstance(e, RetracerError):
        if json_mode:
            return e.to_json()
        return error(e.message)
    if json_mode:
        return json.dumps({
            "error": True,
            "type": type(e).__name__,
            "message": str(e)
        }, indent=2)
    return error(str(e))


def format_error_json(
    message: str,
    error_type: str = "Error",
    **kwargs
) -> Dict[str, Any]:
    """
    Create a standardized error JSON structure.

    Args:
        message: Error message
        error_type: Error type/code
        **kwargs: Additional fields to include

    Returns:
        Dictionary suitable for JSON output
    """
    return {
        "error": True,
        "type": error_type,
        "message": message,
        **kwargs
    }

