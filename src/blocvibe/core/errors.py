"""
Error types for BlocVibe document payloads, configuration and storage.

Structural failures inside the mutation engine (unknown ids, bad positions,
cross-parent wraps, cycles) are expected outcomes and are reported as return
values, not exceptions. The types below cover input that cannot be trusted
at all: tree payloads from the rendering surface, config files, and the
project store.
"""

from dataclasses import dataclass
from typing import Optional


class BlocVibeError(Exception):
    """Base exception for all BlocVibe errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class PayloadError(BlocVibeError):
    """
    Raised when a serialized document tree cannot be decoded.

    Examples:
    - Unparsable JSON
    - Top-level value that is neither a node object nor an array of nodes
    - Node fields of the wrong type
    - Duplicate node ids
    """

    pass


class ConfigError(BlocVibeError):
    """
    Raised when ``blocvibe.toml`` cannot be loaded.

    Examples:
    - Invalid TOML syntax
    - Non-numeric debounce delay
    - Style table with non-string values
    """

    pass


class PersistenceError(BlocVibeError):
    """
    Raised when a project record cannot be read from or written to storage.

    Examples:
    - Corrupt project file
    - Unwritable store directory
    """

    pass


@dataclass
class ErrorContext:
    """
    Location of an error inside a JSON payload.

    Attributes:
        line: Line number (1-indexed)
        column: Column number (1-indexed)
        snippet: The offending line of the payload, if available
        source: Optional label for where the payload came from
    """

    line: int
    column: int
    snippet: str | None = None
    source: str | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "payload:1:2" followed by the marked snippet
        """
        location = f"{self.source or 'payload'}:{self.line}:{self.column}"
        if self.snippet:
            return f"{location}\n{self._format_snippet()}"
        return location

    def _format_snippet(self) -> str:
        """Format the snippet with a line number and an error marker."""
        if not self.snippet:
            return ""
        prefix = f"{self.line:4d} | "
        marker_pos = len(prefix) + self.column - 1
        return f"{prefix}{self.snippet}\n{' ' * marker_pos}^^^"


def make_payload_error(
    message: str,
    payload: str,
    line: int,
    column: int,
    source: str | None = None,
) -> PayloadError:
    """
    Helper to create a PayloadError pointing into the raw payload.

    Args:
        message: Error description
        payload: The raw JSON text that failed to decode
        line: Line number reported by the decoder (1-indexed)
        column: Column number reported by the decoder (1-indexed)
        source: Optional label for the payload origin

    Returns:
        PayloadError with context attached
    """
    lines = payload.splitlines()
    snippet = lines[line - 1] if 0 < line <= len(lines) else None
    if snippet is not None and len(snippet) > 120:
        start = max(0, column - 60)
        snippet = snippet[start : start + 120]
        column = column - start
    context = ErrorContext(line=line, column=column, snippet=snippet, source=source)
    return PayloadError(message, context)
