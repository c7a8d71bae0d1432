"""Custom exceptions for sqlserver_output."""

from typing import List, Optional


class SqlServerOutputException(Exception):
    """Base exception for all sqlserver_output errors."""

    pass


class ConfigValidationError(SqlServerOutputException):
    """Configuration validation failed."""

    def __init__(self, message: str, file: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message
        self.file = file
        self.errors = errors or []
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        """Format error message with location info."""
        parts = ["Configuration validation error"]
        if self.file:
            parts.append(f"\n  File: {self.file}")
        parts.append(f"\n  Error: {self.message}")
        for error in self.errors:
            parts.append(f"\n    - {error}")
        return "".join(parts)


class ConnectionError(SqlServerOutputException):
    """Connection to the target database could not be established."""

    def __init__(self, connection_name: str, reason: str, suggestions: Optional[List[str]] = None):
        self.connection_name = connection_name
        self.reason = reason
        self.suggestions = suggestions or []
        super().__init__(self._format_error())

    def _format_error(self) -> str:
        """Format connection error with suggestions."""
        parts = [
            f"Connection failed: {self.connection_name}",
            f"\n  Reason: {self.reason}",
        ]

        if self.suggestions:
            parts.append("\n\n  Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                parts.append(f"\n    {i}. {suggestion}")

        return "".join(parts)
