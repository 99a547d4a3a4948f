"""Custom exceptions for ThoughtChain MCP."""

from __future__ import annotations

from typing import Any


class ThoughtChainException(Exception):
    """Base exception for ThoughtChain MCP."""

    pass


class PersistenceException(ThoughtChainException):
    """Raised when the session file location cannot be used."""

    pass


class ConfigException(ThoughtChainException):
    """Raised during configuration issues."""

    pass


class ToolExecutionError(Exception):
    """Raised when tool execution fails in MCP context.

    Provides structured error information that can be returned
    to the LLM client in a parseable format.
    """

    def __init__(
        self,
        tool_name: str,
        error_message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize tool execution error.

        Args:
            tool_name: Name of the tool that failed.
            error_message: Human-readable error message.
            details: Optional dictionary with additional error details.

        """
        self.tool_name = tool_name
        self.error_message = error_message
        self.details = details or {}
        super().__init__(f"Tool {tool_name} failed: {error_message}")

    def to_mcp_error(self) -> str:
        """Convert to MCP-compatible error format."""
        return f"[{self.tool_name}] {self.error_message}. Details: {self.details}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": True,
            "tool": self.tool_name,
            "message": self.error_message,
            "details": self.details,
        }
