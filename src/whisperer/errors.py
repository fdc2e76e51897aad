"""Application-level exception types for Whisperer."""

from __future__ import annotations


class WhispererError(Exception):
    """Base exception for Whisperer."""


class ConfigurationError(WhispererError):
    """Base exception for configuration and startup validation errors."""


class TransportError(WhispererError):
    """Raised when the chat transport fails to list, post or edit messages."""


class ModelError(WhispererError):
    """Raised when a model call fails or returns no usable choice."""


class ToolInvocationError(WhispererError):
    """Raised when a single tool call fails on the tool backend."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class PermissionDenied(WhispererError):
    """Raised when a mutating tool is requested without a personal token."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"you don't have permission to use {tool_name}")
        self.tool_name = tool_name


class ClientResolutionError(WhispererError):
    """Raised when a tool client cannot be connected or initialized."""


class CredentialStoreError(WhispererError):
    """Raised when a stored personal token cannot be read or written."""


class TokenValidationError(CredentialStoreError):
    """Raised when a submitted personal token is rejected."""
