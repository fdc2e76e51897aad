"""Tool backend clients."""

from .gateway import ClientFactory, ToolClient, ToolClientGateway
from .mcp_client import McpServerConfig, McpToolClient, mcp_client_factory

__all__ = ["ClientFactory", "McpServerConfig", "McpToolClient", "ToolClient", "ToolClientGateway", "mcp_client_factory"]
