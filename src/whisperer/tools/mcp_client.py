"""MCP tool backend client over stdio."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import anyio
from loguru import logger
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult, Implementation, TextContent

from whisperer.config import Settings
from whisperer.core.types import ToolDefinition
from whisperer.errors import ToolInvocationError
from whisperer.tools.gateway import ClientFactory

CLIENT_NAME = "whisperer"
CLIENT_VERSION = "0.1.0"


@dataclass(frozen=True)
class McpServerConfig:
    """How to launch the MCP tool server subprocess."""

    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    token_flag: str = "--jira-personal-token"
    default_token: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> McpServerConfig:
        args = list(settings.mcp_args)
        if settings.jira_url:
            args.append(f"--jira-url={settings.jira_url}")
        return cls(
            command=settings.mcp_command,
            args=tuple(args),
            env=dict(settings.mcp_env),
            token_flag=settings.token_flag,
            default_token=settings.default_jira_token,
        )

    def parameters(self, token: str | None) -> StdioServerParameters:
        args = list(self.args)
        if token := token or self.default_token:
            args.append(f"{self.token_flag}={token}")
        return StdioServerParameters(command=self.command, args=args, env=self.env or None)


def render_tool_result(result: CallToolResult) -> str:
    """Render the first content item: text verbatim, anything else as indented JSON."""
    for item in result.content:
        if isinstance(item, TextContent):
            return item.text
        return json.dumps(item.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False)
    return ""


class McpToolClient:
    """Tool client bound to one initialized MCP session."""

    def __init__(self, session: ClientSession, *, label: str = "default") -> None:
        self._session = session
        self._label = label

    @classmethod
    @asynccontextmanager
    async def connect(cls, config: McpServerConfig, token: str | None = None) -> AsyncIterator[McpToolClient]:
        label = "personal" if token else "default"
        params = config.parameters(token)
        logger.info("mcp.client.start kind={} command={}", label, params.command)
        client_info = Implementation(name=CLIENT_NAME, version=CLIENT_VERSION)
        async with stdio_client(params) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream, client_info=client_info) as session:
                init = await session.initialize()
                logger.info(
                    "mcp.client.initialized kind={} server={} protocol={}",
                    label,
                    init.serverInfo.name,
                    init.protocolVersion,
                )
                yield cls(session, label=label)
        logger.info("mcp.client.stopped kind={}", label)

    async def list_tools(self) -> list[ToolDefinition]:
        result = await self._session.list_tools()
        return [ToolDefinition.create(tool.name, tool.description, tool.inputSchema) for tool in result.tools]

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        try:
            result = await self._session.call_tool(name, arguments)
        except McpError as exc:
            raise ToolInvocationError(name, str(exc)) from exc
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as exc:
            raise ToolInvocationError(name, f"tool server connection lost: {exc!r}") from exc

        text = render_tool_result(result)
        if result.isError:
            raise ToolInvocationError(name, text or f"{name} returned an error")
        return text


def mcp_client_factory(config: McpServerConfig) -> ClientFactory:
    """Build the gateway connect callable for ``config``."""

    def _connect(token: str | None) -> AbstractAsyncContextManager[McpToolClient]:
        return McpToolClient.connect(config, token)

    return _connect
