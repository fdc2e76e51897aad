from __future__ import annotations

from typing import Any

import anyio
import pytest
from mcp.shared.exceptions import McpError
from mcp.types import CallToolResult, ErrorData, ImageContent, TextContent, Tool

from whisperer.config import Settings
from whisperer.errors import ToolInvocationError
from whisperer.tools.mcp_client import McpServerConfig, McpToolClient, render_tool_result


class FakeSession:
    def __init__(self, result: CallToolResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def list_tools(self) -> Any:
        tools = [
            Tool(name="jira_get_issue", description="Get issue", inputSchema={"type": "object"}),
            Tool(name="jira_search", description=None, inputSchema={"type": "object", "properties": {"jql": {}}}),
        ]
        return type("ListToolsResult", (), {"tools": tools})()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> CallToolResult:
        self.calls.append((name, arguments))
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


def test_server_parameters_carry_token_flag() -> None:
    config = McpServerConfig(
        command="uvx",
        args=("mcp-atlassian", "--jira-url=https://jira.example.com"),
        default_token="read-only-token",
    )

    assert config.parameters("personal").args == [
        "mcp-atlassian",
        "--jira-url=https://jira.example.com",
        "--jira-personal-token=personal",
    ]
    assert config.parameters(None).args[-1] == "--jira-personal-token=read-only-token"
    assert McpServerConfig(command="uvx").parameters(None).args == []


def test_config_from_settings() -> None:
    settings = Settings(jira_url="https://jira.example.com", mcp_env={"UV_CACHE_DIR": "/tmp/uv"})

    config = McpServerConfig.from_settings(settings)

    assert config.command == "uvx"
    assert config.args == ("mcp-atlassian", "--jira-url=https://jira.example.com")
    assert config.parameters(None).env == {"UV_CACHE_DIR": "/tmp/uv"}


def test_render_tool_result_uses_first_content_item() -> None:
    text = CallToolResult(content=[TextContent(type="text", text="Status: Open")])
    image = CallToolResult(content=[ImageContent(type="image", data="aGk=", mimeType="image/png")])

    assert render_tool_result(text) == "Status: Open"
    assert '"mimeType": "image/png"' in render_tool_result(image)
    assert render_tool_result(CallToolResult(content=[])) == ""


@pytest.mark.asyncio
async def test_list_tools_normalizes_schemas() -> None:
    client = McpToolClient(FakeSession())  # type: ignore[arg-type]

    tools = await client.list_tools()

    assert [tool.name for tool in tools] == ["jira_get_issue", "jira_search"]
    assert tools[0].parameters == {"type": "object", "properties": {}}
    assert tools[1].description == ""


@pytest.mark.asyncio
async def test_call_tool_returns_text_and_maps_errors() -> None:
    ok = McpToolClient(FakeSession(CallToolResult(content=[TextContent(type="text", text="done")])))  # type: ignore[arg-type]
    assert await ok.call_tool("jira_get_issue", {"issue_key": "DEMO-1"}) == "done"

    tool_error = CallToolResult(content=[TextContent(type="text", text="Issue not found")], isError=True)
    failing = McpToolClient(FakeSession(tool_error))  # type: ignore[arg-type]
    with pytest.raises(ToolInvocationError, match="Issue not found") as exc_info:
        await failing.call_tool("jira_get_issue", {"issue_key": "NOPE-1"})
    assert exc_info.value.tool_name == "jira_get_issue"

    protocol = McpToolClient(FakeSession(error=McpError(ErrorData(code=-32602, message="bad params"))))  # type: ignore[arg-type]
    with pytest.raises(ToolInvocationError, match="bad params"):
        await protocol.call_tool("jira_search", {})

    closed = McpToolClient(FakeSession(error=anyio.ClosedResourceError()))  # type: ignore[arg-type]
    with pytest.raises(ToolInvocationError, match="connection lost"):
        await closed.call_tool("jira_search", {})
