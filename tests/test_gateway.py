from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import pytest

from whisperer.core.types import ToolDefinition
from whisperer.errors import ClientResolutionError
from whisperer.tools.gateway import ToolClientGateway


class FakeClient:
    def __init__(self, token: str | None) -> None:
        self.token = token

    async def list_tools(self) -> list[ToolDefinition]:
        return []

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        return "ok"


class FakeConnector:
    def __init__(self, *, error: Exception | None = None, delay: float = 0.0) -> None:
        self.error = error
        self.delay = delay
        self.opened: list[str | None] = []
        self.closed: list[str | None] = []

    @asynccontextmanager
    async def connect(self, token: str | None) -> AsyncIterator[FakeClient]:
        self.opened.append(token)
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        try:
            yield FakeClient(token)
        finally:
            self.closed.append(token)


@pytest.mark.asyncio
async def test_default_client_is_connected_once_for_concurrent_callers() -> None:
    connector = FakeConnector(delay=0.01)
    gateway = ToolClientGateway(connector.connect)

    clients = await asyncio.gather(*(gateway.default_client() for _ in range(10)))

    assert connector.opened == [None]
    assert all(client is clients[0] for client in clients)
    assert await gateway.default_client() is clients[0]
    await gateway.aclose()
    assert connector.closed == [None]


@pytest.mark.asyncio
async def test_default_client_failure_is_cached_for_every_caller() -> None:
    connector = FakeConnector(error=RuntimeError("server missing"), delay=0.01)
    gateway = ToolClientGateway(connector.connect)

    results = await asyncio.gather(*(gateway.default_client() for _ in range(5)), return_exceptions=True)

    assert all(isinstance(result, ClientResolutionError) for result in results)
    assert all(result is results[0] for result in results)
    with pytest.raises(ClientResolutionError, match="server missing"):
        await gateway.default_client()
    assert connector.opened == [None]
    await gateway.aclose()


@pytest.mark.asyncio
async def test_acquire_without_credential_returns_default_client() -> None:
    connector = FakeConnector()
    gateway = ToolClientGateway(connector.connect)

    async with gateway.acquire("") as client:
        assert client is await gateway.default_client()

    assert connector.closed == []
    await gateway.aclose()


@pytest.mark.asyncio
async def test_personal_client_is_released_on_success_and_error() -> None:
    connector = FakeConnector()
    gateway = ToolClientGateway(connector.connect)

    async with gateway.acquire("tok-1") as client:
        assert isinstance(client, FakeClient)
        assert client.token == "tok-1"
    assert connector.closed == ["tok-1"]

    with pytest.raises(ValueError, match="tool exploded"):
        async with gateway.acquire("tok-2"):
            raise ValueError("tool exploded")
    assert connector.closed == ["tok-1", "tok-2"]
    await gateway.aclose()


@pytest.mark.asyncio
async def test_personal_handshake_timeout_raises_resolution_error() -> None:
    connector = FakeConnector(delay=1.0)
    gateway = ToolClientGateway(connector.connect, handshake_timeout=0.01)

    with pytest.raises(ClientResolutionError, match="timed out"):
        async with gateway.acquire("tok"):
            pass

    assert connector.closed == []
    await gateway.aclose()


@pytest.mark.asyncio
async def test_closed_gateway_rejects_default_client() -> None:
    gateway = ToolClientGateway(FakeConnector().connect)
    await gateway.aclose()

    with pytest.raises(ClientResolutionError, match="closed"):
        await gateway.default_client()
