"""Tool client selection: one shared default client, or one client per personal token."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from typing import Any, Protocol

from loguru import logger

from whisperer.core.types import ToolDefinition
from whisperer.errors import ClientResolutionError


class ToolClient(Protocol):
    async def list_tools(self) -> list[ToolDefinition]: ...

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str: ...


ClientFactory = Callable[[str | None], AbstractAsyncContextManager[ToolClient]]


class ToolClientGateway:
    """Resolve the tool client for a turn.

    The default client is connected lazily, at most once per process, by a
    background task that owns its connection until ``aclose``. A failed first
    connection is cached and raised to every later caller.
    """

    def __init__(self, connect: ClientFactory, *, handshake_timeout: float = 300.0) -> None:
        self._connect = connect
        self._handshake_timeout = handshake_timeout
        self._default_ready: asyncio.Future[ToolClient] | None = None
        self._default_task: asyncio.Task[None] | None = None
        self._default_stop: asyncio.Event | None = None
        self._closed = False

    async def default_client(self) -> ToolClient:
        if self._closed:
            raise ClientResolutionError("tool client gateway is closed")
        if self._default_ready is None:
            self._default_ready = asyncio.get_running_loop().create_future()
            self._default_stop = asyncio.Event()
            self._default_task = asyncio.create_task(
                self._own_default_client(self._default_ready, self._default_stop),
                name="whisperer.default-tool-client",
            )
        return await asyncio.shield(self._default_ready)

    @asynccontextmanager
    async def acquire(self, credential: str | None) -> AsyncIterator[ToolClient]:
        """Yield the client for ``credential``; personal clients are closed on exit."""
        if not credential:
            yield await self.default_client()
            return

        async with AsyncExitStack() as stack:
            client = await self._handshake(stack, "personal", credential)
            logger.info("tool.client.acquired kind=personal")
            try:
                yield client
            finally:
                logger.info("tool.client.released kind=personal")

    async def aclose(self) -> None:
        self._closed = True
        if self._default_stop is not None:
            self._default_stop.set()
        if self._default_task is not None:
            await self._default_task
            self._default_task = None

    async def _handshake(self, stack: AsyncExitStack, kind: str, credential: str | None = None) -> ToolClient:
        try:
            async with asyncio.timeout(self._handshake_timeout):
                return await stack.enter_async_context(self._connect(credential))
        except TimeoutError as exc:
            logger.error("tool.client.handshake.timeout kind={} timeout={}s", kind, self._handshake_timeout)
            raise ClientResolutionError(
                f"tool client initialization timed out after {self._handshake_timeout}s"
            ) from exc
        except ClientResolutionError:
            raise
        except Exception as exc:
            logger.error("tool.client.handshake.error kind={} error={}", kind, exc)
            raise ClientResolutionError(f"tool client initialization failed: {exc}") from exc

    async def _own_default_client(self, ready: asyncio.Future[ToolClient], stop: asyncio.Event) -> None:
        async with AsyncExitStack() as stack:
            try:
                client = await self._handshake(stack, "default")
            except ClientResolutionError as exc:
                ready.set_exception(exc)
                return
            logger.info("tool.client.acquired kind=default")
            ready.set_result(client)
            await stop.wait()
        logger.info("tool.client.released kind=default")
