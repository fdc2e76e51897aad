"""Process-wide runtime: one model client, one tool gateway, one token store."""

from __future__ import annotations

from types import TracebackType

from loguru import logger

from whisperer.channels.base import ChatTransport
from whisperer.channels.slack import SlackChannel, SlackTransport
from whisperer.config import Settings
from whisperer.core.orchestrator import ConversationOrchestrator, OrchestratorOptions
from whisperer.core.types import ToolDefinition
from whisperer.llm.client import ModelBackend, build_model_client
from whisperer.storage.token_store import FileTokenStore, TokenStore
from whisperer.tools.gateway import ToolClientGateway
from whisperer.tools.mcp_client import McpServerConfig, mcp_client_factory


class AppRuntime:
    """Owns the long-lived collaborators shared by every turn.

    Collaborators are built on first use from ``settings`` unless passed in,
    so commands that never talk to the model do not need model credentials.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        model: ModelBackend | None = None,
        gateway: ToolClientGateway | None = None,
        tokens: TokenStore | None = None,
    ) -> None:
        self.settings = settings
        self._model = model
        self._gateway = gateway
        self._tokens = tokens
        self._slack_channel: SlackChannel | None = None

    @property
    def model(self) -> ModelBackend:
        if self._model is None:
            self._model = build_model_client(self.settings)
        return self._model

    @property
    def gateway(self) -> ToolClientGateway:
        if self._gateway is None:
            config = McpServerConfig.from_settings(self.settings)
            self._gateway = ToolClientGateway(
                mcp_client_factory(config),
                handshake_timeout=self.settings.handshake_timeout_seconds,
            )
        return self._gateway

    @property
    def tokens(self) -> TokenStore:
        if self._tokens is None:
            self._tokens = FileTokenStore.from_settings(self.settings)
        return self._tokens

    def build_orchestrator(self, transport: ChatTransport) -> ConversationOrchestrator:
        return ConversationOrchestrator(
            model=self.model,
            gateway=self.gateway,
            transport=transport,
            tokens=self.tokens,
            options=OrchestratorOptions.from_settings(self.settings),
        )

    def slack_channel(self) -> SlackChannel:
        if self._slack_channel is None:
            transport = SlackTransport.from_token(self.settings.require_slack_token())
            self._slack_channel = SlackChannel(
                transport,
                self.build_orchestrator(transport),
                support_contact=self.settings.support_contact,
            )
        return self._slack_channel

    async def list_tools(self) -> list[ToolDefinition]:
        client = await self.gateway.default_client()
        return [tool.normalized() for tool in await client.list_tools()]

    async def aclose(self) -> None:
        if self._gateway is not None:
            await self._gateway.aclose()
            logger.info("runtime.closed")

    async def __aenter__(self) -> AppRuntime:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
