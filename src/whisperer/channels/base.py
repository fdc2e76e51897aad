"""Base channel interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Generic, Protocol, TypeVar

from loguru import logger

from whisperer.channels.events import InboundTurn
from whisperer.core.prompt import DEFAULT_ERROR_MESSAGE
from whisperer.core.types import HistoryMessage, TurnResult
from whisperer.errors import TransportError

T = TypeVar("T")


class ChatTransport(Protocol):
    """Outbound side of a chat surface."""

    async def post_message(self, channel_id: str, text: str, thread_ts: str | None = None) -> str: ...

    async def update_message(self, channel_id: str, ts: str, text: str) -> None: ...

    async def get_thread_history(self, channel_id: str, thread_ts: str) -> list[HistoryMessage]: ...


class TurnHandler(Protocol):
    async def handle_turn(
        self,
        text: str,
        history: Sequence[HistoryMessage],
        channel_id: str,
        thread_ts: str,
        user_id: str,
    ) -> TurnResult: ...


class BaseChannel(ABC, Generic[T]):
    """Abstract base class for channel adapters."""

    name: str = "base"

    def __init__(self, transport: ChatTransport, handler: TurnHandler, *, support_contact: str = "your Jira admin") -> None:
        self.transport = transport
        self.handler = handler
        self._support_contact = support_contact

    @abstractmethod
    async def get_inbound(self, event: T) -> InboundTurn | None:
        """Turn a raw event into an inbound turn, or None when it should be ignored."""

    async def process_output(self, inbound: InboundTurn, result: TurnResult) -> None:
        """Post the final answer; failed turns have already posted their notice."""
        if not result.ok or not result.text:
            return
        await self.transport.post_message(inbound.channel_id, result.text, inbound.reply_ts)

    async def run_turn(self, event: T) -> TurnResult | None:
        """Run one turn for the given event."""
        try:
            inbound = await self.get_inbound(event)
            if inbound is None:
                return None
            history = await self._load_history(inbound)
            if history is None:
                return None
            result = await self.handler.handle_turn(
                inbound.text,
                history,
                inbound.channel_id,
                inbound.reply_ts,
                inbound.user_id,
            )
            await self.process_output(inbound, result)
            return result
        except Exception:
            logger.exception("{}.channel.error", self.name)
            return None

    async def _load_history(self, inbound: InboundTurn) -> list[HistoryMessage] | None:
        if not inbound.is_thread_reply:
            return []
        try:
            return await self.transport.get_thread_history(inbound.channel_id, inbound.reply_ts)
        except TransportError as exc:
            logger.error("{}.channel.history.error channel={} error={}", self.name, inbound.channel_id, exc)
            notice = DEFAULT_ERROR_MESSAGE.format(contact=self._support_contact, error=exc)
            await self.transport.post_message(inbound.channel_id, notice, inbound.reply_ts)
            return None
