"""Slack channel adapter."""

from __future__ import annotations

from typing import Any, ClassVar

from loguru import logger
from slack_sdk.errors import SlackClientError
from slack_sdk.web.async_client import AsyncWebClient

from whisperer.channels.base import BaseChannel, TurnHandler
from whisperer.channels.events import InboundTurn
from whisperer.core.types import HistoryMessage
from whisperer.errors import TransportError

HISTORY_PAGE_SIZE = 20


class SlackTransport:
    """Post, edit and read thread messages through the Slack Web API."""

    def __init__(self, client: AsyncWebClient) -> None:
        self._client = client
        self._bot_user_id: str | None = None

    @classmethod
    def from_token(cls, token: str) -> SlackTransport:
        return cls(AsyncWebClient(token=token))

    async def post_message(self, channel_id: str, text: str, thread_ts: str | None = None) -> str:
        if not text:
            return ""
        try:
            response = await self._client.chat_postMessage(channel=channel_id, text=text, thread_ts=thread_ts)
        except SlackClientError as exc:
            raise TransportError(f"failed to post message: {exc}") from exc
        return str(response.get("ts") or "")

    async def update_message(self, channel_id: str, ts: str, text: str) -> None:
        try:
            await self._client.chat_update(channel=channel_id, ts=ts, text=text)
        except SlackClientError as exc:
            raise TransportError(f"failed to update message: {exc}") from exc

    async def get_thread_history(self, channel_id: str, thread_ts: str) -> list[HistoryMessage]:
        raw_messages: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            try:
                response = await self._client.conversations_replies(
                    channel=channel_id,
                    ts=thread_ts,
                    limit=HISTORY_PAGE_SIZE,
                    inclusive=True,
                    cursor=cursor,
                )
            except SlackClientError as exc:
                raise TransportError(f"failed to fetch thread history: {exc}") from exc
            raw_messages.extend(response.get("messages") or [])
            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            if not response.get("has_more") or not cursor:
                break

        return [
            HistoryMessage(role="assistant" if message.get("bot_id") else "user", content=message.get("text", ""))
            for message in raw_messages
        ]

    async def bot_user_id(self) -> str:
        if self._bot_user_id is None:
            try:
                response = await self._client.auth_test()
            except SlackClientError as exc:
                raise TransportError(f"failed to get bot info: {exc}") from exc
            self._bot_user_id = str(response.get("user_id") or "")
        return self._bot_user_id


class SlackChannel(BaseChannel[dict[str, Any]]):
    """Turn Slack Events API callbacks into orchestrator turns."""

    name = "slack"

    DIRECT_CHANNEL_TYPES: ClassVar[set[str]] = {"im", "mpim"}
    IGNORED_SUBTYPES: ClassVar[set[str]] = {"bot_message", "message_changed"}

    def __init__(
        self,
        transport: SlackTransport,
        handler: TurnHandler,
        *,
        support_contact: str = "your Jira admin",
    ) -> None:
        super().__init__(transport, handler, support_contact=support_contact)
        self._slack = transport

    async def get_inbound(self, event: dict[str, Any]) -> InboundTurn | None:
        event_type = event.get("type")
        if event.get("bot_id"):
            return None
        if event_type == "app_mention":
            text = event.get("text", "")
        elif event_type == "message":
            if event.get("subtype") in self.IGNORED_SUBTYPES:
                return None
            text = await self._message_text(event)
            if text is None:
                return None
        else:
            logger.warning("slack.channel.unsupported_event type={}", event_type)
            return None

        logger.info(
            "slack.channel.inbound type={} channel={} user={} content={}",
            event_type,
            event.get("channel"),
            event.get("user"),
            text[:100],
        )
        return InboundTurn(
            channel=self.name,
            channel_id=event.get("channel", ""),
            user_id=event.get("user", ""),
            text=text,
            ts=event.get("ts", ""),
            thread_ts=event.get("thread_ts") or None,
        )

    async def _message_text(self, event: dict[str, Any]) -> str | None:
        """Text to handle for a plain message, or None when it is not for us."""
        text = event.get("text", "")
        if event.get("channel_type") in self.DIRECT_CHANNEL_TYPES:
            return text

        mention = f"<@{await self._slack.bot_user_id()}>"
        if mention not in text:
            return None
        return text.replace(mention, "").strip()
