"""Progressive narration of a turn into one chat message."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from whisperer.errors import TransportError

if TYPE_CHECKING:
    from whisperer.channels.base import ChatTransport

MAX_MESSAGE_LENGTH = 40_000
LINE_SEPARATOR = "\n\n"


class ProgressReporter:
    """Edit one thread message in place, moving to a fresh message at the size ceiling."""

    def __init__(
        self,
        transport: ChatTransport,
        channel_id: str,
        thread_ts: str,
        *,
        max_length: int = MAX_MESSAGE_LENGTH,
    ) -> None:
        self._transport = transport
        self._channel_id = channel_id
        self._thread_ts = thread_ts
        self._max_length = max_length
        self._lines: list[str] = []
        self._message_ts: str | None = None

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    @property
    def message_ts(self) -> str | None:
        return self._message_ts

    async def start(self, text: str) -> str | None:
        self._lines = [text]
        self._message_ts = await self._post(text)
        return self._message_ts

    async def report(self, line: str) -> str | None:
        combined = LINE_SEPARATOR.join([*self._lines, line])
        if self._message_ts is None or len(combined) > self._max_length:
            self._lines = [line]
            self._message_ts = await self._post(line)
            return self._message_ts

        self._lines.append(line)
        try:
            await self._transport.update_message(self._channel_id, self._message_ts, combined)
        except TransportError as exc:
            logger.error("progress.update.error channel={} ts={} error={}", self._channel_id, self._message_ts, exc)
        return self._message_ts

    async def notify(self, text: str) -> None:
        """Post a standalone notice into the thread, outside the narration buffer."""
        await self._post(text)

    async def _post(self, text: str) -> str | None:
        try:
            return await self._transport.post_message(self._channel_id, text, self._thread_ts)
        except TransportError as exc:
            logger.error("progress.post.error channel={} thread={} error={}", self._channel_id, self._thread_ts, exc)
            return None
