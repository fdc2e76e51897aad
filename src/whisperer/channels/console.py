"""Terminal channel used by the CLI."""

from __future__ import annotations

import itertools
import time

from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule

from whisperer.channels.base import BaseChannel, TurnHandler
from whisperer.channels.events import InboundTurn
from whisperer.core.types import HistoryMessage, TurnResult

CONSOLE_CHANNEL_ID = "console"


class ConsoleTransport:
    """Print thread messages to a rich console.

    Edits print only the text appended since the previous render, so progress
    narration reads as a running log.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._counter = itertools.count(1)
        self._rendered: dict[str, str] = {}

    @property
    def console(self) -> Console:
        return self._console

    async def post_message(self, channel_id: str, text: str, thread_ts: str | None = None) -> str:
        ts = f"{time.time():.6f}.{next(self._counter)}"
        self._rendered[ts] = text
        self._console.print(Markdown(text))
        return ts

    async def update_message(self, channel_id: str, ts: str, text: str) -> None:
        previous = self._rendered.get(ts, "")
        self._rendered[ts] = text
        added = text[len(previous) :] if text.startswith(previous) else text
        if added.strip():
            self._console.print(Markdown(added.strip()))

    async def get_thread_history(self, channel_id: str, thread_ts: str) -> list[HistoryMessage]:
        return []


class ConsoleChannel(BaseChannel[str]):
    """Run one prompt from the terminal as a fresh thread."""

    name = "console"

    def __init__(
        self,
        transport: ConsoleTransport,
        handler: TurnHandler,
        *,
        user_id: str = "",
        support_contact: str = "your Jira admin",
    ) -> None:
        super().__init__(transport, handler, support_contact=support_contact)
        self._console_transport = transport
        self._user_id = user_id

    async def get_inbound(self, event: str) -> InboundTurn | None:
        text = event.strip()
        if not text:
            return None
        return InboundTurn(
            channel=self.name,
            channel_id=CONSOLE_CHANNEL_ID,
            user_id=self._user_id,
            text=text,
            ts=f"{time.time():.6f}",
        )

    async def process_output(self, inbound: InboundTurn, result: TurnResult) -> None:
        if not result.ok or not result.text:
            return
        self._console_transport.console.print(Rule("answer"))
        await super().process_output(inbound, result)
