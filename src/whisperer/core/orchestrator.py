"""One chat turn: model rounds, gated tool calls and progress narration."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from whisperer.core.formatting import ToolMessageFormatter
from whisperer.core.permissions import PermissionGate
from whisperer.core.progress import MAX_MESSAGE_LENGTH, ProgressReporter
from whisperer.core.prompt import (
    ANALYZING_MESSAGE,
    DEFAULT_ERROR_MESSAGE,
    MAX_ROUNDS_ANSWER,
    MAX_ROUNDS_WARNING,
    PERMISSION_DENIED_MESSAGE,
    TURN_TIMEOUT_ERROR,
    render_system_prompt,
)
from whisperer.core.summarizer import DEFAULT_THRESHOLD, ResultSummarizer
from whisperer.core.types import (
    AssistantMessage,
    ConversationTurn,
    HistoryMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolDefinition,
    ToolInvocationMessage,
    ToolResultMessage,
    TurnOutcome,
    TurnResult,
    UserMessage,
)
from whisperer.core.window import DEFAULT_KEEP, trim_messages
from whisperer.errors import PermissionDenied, ToolInvocationError, WhispererError
from whisperer.logging_utils import bind_turn

if TYPE_CHECKING:
    from whisperer.channels.base import ChatTransport
    from whisperer.config import Settings
    from whisperer.llm.client import ModelBackend
    from whisperer.storage.token_store import TokenStore
    from whisperer.tools.gateway import ToolClient, ToolClientGateway


@dataclass(frozen=True)
class OrchestratorOptions:
    """Per-process knobs for the turn loop."""

    system_prompt: str
    max_rounds: int = 20
    context_window: int = DEFAULT_KEEP
    summarize_threshold: int = DEFAULT_THRESHOLD
    progress_message_limit: int = MAX_MESSAGE_LENGTH
    turn_timeout: float = 300.0
    tool_timeout: float = 120.0
    support_contact: str = "your Jira admin"

    @classmethod
    def from_settings(cls, settings: Settings) -> OrchestratorOptions:
        return cls(
            system_prompt=render_system_prompt(settings.jira_url, settings.system_prompt),
            max_rounds=settings.max_rounds,
            context_window=settings.context_window,
            summarize_threshold=settings.summarize_threshold,
            progress_message_limit=settings.progress_message_limit,
            turn_timeout=settings.turn_timeout_seconds,
            tool_timeout=settings.tool_timeout_seconds,
            support_contact=settings.support_contact,
        )


class ConversationOrchestrator:
    """Drive one inbound message to exactly one final answer.

    A turn prepares its window, then alternates model calls and tool calls
    until the model answers, the round budget runs out, or a turn-level error
    ends it. Tool failures are handed back to the model as tool results; a
    permission denial, a model failure, a tool client failure or the turn
    deadline end the turn with a notice in the thread.
    """

    def __init__(
        self,
        *,
        model: ModelBackend,
        gateway: ToolClientGateway,
        transport: ChatTransport,
        tokens: TokenStore,
        options: OrchestratorOptions,
        gate: PermissionGate | None = None,
        summarizer: ResultSummarizer | None = None,
        formatter: ToolMessageFormatter | None = None,
    ) -> None:
        self._model = model
        self._gateway = gateway
        self._transport = transport
        self._tokens = tokens
        self._options = options
        self._gate = gate or PermissionGate()
        self._summarizer = summarizer or ResultSummarizer(model, threshold=options.summarize_threshold)
        self._formatter = formatter or ToolMessageFormatter()

    async def handle_turn(
        self,
        text: str,
        history: Sequence[HistoryMessage],
        channel_id: str,
        thread_ts: str,
        user_id: str,
    ) -> TurnResult:
        turn = ConversationTurn(
            turn_id=uuid.uuid4().hex[:8],
            channel_id=channel_id,
            thread_ts=thread_ts,
            user_id=user_id,
            credential=None,
            messages=[],
            max_rounds=self._options.max_rounds,
        )
        reporter = ProgressReporter(
            self._transport,
            channel_id,
            thread_ts,
            max_length=self._options.progress_message_limit,
        )
        with bind_turn(turn.turn_id):
            logger.info(
                "turn.start channel={} thread={} user={} history={}",
                channel_id,
                thread_ts,
                user_id,
                len(history),
            )
            # Ephemeral clients are released here, outside the turn deadline.
            async with AsyncExitStack() as stack:
                try:
                    async with asyncio.timeout(self._options.turn_timeout):
                        result = await self._run(turn, text, history, reporter, stack)
                except (WhispererError, TimeoutError) as exc:
                    result = await self._fail(turn, reporter, exc)
                except Exception as exc:
                    logger.exception("turn.unexpected_error round={}", turn.round)
                    result = await self._fail(turn, reporter, exc)
            logger.info("turn.done outcome={} rounds={}", result.outcome, result.rounds)
            return result

    async def _run(
        self,
        turn: ConversationTurn,
        text: str,
        history: Sequence[HistoryMessage],
        reporter: ProgressReporter,
        stack: AsyncExitStack,
    ) -> TurnResult:
        await reporter.start(ANALYZING_MESSAGE)
        tools = await self._list_tools()
        turn.credential = await self._tokens.get_token(turn.user_id)
        turn.messages = self._initial_messages(text, history)
        logger.info("turn.prepared tools={} personal_token={}", len(tools), bool(turn.credential))

        client: ToolClient | None = None
        while not turn.exhausted:
            turn.messages = trim_messages(turn.messages, self._options.context_window)
            response = await self._model.chat_with_tools(turn.messages, tools)
            turn.last_content = response.content
            if response.is_complete:
                return TurnResult(text=response.content, outcome=TurnOutcome.COMPLETE, rounds=turn.round)

            if response.content:
                await reporter.report(response.content)

            for call in response.tool_calls:
                self._gate.enforce(call.name, turn.credential)
                if client is None:
                    client = await stack.enter_async_context(self._gateway.acquire(turn.credential))
                await self._invoke(turn, client, call, reporter)

            turn.round += 1

        logger.warning("turn.max_rounds rounds={}", turn.round)
        await reporter.report(MAX_ROUNDS_WARNING)
        return TurnResult(
            text=MAX_ROUNDS_ANSWER.format(last=turn.last_content),
            outcome=TurnOutcome.MAX_ROUNDS,
            rounds=turn.round,
        )

    async def _list_tools(self) -> list[ToolDefinition]:
        client = await self._gateway.default_client()
        return [tool.normalized() for tool in await client.list_tools()]

    def _initial_messages(self, text: str, history: Sequence[HistoryMessage]) -> list[Message]:
        messages: list[Message] = [SystemMessage(self._options.system_prompt)]
        for item in history:
            if item.role == "assistant":
                messages.append(AssistantMessage(item.content))
            else:
                messages.append(UserMessage(item.content))
        messages.append(UserMessage(text))
        return messages

    async def _invoke(
        self,
        turn: ConversationTurn,
        client: ToolClient,
        call: ToolCall,
        reporter: ProgressReporter,
    ) -> None:
        turn.messages.append(ToolInvocationMessage(tool_calls=(call,)))
        await reporter.report(self._formatter.calling_line(call.name, call.arguments))
        logger.info("tool.call name={} args={} round={}", call.name, call.arguments, turn.round)

        try:
            raw = await asyncio.wait_for(client.call_tool(call.name, call.arguments), self._options.tool_timeout)
        except (ToolInvocationError, TimeoutError) as exc:
            error = str(exc) or f"{call.name} timed out after {self._options.tool_timeout}s"
            logger.error("tool.call.error name={} args={} round={} error={}", call.name, call.arguments, turn.round, error)
            call.response = error
            turn.messages.append(ToolResultMessage(tool_call_id=call.id, content=error))
            await reporter.report(self._formatter.result_block(call.name, call.arguments, error, failed=True))
            return

        summary = await self._summarizer.summarize(raw)
        if summary.error is not None:
            logger.error("summary.error name={} chars={} error={}", call.name, len(raw), summary.error)
        call.response = summary.text
        turn.messages.append(ToolResultMessage(tool_call_id=call.id, content=summary.text))
        await reporter.report(self._formatter.result_block(call.name, call.arguments, summary.text))

    async def _fail(self, turn: ConversationTurn, reporter: ProgressReporter, exc: BaseException) -> TurnResult:
        if isinstance(exc, PermissionDenied):
            error = str(exc)
            notice = PERMISSION_DENIED_MESSAGE.format(tool=exc.tool_name)
            logger.warning("turn.permission_denied tool={} round={}", exc.tool_name, turn.round)
        else:
            if isinstance(exc, TimeoutError):
                error = TURN_TIMEOUT_ERROR.format(timeout=self._options.turn_timeout)
            else:
                error = str(exc) or type(exc).__name__
            notice = DEFAULT_ERROR_MESSAGE.format(contact=self._options.support_contact, error=error)
            logger.error("turn.failed round={} error_type={} error={}", turn.round, type(exc).__name__, error)
        await reporter.notify(notice)
        return TurnResult(text=notice, outcome=TurnOutcome.FAILED, rounds=turn.round, error=error)
