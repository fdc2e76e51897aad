"""OpenAI-compatible chat completion client with tool calling."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, Protocol

import openai
from loguru import logger
from openai import AsyncAzureOpenAI, AsyncOpenAI

from whisperer.config import Settings
from whisperer.core.types import (
    AssistantMessage,
    ChatResponse,
    Message,
    SystemMessage,
    ToolCall,
    ToolDefinition,
    ToolInvocationMessage,
    ToolResultMessage,
    UserMessage,
)
from whisperer.errors import ModelError


class ModelBackend(Protocol):
    async def chat_with_tools(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> ChatResponse: ...

    async def chat(self, messages: Sequence[Message]) -> str: ...


def to_openai_message(message: Message) -> dict[str, Any]:
    if isinstance(message, SystemMessage | UserMessage | AssistantMessage):
        return {"role": message.role, "content": message.content}
    if isinstance(message, ToolInvocationMessage):
        return {
            "role": "assistant",
            "content": message.content,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False, indent=2),
                    },
                }
                for call in message.tool_calls
            ],
        }
    if isinstance(message, ToolResultMessage):
        return {"role": "tool", "tool_call_id": message.tool_call_id, "content": message.content}
    raise TypeError(f"unsupported message type: {type(message).__name__}")


def to_openai_tool(tool: ToolDefinition) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


def _parse_tool_calls(raw_calls: Sequence[Any] | None) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for raw in raw_calls or ():
        function = getattr(raw, "function", None)
        if getattr(raw, "type", "function") != "function" or function is None:
            logger.error("model.tool_call.unknown call={!r}", raw)
            continue
        try:
            arguments = json.loads(function.arguments or "{}")
        except json.JSONDecodeError as exc:
            raise ModelError(f"failed to parse tool arguments for {function.name}: {exc}") from exc
        if not isinstance(arguments, dict):
            raise ModelError(f"tool arguments for {function.name} must be a JSON object")
        calls.append(ToolCall(id=raw.id, name=function.name, arguments=arguments))
    return calls


class ModelClient:
    """Thin adapter over the OpenAI SDK returning Whisperer types."""

    def __init__(self, client: AsyncOpenAI, model: str, *, max_tokens: int | None = None) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    @property
    def model(self) -> str:
        return self._model

    async def _complete(self, messages: Sequence[Message], tools: Sequence[ToolDefinition] | None = None) -> Any:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [to_openai_message(message) for message in messages],
            "n": 1,
        }
        if tools:
            kwargs["tools"] = [to_openai_tool(tool) for tool in tools]
        if self._max_tokens:
            kwargs["max_tokens"] = self._max_tokens

        logger.debug("model.request model={} messages={} tools={}", self._model, len(messages), len(tools or ()))
        try:
            return await self._client.chat.completions.create(**kwargs)
        except openai.OpenAIError as exc:
            raise ModelError(f"failed to get chat completion: {exc}") from exc

    async def chat_with_tools(self, messages: Sequence[Message], tools: Sequence[ToolDefinition]) -> ChatResponse:
        response = await self._complete(messages, tools)
        if not response.choices:
            raise ModelError("no choices returned from chat completion")

        message = response.choices[0].message
        tool_calls = _parse_tool_calls(message.tool_calls)
        logger.debug("model.response content_chars={} tool_calls={}", len(message.content or ""), len(tool_calls))
        return ChatResponse(content=message.content or "", tool_calls=tool_calls, is_complete=not tool_calls)

    async def chat(self, messages: Sequence[Message]) -> str:
        response = await self._complete(messages)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def build_model_client(settings: Settings) -> ModelClient:
    """Build the model client for the configured provider."""

    api_key = settings.require_api_key()
    client: AsyncOpenAI
    if settings.llm_provider == "azure":
        client = AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=settings.api_base or "",
            api_version=settings.azure_api_version,
            timeout=settings.model_timeout_seconds,
        )
    else:
        client = AsyncOpenAI(api_key=api_key, base_url=settings.api_base, timeout=settings.model_timeout_seconds)
    return ModelClient(client, settings.model, max_tokens=settings.max_tokens)
