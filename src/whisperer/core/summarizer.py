"""Condense long tool results before they reach the model context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from whisperer.core.prompt import SUMMARY_SYSTEM_PROMPT
from whisperer.core.types import SystemMessage, UserMessage

if TYPE_CHECKING:
    from whisperer.llm.client import ModelBackend

DEFAULT_THRESHOLD = 2000


@dataclass(frozen=True)
class SummaryResult:
    text: str
    summarized: bool
    error: Exception | None = None


class ResultSummarizer:
    """Ask the model for a plain-text digest of results above ``threshold`` characters."""

    def __init__(self, model: ModelBackend, *, threshold: int = DEFAULT_THRESHOLD) -> None:
        self._model = model
        self._threshold = threshold
        self._system_prompt = SUMMARY_SYSTEM_PROMPT.format(limit=threshold)

    async def summarize(self, text: str) -> SummaryResult:
        if len(text) <= self._threshold:
            return SummaryResult(text=text, summarized=False)

        logger.info("summarizer.start chars={}", len(text))
        try:
            digest = await self._model.chat([SystemMessage(self._system_prompt), UserMessage(text)])
        except Exception as exc:
            # Raw result is kept; the caller logs the error.
            return SummaryResult(text=text, summarized=False, error=exc)

        if not digest.strip():
            return SummaryResult(text=text, summarized=False, error=ValueError("empty summary"))
        logger.info("summarizer.done chars={} summary_chars={}", len(text), len(digest))
        return SummaryResult(text=digest, summarized=True)
