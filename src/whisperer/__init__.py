"""Whisperer - manage Jira from a chat thread."""

from .core import ConversationOrchestrator, TurnOutcome, TurnResult

__version__ = "0.1.0"

__all__ = ["ConversationOrchestrator", "TurnOutcome", "TurnResult"]
