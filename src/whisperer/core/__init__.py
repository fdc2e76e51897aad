"""Turn orchestration core."""

from .orchestrator import ConversationOrchestrator, OrchestratorOptions
from .types import TurnOutcome, TurnResult

__all__ = ["ConversationOrchestrator", "OrchestratorOptions", "TurnOutcome", "TurnResult"]
