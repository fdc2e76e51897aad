"""Chat surface adapters."""

from .base import BaseChannel, ChatTransport, TurnHandler
from .events import InboundTurn

__all__ = ["BaseChannel", "ChatTransport", "InboundTurn", "TurnHandler"]
