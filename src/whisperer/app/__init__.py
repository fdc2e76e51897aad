"""Application wiring."""

from .runtime import AppRuntime

__all__ = ["AppRuntime"]
