"""Model backend."""

from .client import ModelBackend, ModelClient, build_model_client

__all__ = ["ModelBackend", "ModelClient", "build_model_client"]
