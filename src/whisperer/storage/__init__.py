"""Personal credential storage."""

from .token_store import FileTokenStore, TokenStore, validate_token

__all__ = ["FileTokenStore", "TokenStore", "validate_token"]
