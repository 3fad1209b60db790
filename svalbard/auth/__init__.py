"""
Svalbard token authorization.

Provides the reference token store: short-lived, single-use tokens scoped
to one share and one operation.
"""

from .token_store import (
    DEFAULT_TOKEN_TTL_SECONDS,
    InMemoryTokenStore,
    TokenRecord,
)

__all__ = [
    "DEFAULT_TOKEN_TTL_SECONDS",
    "InMemoryTokenStore",
    "TokenRecord",
]
