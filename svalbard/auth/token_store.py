"""
In-memory token store.

Tokens are random, short-lived and bound at issuance to one share id and one
operation. A token is redeemed at most once: the first successful validity
check consumes it.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from svalbard.core.contracts import TokenStore
from svalbard.core.errors import ErrorKind, SvalbardError, TokenIssuanceError
from svalbard.core.operations import Operation

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL_SECONDS = 600
TOKEN_BYTES = 24


@dataclass
class TokenRecord:
    """Binding and lifecycle of an issued token."""
    share_id: str
    operation: Operation
    issued_at: float
    expires_at: float
    consumed: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class InMemoryTokenStore(TokenStore):
    """
    Token store keeping issued tokens in process memory.

    Security:
    - Tokens come from secrets.token_urlsafe (URL-safe alphabet, no ':')
    - Tokens expire after a fixed TTL
    - A token is valid for exactly one share id and one operation
    - A token can be redeemed once
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TOKEN_TTL_SECONDS,
        max_tokens: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize token store.

        Args:
            ttl_seconds: Validity window of a token
            max_tokens: Maximum number of live tokens (None: unbounded)
            clock: Time source, seconds since the epoch
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self.ttl_seconds = ttl_seconds
        self.max_tokens = max_tokens
        self._clock = clock
        self._tokens: Dict[str, TokenRecord] = {}
        self._lock = threading.Lock()

        logger.info(f"Initialized in-memory token store (ttl={ttl_seconds}s, max_tokens={max_tokens})")

    def issue_token(self, share_id: str, op: Operation) -> str:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)

            if self.max_tokens is not None and len(self._tokens) >= self.max_tokens:
                raise TokenIssuanceError(f"token capacity of {self.max_tokens} exhausted")

            token = secrets.token_urlsafe(TOKEN_BYTES)
            while token in self._tokens:
                token = secrets.token_urlsafe(TOKEN_BYTES)

            self._tokens[token] = TokenRecord(
                share_id=share_id,
                operation=op,
                issued_at=now,
                expires_at=now + self.ttl_seconds,
            )

        logger.debug(f"Issued {op.token_label} token for share {share_id[:16]}...")
        return token

    def check_valid_now(self, token: str, share_id: str, op: Operation) -> None:
        with self._lock:
            record = self._tokens.get(token)
            if record is None:
                raise SvalbardError(ErrorKind.TOKEN_NOT_FOUND)

            if record.is_expired(self._clock()):
                del self._tokens[token]
                raise SvalbardError(ErrorKind.TOKEN_EXPIRED)

            if record.consumed or record.share_id != share_id or record.operation != op:
                raise SvalbardError(ErrorKind.TOKEN_NOT_VALID)

            record.consumed = True

    def revoke(self, token: str) -> bool:
        """
        Invalidate a token before it expires.

        Returns:
            True if the token was known
        """
        with self._lock:
            return self._tokens.pop(token, None) is not None

    def live_token_count(self) -> int:
        """Number of tokens not yet expired (consumed tokens included)."""
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._tokens)

    # Internal methods

    def _purge_expired(self, now: float):
        expired = [t for t, record in self._tokens.items() if record.is_expired(now)]
        for t in expired:
            del self._tokens[t]
        if expired:
            logger.debug(f"Purged {len(expired)} expired tokens")
