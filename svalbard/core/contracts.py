"""
Collaborator contracts for the custody service.

Share storage, token bookkeeping, identifier derivation and token delivery
are implemented outside the service; these are the only seams through which
it exchanges data with the rest of the system. Implementations report
failures that belong to the canonical taxonomy as SvalbardError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from .errors import ErrorKind, SvalbardError
from .message import TokenMessage
from .operations import Operation


@dataclass(frozen=True)
class Recipient:
    """Where a token message is delivered, e.g. ("email", "a@example.com")."""
    id_type: str
    id: str

    def __str__(self) -> str:
        return f"{self.id_type}:{self.id}"


class ShareStore(ABC):
    """Stores and retrieves shares identified by share ids."""

    @abstractmethod
    def store(self, share_id: str, share_value: str) -> None:
        """
        Store share_value under share_id.

        Raises SHARE_ALREADY_EXISTS if a share is present. The check and the
        write must be atomic with respect to concurrent stores of share_id.
        """

    @abstractmethod
    def retrieve(self, share_id: str) -> str:
        """Return the share stored under share_id; SHARE_NOT_FOUND if absent."""

    @abstractmethod
    def delete(self, share_id: str) -> None:
        """Remove the share stored under share_id; SHARE_NOT_FOUND if absent."""

    def exists(self, share_id: str) -> bool:
        """Check whether a share is stored under share_id."""
        try:
            self.retrieve(share_id)
        except SvalbardError as e:
            if e.kind == ErrorKind.SHARE_NOT_FOUND:
                return False
            raise
        return True


class TokenStore(ABC):
    """Issues short-lived access tokens and checks their validity."""

    @abstractmethod
    def issue_token(self, share_id: str, op: Operation) -> str:
        """Return a new token valid only for op on share_id."""

    @abstractmethod
    def check_valid_now(self, token: str, share_id: str, op: Operation) -> None:
        """
        Return normally if token is currently valid for op on share_id.

        Otherwise raise TOKEN_NOT_FOUND, TOKEN_EXPIRED or TOKEN_NOT_VALID.
        """


class SecondaryChannel(ABC):
    """
    One-way channel from server to share owner, used to deliver tokens.

    Errors raised by send must not contain sensitive information.
    """

    @abstractmethod
    def send(self, recipient: Recipient, msg: TokenMessage) -> None:
        """Deliver msg to recipient."""


class ShareIdDeriver(ABC):
    """Maps owner and secret attributes to a stable share id."""

    @abstractmethod
    def derive(self, owner_id_type: str, owner_id: str, secret_name: str) -> str:
        """
        Return the share id for the given attributes.

        Raises MISSING_OWNER_TYPE, MISSING_OWNER_ID, MISSING_SECRET_NAME or
        UNSUPPORTED_OWNER_ID_TYPE.
        """
