"""
Canonical error taxonomy for the Svalbard share custody server.

Every failure that may reach a client is tagged with an ErrorKind. The kind,
not the exception object, decides whether the message may be disclosed and
which response class it maps to.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Known, content-free error kinds. The value is the public message."""
    MISSING_OWNER_TYPE = "missing owner id type"
    MISSING_OWNER_ID = "missing owner id"
    MISSING_SECRET_NAME = "missing secret name"
    UNSUPPORTED_OWNER_ID_TYPE = "unsupported owner id type"
    MISSING_TOKEN = "missing token"
    MISSING_SHARE_VALUE = "missing share_value"
    MISSING_REQUEST_ID = "missing request_id"
    SHARE_ALREADY_EXISTS = "share already exists"
    SHARE_NOT_FOUND = "share not found"
    TOKEN_NOT_FOUND = "token not found"
    TOKEN_EXPIRED = "token expired"
    TOKEN_NOT_VALID = "token not valid"
    INVALID_MESSAGE_PARAMETERS = "invalid parameters for message with token"
    INVALID_MESSAGE = "invalid message with token"
    INVALID_SHARE_ID = "invalid share id"
    INVALID_SHARE_VALUE = "invalid share value"


class ResponseClass(Enum):
    """Severity class of a failed request, valued by HTTP status."""
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    INTERNAL = 500


class SvalbardError(Exception):
    """
    Error carrying a known ErrorKind.

    Collaborators (share stores, token stores, identifier derivers) raise this
    for every failure that belongs to the canonical taxonomy.
    """

    def __init__(self, kind: ErrorKind):
        super().__init__(kind.value)
        self.kind = kind

    def __repr__(self) -> str:
        return f"SvalbardError({self.kind.name})"


class DeliveryError(Exception):
    """Secondary channel failure. Its text must never carry a token or a share."""


class TokenIssuanceError(Exception):
    """Token store could not issue a token (e.g. capacity exhausted)."""


class CustodyError(Exception):
    """
    Failure leaving the custody service.

    The message has already been sanitized and is safe to return to a client.
    """

    def __init__(
        self,
        response_class: ResponseClass,
        message: str,
        kind: Optional[ErrorKind] = None,
    ):
        super().__init__(message)
        self.response_class = response_class
        self.message = message
        self.kind = kind

    @property
    def status_code(self) -> int:
        return self.response_class.value
