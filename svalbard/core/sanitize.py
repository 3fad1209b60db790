"""
Error sanitization.

Only errors whose kind is on the allow-list below are described to clients;
everything else collapses to a constant message and its detail stays in the
server log.
"""

from typing import Optional

from .errors import ErrorKind, ResponseClass, SvalbardError

UNKNOWN_ERROR_MESSAGE = "unknown error"

# Kinds known not to contain any sensitive information.
KNOWN_ERROR_KINDS = frozenset({
    ErrorKind.MISSING_OWNER_TYPE,
    ErrorKind.MISSING_OWNER_ID,
    ErrorKind.MISSING_SECRET_NAME,
    ErrorKind.UNSUPPORTED_OWNER_ID_TYPE,
    ErrorKind.MISSING_TOKEN,
    ErrorKind.MISSING_SHARE_VALUE,
    ErrorKind.MISSING_REQUEST_ID,
    ErrorKind.SHARE_ALREADY_EXISTS,
    ErrorKind.SHARE_NOT_FOUND,
    ErrorKind.TOKEN_NOT_FOUND,
    ErrorKind.TOKEN_EXPIRED,
    ErrorKind.TOKEN_NOT_VALID,
    ErrorKind.INVALID_MESSAGE_PARAMETERS,
    ErrorKind.INVALID_MESSAGE,
    ErrorKind.INVALID_SHARE_ID,
    ErrorKind.INVALID_SHARE_VALUE,
})

_FORBIDDEN_KINDS = frozenset({
    ErrorKind.TOKEN_NOT_FOUND,
    ErrorKind.TOKEN_EXPIRED,
    ErrorKind.TOKEN_NOT_VALID,
    ErrorKind.SHARE_ALREADY_EXISTS,
})


def error_kind(err: BaseException) -> Optional[ErrorKind]:
    """
    Find the ErrorKind of an error.

    Follows explicit chaining (``raise ... from err``) so that a wrapped
    canonical error keeps its kind.
    """
    seen = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, SvalbardError):
            return current.kind
        current = current.__cause__
    return None


def to_public_message(err: BaseException) -> str:
    """Return a message describing err that carries no sensitive information."""
    kind = error_kind(err)
    if kind is not None and kind in KNOWN_ERROR_KINDS:
        return kind.value
    return UNKNOWN_ERROR_MESSAGE


def classify(err: BaseException) -> ResponseClass:
    """Map an error to the response class reported to the client."""
    kind = error_kind(err)
    if kind is None or kind not in KNOWN_ERROR_KINDS:
        return ResponseClass.INTERNAL
    if kind == ErrorKind.SHARE_NOT_FOUND:
        return ResponseClass.NOT_FOUND
    if kind in _FORBIDDEN_KINDS:
        return ResponseClass.FORBIDDEN
    return ResponseClass.BAD_REQUEST
