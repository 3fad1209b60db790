"""
Token message codec.

A token travels to its owner over the secondary channel as a single line:

    SVBD:<request_id>:<token>

The request id lets the client correlate the message with the token request
it made; the prefix is matched case-insensitively on decode.
"""

from dataclasses import dataclass

from .errors import ErrorKind, SvalbardError

MESSAGE_TAG = "SVBD"
DELIMITER = ":"
MESSAGE_PREFIX = MESSAGE_TAG + DELIMITER


@dataclass(frozen=True)
class TokenMessage:
    """Request correlator plus the token delivered for it."""
    request_id: str
    token: str


def _is_valid_field(value: str) -> bool:
    return bool(value) and DELIMITER not in value


def encode_token_message(msg: TokenMessage) -> str:
    """
    Encode a token message for the secondary channel.

    Args:
        msg: Message to encode

    Returns:
        Wire form ``SVBD:<request_id>:<token>``

    Raises:
        SvalbardError: INVALID_MESSAGE_PARAMETERS if a field is empty or
            contains the delimiter
    """
    if not _is_valid_field(msg.request_id) or not _is_valid_field(msg.token):
        raise SvalbardError(ErrorKind.INVALID_MESSAGE_PARAMETERS)
    return MESSAGE_PREFIX + msg.request_id + DELIMITER + msg.token


def decode_token_message(raw: str) -> TokenMessage:
    """
    Parse a message produced by encode_token_message.

    Args:
        raw: Received message

    Returns:
        The request id and token carried by the message

    Raises:
        SvalbardError: INVALID_MESSAGE if the message is malformed
    """
    if len(raw) < len(MESSAGE_PREFIX) or raw[:len(MESSAGE_PREFIX)].upper() != MESSAGE_PREFIX:
        raise SvalbardError(ErrorKind.INVALID_MESSAGE)

    parts = raw[len(MESSAGE_PREFIX):].split(DELIMITER)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise SvalbardError(ErrorKind.INVALID_MESSAGE)

    return TokenMessage(request_id=parts[0], token=parts[1])
