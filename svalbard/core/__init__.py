"""
Svalbard core: token message codec, error taxonomy and sanitization,
collaborator contracts and the share custody service.
"""

from .errors import (
    CustodyError,
    DeliveryError,
    ErrorKind,
    ResponseClass,
    SvalbardError,
    TokenIssuanceError,
)
from .operations import Operation
from .message import TokenMessage, encode_token_message, decode_token_message
from .sanitize import KNOWN_ERROR_KINDS, UNKNOWN_ERROR_MESSAGE, classify, to_public_message
from .contracts import Recipient, SecondaryChannel, ShareIdDeriver, ShareStore, TokenStore
from .share_id import HashShareIdDeriver
from .custody import ShareCustodyService

__all__ = [
    "CustodyError",
    "DeliveryError",
    "ErrorKind",
    "ResponseClass",
    "SvalbardError",
    "TokenIssuanceError",
    "Operation",
    "TokenMessage",
    "encode_token_message",
    "decode_token_message",
    "KNOWN_ERROR_KINDS",
    "UNKNOWN_ERROR_MESSAGE",
    "classify",
    "to_public_message",
    "Recipient",
    "SecondaryChannel",
    "ShareIdDeriver",
    "ShareStore",
    "TokenStore",
    "HashShareIdDeriver",
    "ShareCustodyService",
]
