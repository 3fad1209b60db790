"""
Svalbard - Secret Share Custody

Token-gated storage, retrieval and deletion of secret shares. Every
operation on a share must be authorized by a short-lived token that is
delivered to the share owner over a secondary channel (SMS, e-mail, ...).

Quick Start:
    >>> from svalbard import ShareCustodyService, InMemoryTokenStore
    >>> from svalbard.backends import MemoryShareStore
    >>> from svalbard.channels import OutboxChannel
    >>>
    >>> outbox = OutboxChannel()
    >>> custody = ShareCustodyService(MemoryShareStore(), InMemoryTokenStore(), outbox)
    >>>
    >>> # Ask for a storage token; it arrives as "SVBD:r1:<token>"
    >>> custody.request_storage_token("r1", "email", "a@example.com", "wallet")
    >>>
    >>> message = outbox.last_message(Recipient("email", "a@example.com"))
    >>> token = decode_token_message(message).token
    >>>
    >>> # Redeem it
    >>> custody.store_share(token, "email", "a@example.com", "wallet", "share-1")
"""

from svalbard.core import (
    CustodyError,
    ErrorKind,
    Operation,
    Recipient,
    ResponseClass,
    ShareCustodyService,
    SvalbardError,
    TokenMessage,
    decode_token_message,
    encode_token_message,
)
from svalbard.auth import InMemoryTokenStore

__version__ = "1.0.0"

__all__ = [
    "CustodyError",
    "ErrorKind",
    "Operation",
    "Recipient",
    "ResponseClass",
    "ShareCustodyService",
    "SvalbardError",
    "TokenMessage",
    "decode_token_message",
    "encode_token_message",
    "InMemoryTokenStore",
]
