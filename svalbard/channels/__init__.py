"""
Secondary channels for delivering access tokens to share owners.
"""

from .outbox import FileOutboxChannel, LoggingChannel, OutboxChannel

__all__ = ["FileOutboxChannel", "LoggingChannel", "OutboxChannel"]
