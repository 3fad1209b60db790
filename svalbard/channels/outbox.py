"""
Secondary channels that record or log token messages instead of sending them
over a real transport. Used in development and tests; production deployments
plug in an SMS, e-mail or push implementation of SecondaryChannel.
"""

import logging
import threading
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote

from svalbard.core.contracts import Recipient, SecondaryChannel
from svalbard.core.errors import DeliveryError
from svalbard.core.message import TokenMessage, encode_token_message

logger = logging.getLogger(__name__)


class LoggingChannel(SecondaryChannel):
    """Writes token messages to the server log. Development only."""

    def send(self, recipient: Recipient, msg: TokenMessage) -> None:
        message = encode_token_message(msg)
        logger.warning(f"📨 Token message for [{recipient}]: {message}")


class OutboxChannel(SecondaryChannel):
    """Keeps delivered token messages in memory, grouped by recipient."""

    def __init__(self):
        self._outbox: Dict[Recipient, List[str]] = defaultdict(list)
        self._lock = threading.Lock()

    def send(self, recipient: Recipient, msg: TokenMessage) -> None:
        message = encode_token_message(msg)
        with self._lock:
            self._outbox[recipient].append(message)
        logger.debug(f"Queued token message for [{recipient}]")

    def messages_for(self, recipient: Recipient) -> List[str]:
        """All messages delivered to recipient, oldest first."""
        with self._lock:
            return list(self._outbox.get(recipient, []))

    def last_message(self, recipient: Recipient) -> Optional[str]:
        """Most recent message delivered to recipient."""
        with self._lock:
            messages = self._outbox.get(recipient)
            return messages[-1] if messages else None

    def clear(self):
        with self._lock:
            self._outbox.clear()


class FileOutboxChannel(SecondaryChannel):
    """
    Appends token messages to one file per recipient.

    Directory structure:
    outbox_dir/
        email/
            a@example.com.txt
        sms/
            +5011234567.txt
    """

    def __init__(self, outbox_dir: Path):
        """
        Initialize file outbox.

        Args:
            outbox_dir: Base directory for recipient outboxes
        """
        self.outbox_dir = Path(outbox_dir)
        self.outbox_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        logger.info(f"Initialized file outbox at {self.outbox_dir}")

    def send(self, recipient: Recipient, msg: TokenMessage) -> None:
        message = encode_token_message(msg)
        file_path = self.outbox_path(recipient)

        try:
            with self._lock:
                file_path.parent.mkdir(parents=True, exist_ok=True)
                with open(file_path, "a", encoding="utf-8") as f:
                    f.write(message + "\n")
        except OSError as e:
            logger.error(f"Failed to write outbox for [{recipient.id_type}]: {e.strerror}")
            raise DeliveryError("could not deliver message to recipient") from None

    def read_messages(self, recipient: Recipient) -> List[str]:
        """Messages delivered to recipient, oldest first."""
        file_path = self.outbox_path(recipient)
        if not file_path.exists():
            return []
        return file_path.read_text(encoding="utf-8").splitlines()

    def outbox_path(self, recipient: Recipient) -> Path:
        """Get outbox file path for a recipient."""
        return self.outbox_dir / _safe_name(recipient.id_type) / f"{_safe_name(recipient.id)}.txt"


def _safe_name(value: str) -> str:
    """
    Filesystem-safe rendering of a recipient field.

    Percent-encoding keeps distinct fields on distinct file names. A leading
    dot is encoded too, and the empty field maps to a lone "%", which no
    encoded value can produce.
    """
    encoded = quote(value, safe="@+", errors="surrogatepass")
    if encoded.startswith("."):
        encoded = "%2E" + encoded[1:]
    return encoded or "%"
