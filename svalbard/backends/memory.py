"""In-memory share store."""

import logging
import threading
from typing import Dict

from svalbard.core.contracts import ShareStore
from svalbard.core.errors import ErrorKind, SvalbardError

logger = logging.getLogger(__name__)


class MemoryShareStore(ShareStore):
    """Share store backed by a dict. Shares are lost on restart."""

    def __init__(self):
        self._shares: Dict[str, str] = {}
        self._lock = threading.Lock()

    def store(self, share_id: str, share_value: str) -> None:
        with self._lock:
            if share_id in self._shares:
                raise SvalbardError(ErrorKind.SHARE_ALREADY_EXISTS)
            self._shares[share_id] = share_value
        logger.debug(f"Stored share {share_id[:16]}...")

    def retrieve(self, share_id: str) -> str:
        with self._lock:
            try:
                return self._shares[share_id]
            except KeyError:
                raise SvalbardError(ErrorKind.SHARE_NOT_FOUND) from None

    def delete(self, share_id: str) -> None:
        with self._lock:
            if self._shares.pop(share_id, None) is None:
                raise SvalbardError(ErrorKind.SHARE_NOT_FOUND)
        logger.debug(f"Deleted share {share_id[:16]}...")

    def exists(self, share_id: str) -> bool:
        with self._lock:
            return share_id in self._shares

    def __len__(self) -> int:
        with self._lock:
            return len(self._shares)
