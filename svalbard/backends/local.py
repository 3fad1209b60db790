"""
Local filesystem share store.

Stores each share in its own file with an efficient directory structure.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from svalbard.core.contracts import ShareStore
from svalbard.core.errors import ErrorKind, SvalbardError

logger = logging.getLogger(__name__)

SHARE_SUFFIX = ".share"
TEMP_SUFFIX = ".tmp"
STORE_ATTEMPTS = 3


class LocalShareStore(ShareStore):
    """
    Local filesystem share store.

    Directory structure:
    storage_dir/
        AB/
            ABCDEF...123.share
        CD/
            CDEF...456.share

    Uses first 2 characters of the share ID as directory prefix
    to avoid having too many files in a single directory.

    A share is written to a temporary file in its prefix directory and then
    hard-linked into place. The link fails if the share already exists, so the
    existence check and the publish are one atomic filesystem operation even
    across processes, and a failed write never leaves a partial share behind.
    """

    def __init__(self, storage_dir: Path):
        """
        Initialize local share store.

        Args:
            storage_dir: Base directory for storage
        """
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initialized local share store at {self.storage_dir}")

    def store(self, share_id: str, share_value: str) -> None:
        """
        Store a share to the local filesystem.

        Args:
            share_id: Share ID
            share_value: Share value

        Raises:
            SvalbardError: SHARE_ALREADY_EXISTS, INVALID_SHARE_ID or INVALID_SHARE_VALUE
        """
        if not isinstance(share_value, str):
            raise SvalbardError(ErrorKind.INVALID_SHARE_VALUE)

        file_path = self._get_file_path(share_id)

        for attempt in range(STORE_ATTEMPTS):
            file_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._publish(file_path, share_value)
                break
            except FileNotFoundError:
                # Prefix directory removed by a concurrent delete
                if attempt == STORE_ATTEMPTS - 1:
                    raise
                logger.debug(f"Prefix directory {file_path.parent} vanished, retrying")

        logger.debug(f"Stored {share_id[:16]}... to {file_path}")

    def retrieve(self, share_id: str) -> str:
        """
        Retrieve a share from the local filesystem.

        Args:
            share_id: Share ID

        Returns:
            Share value

        Raises:
            SvalbardError: SHARE_NOT_FOUND or INVALID_SHARE_ID
        """
        file_path = self._get_file_path(share_id)

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                share_value = f.read()
        except FileNotFoundError:
            raise SvalbardError(ErrorKind.SHARE_NOT_FOUND) from None

        logger.debug(f"Retrieved {share_id[:16]}... from {file_path}")

        return share_value

    def delete(self, share_id: str) -> None:
        """
        Delete a share from the local filesystem.

        Args:
            share_id: Share ID

        Raises:
            SvalbardError: SHARE_NOT_FOUND or INVALID_SHARE_ID
        """
        file_path = self._get_file_path(share_id)

        try:
            file_path.unlink()
        except FileNotFoundError:
            raise SvalbardError(ErrorKind.SHARE_NOT_FOUND) from None

        logger.debug(f"Deleted {share_id[:16]}... from {file_path}")

        # Clean up empty prefix directory
        self._cleanup_empty_dir(file_path.parent)

    def exists(self, share_id: str) -> bool:
        return self._get_file_path(share_id).exists()

    def list_all(self) -> List[str]:
        """
        List all share IDs.

        Returns:
            List of share ID strings
        """
        share_ids = []

        for prefix_dir in self.storage_dir.iterdir():
            if not prefix_dir.is_dir():
                continue

            for file_path in prefix_dir.glob(f"*{SHARE_SUFFIX}"):
                share_ids.append(file_path.stem)

        return share_ids

    # Internal methods

    def _get_file_path(self, share_id: str) -> Path:
        """Get file path for share ID."""
        if (
            not share_id
            or share_id.startswith(".")
            or "/" in share_id
            or "\\" in share_id
            or "\x00" in share_id
        ):
            raise SvalbardError(ErrorKind.INVALID_SHARE_ID)
        prefix_dir = self.storage_dir / share_id[:2]
        return prefix_dir / f"{share_id}{SHARE_SUFFIX}"

    def _publish(self, file_path: Path, share_value: str):
        """Write share_value to a temp file and link it to file_path."""
        fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=".", suffix=TEMP_SUFFIX)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(share_value)
            try:
                os.link(tmp_path, file_path)
            except FileExistsError:
                raise SvalbardError(ErrorKind.SHARE_ALREADY_EXISTS) from None
        finally:
            tmp_path.unlink(missing_ok=True)

    def _cleanup_empty_dir(self, directory: Path):
        """Remove a prefix directory once its last share is gone."""
        try:
            if directory != self.storage_dir and not any(directory.iterdir()):
                directory.rmdir()
                logger.debug(f"Cleaned up empty directory {directory}")
        except OSError as e:
            # A concurrent store may have repopulated it
            logger.debug(f"Kept directory {directory}: {e}")
