"""
Share stores for Svalbard.

Supports in-memory and local filesystem storage.
"""

from .local import LocalShareStore
from .memory import MemoryShareStore

__all__ = ["LocalShareStore", "MemoryShareStore"]
