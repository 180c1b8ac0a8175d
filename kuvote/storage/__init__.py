"""
KUVote — Chain Store Abstraction.

The ledger's persistence collaborator. The service never knows which
backend is active; it only loads and saves whole chain documents.

Usage:
    KUVOTE_STORAGE=sqlite  → SQLite file (default)
    KUVOTE_STORAGE=memory  → process memory only (tests, degraded runs)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol, runtime_checkable

from .memory import MemoryChainStore
from .sqlite import SqliteChainStore

logger = logging.getLogger("kuvote.storage")


class StorageMode(str, Enum):
    SQLITE = "sqlite"
    MEMORY = "memory"


@runtime_checkable
class ChainStore(Protocol):
    """Protocol for all chain stores.

    Implementations raise ``PersistenceError`` for every failure of the
    underlying medium.
    """

    async def load(self) -> str | None:
        """Return the last saved chain document, or None if none exists."""
        ...

    async def load_difficulty(self) -> int | None:
        """Return the difficulty the stored chain is pinned to, or None."""
        ...

    async def save(self, document: str, difficulty: int | None = None) -> None:
        """Replace the stored chain document wholesale.

        A given ``difficulty`` is pinned alongside the document; None
        keeps whatever was pinned before.
        """
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...


def get_storage_mode(raw: str) -> StorageMode:
    try:
        return StorageMode(raw.lower())
    except ValueError:
        logger.warning("Unknown KUVOTE_STORAGE='%s', falling back to sqlite", raw)
        return StorageMode.SQLITE


def create_store(mode: str, db_path: str, name: str = "main") -> ChainStore:
    """Build the chain store selected by configuration."""
    if get_storage_mode(mode) == StorageMode.MEMORY:
        return MemoryChainStore()
    return SqliteChainStore(db_path, name=name)


__all__ = [
    "ChainStore",
    "MemoryChainStore",
    "SqliteChainStore",
    "StorageMode",
    "create_store",
    "get_storage_mode",
]
