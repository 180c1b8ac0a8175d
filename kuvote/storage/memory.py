"""In-process chain store. Keeps only the most recent document."""

from __future__ import annotations

from kuvote.exceptions import PersistenceError


class MemoryChainStore:
    """Chain store backed by process memory.

    ``fail_on_load`` / ``fail_on_save`` simulate an unavailable medium.
    """

    def __init__(self, document: str | None = None, difficulty: int | None = None):
        self.document = document
        self.difficulty = difficulty
        self.saves = 0
        self.fail_on_load = False
        self.fail_on_save = False

    async def load(self) -> str | None:
        if self.fail_on_load:
            raise PersistenceError("Chain store unavailable")
        return self.document

    async def load_difficulty(self) -> int | None:
        if self.fail_on_load:
            raise PersistenceError("Chain store unavailable")
        return self.difficulty

    async def save(self, document: str, difficulty: int | None = None) -> None:
        if self.fail_on_save:
            raise PersistenceError("Chain store unavailable")
        self.document = document
        if difficulty is not None:
            self.difficulty = difficulty
        self.saves += 1

    async def close(self) -> None:
        pass
