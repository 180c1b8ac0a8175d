"""
KUVote — Block and Proof-of-Work Miner.

A block records one vote event plus its position in the chain. Its hash
is always derived from (index, previous_hash, timestamp, data, nonce);
mining searches for a nonce whose hash starts with ``difficulty`` zero
hex characters.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from kuvote.canonical import compute_block_hash
from kuvote.exceptions import CodecError, MiningCancelled

logger = logging.getLogger("kuvote.chain.block")

GENESIS_PREVIOUS_HASH = "0"
DEFAULT_CHECK_INTERVAL = 1024


def expected_hashes(difficulty: int) -> int:
    """Expected number of hash evaluations to seal one block."""
    return 16 ** difficulty


@dataclass
class Block:
    index: int
    timestamp: int
    data: Any
    previous_hash: str
    nonce: int = 0
    hash: str | None = None

    def __post_init__(self) -> None:
        # Only fresh blocks are hashed; a restored hash is kept verbatim, even if empty.
        if self.hash is None:
            self.hash = self.compute_hash()

    def compute_hash(self) -> str:
        """Deterministic SHA-256 digest over the five hashed fields."""
        return compute_block_hash(
            self.index, self.previous_hash, self.timestamp, self.data, self.nonce
        )

    def meets_difficulty(self, difficulty: int) -> bool:
        return self.hash.startswith("0" * difficulty)

    def mine(
        self,
        difficulty: int,
        cancel: threading.Event | None = None,
        check_interval: int = DEFAULT_CHECK_INTERVAL,
    ) -> str:
        """
        Seal the block by brute-forcing the nonce.

        Increments ``nonce`` and recomputes ``hash`` in place until the
        first ``difficulty`` hex characters are all ``0``. There is no
        iteration cap; expected work is ``16 ** difficulty`` hashes.

        Args:
            difficulty: Required number of leading zero hex digits.
            cancel: Optional signal polled every ``check_interval`` tries.
            check_interval: Iterations between cancel checks.

        Returns:
            The sealed hash.

        Raises:
            ValueError: If difficulty is negative.
            MiningCancelled: If ``cancel`` is set before a nonce is found.
        """
        if difficulty < 0:
            raise ValueError(f"Difficulty must be non-negative, got {difficulty}")
        if cancel is not None and cancel.is_set():
            raise MiningCancelled(f"Mining of block #{self.index} cancelled before start")

        target = "0" * difficulty
        attempts = 0
        while not self.hash.startswith(target):
            self.nonce += 1
            self.hash = self.compute_hash()
            attempts += 1
            if cancel is not None and attempts % check_interval == 0 and cancel.is_set():
                raise MiningCancelled(
                    f"Mining of block #{self.index} cancelled after {attempts} attempts"
                )

        logger.debug("Block #%d mined: %s (nonce=%d)", self.index, self.hash, self.nonce)
        return self.hash

    # ─── Wire Form ───────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "timestamp": self.timestamp,
            "data": self.data,
            "previousHash": self.previous_hash,
            "hash": self.hash,
            "nonce": self.nonce,
        }

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "Block":
        """Rebuild a block exactly from stored fields; nothing is recomputed."""
        try:
            block = cls(
                index=int(record["index"]),
                timestamp=int(record["timestamp"]),
                data=record["data"],
                previous_hash=str(record["previousHash"]),
                nonce=int(record["nonce"]),
                hash=str(record["hash"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CodecError(f"Invalid block record: {e}") from e
        return block
