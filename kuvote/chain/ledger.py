"""
KUVote — Vote Ledger.

Owns the ordered sequence of blocks. Exposes the single mutator
(prepare/commit, wrapped by ``append``) and the derived read paths:
validation, tally and duplicate-vote detection.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from kuvote.chain.block import DEFAULT_CHECK_INTERVAL, GENESIS_PREVIOUS_HASH, Block
from kuvote.chain.payload import VotePayload, candidate_of, fingerprint_of
from kuvote.exceptions import (
    ChainIntegrityError,
    LedgerError,
    MalformedPayloadError,
    StaleHeadError,
)

logger = logging.getLogger("kuvote.chain.ledger")

GENESIS_DATA = {"info": "Genesis Block - KUVote System"}


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ValidationReport:
    """Outcome of a full chain scan."""

    valid: bool
    blocks_checked: int
    failed_index: int | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class VoteLedger:
    """
    Append-only chain of sealed vote blocks.

    Reads and commits share one re-entrant lock; every read works on a
    snapshot of the sequence so it sees the chain either before or after
    a commit, never in between. Serializing the whole
    read-mine-persist-commit sequence is the caller's job (see
    ``LedgerService``); ``commit`` enforces that the block still
    extends the current head.

    Attributes:
        difficulty (int): Leading zero hex digits required on every
            non-genesis hash. Fixed for the ledger's lifetime.
        last_failure (ValidationReport | None): Failure found by the most
            recent validation; None once a scan comes back clean.
    """

    def __init__(self, difficulty: int = 2, blocks: Iterable[Block] | None = None):
        if difficulty < 0:
            raise ValueError(f"Difficulty must be non-negative, got {difficulty}")
        self._difficulty = difficulty
        self._lock = threading.RLock()
        if blocks is None:
            self._chain: list[Block] = [self.create_genesis_block()]
        else:
            self._chain = list(blocks)
            if not self._chain:
                raise LedgerError("A ledger needs at least the genesis block")
        self.last_failure: ValidationReport | None = None

    @staticmethod
    def create_genesis_block(timestamp: int | None = None) -> Block:
        """Fixed, unmined origin block."""
        return Block(
            index=0,
            timestamp=now_ms() if timestamp is None else timestamp,
            data=dict(GENESIS_DATA),
            previous_hash=GENESIS_PREVIOUS_HASH,
        )

    @property
    def difficulty(self) -> int:
        return self._difficulty

    def __len__(self) -> int:
        with self._lock:
            return len(self._chain)

    def blocks(self) -> tuple[Block, ...]:
        """Snapshot of the whole sequence, genesis first."""
        with self._lock:
            return tuple(self._chain)

    def latest(self) -> Block:
        with self._lock:
            if not self._chain:
                raise LedgerError("Ledger is empty")
            return self._chain[-1]

    # ─── Append ──────────────────────────────────────────────────────

    def prepare(self, payload: VotePayload | Mapping[str, Any]) -> Block:
        """Build the unmined successor of the current head."""
        data = payload.to_dict() if isinstance(payload, VotePayload) else dict(payload)
        try:
            json.dumps(data, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise MalformedPayloadError(f"Vote payload is not JSON-serializable: {e}") from e
        with self._lock:
            head = self._chain[-1]
            return Block(
                index=len(self._chain),
                timestamp=now_ms(),
                data=data,
                previous_hash=head.hash,
            )

    def commit(self, block: Block) -> Block:
        """
        Push a sealed block onto the chain.

        Raises:
            StaleHeadError: If the block does not extend the current head.
            ChainIntegrityError: If the block's hash does not recompute or
                does not satisfy the difficulty.
        """
        with self._lock:
            head = self._chain[-1]
            if block.index != len(self._chain) or block.previous_hash != head.hash:
                raise StaleHeadError(
                    f"Block #{block.index} was built on {block.previous_hash[:12]}, "
                    f"head is #{head.index} {head.hash[:12]}"
                )
            if block.hash != block.compute_hash():
                raise ChainIntegrityError(
                    f"Block #{block.index} hash does not match its contents",
                    index=block.index, reason="hash_mismatch",
                )
            if not block.meets_difficulty(self._difficulty):
                raise ChainIntegrityError(
                    f"Block #{block.index} is not mined to difficulty {self._difficulty}",
                    index=block.index, reason="difficulty",
                )
            self._chain.append(block)
        return block

    def append(
        self,
        payload: VotePayload | Mapping[str, Any],
        cancel: threading.Event | None = None,
        check_interval: int = DEFAULT_CHECK_INTERVAL,
    ) -> Block:
        """Build, mine and push a block in the calling thread."""
        block = self.prepare(payload)
        block.mine(self._difficulty, cancel=cancel, check_interval=check_interval)
        return self.commit(block)

    # ─── Validation ──────────────────────────────────────────────────

    def verify(self) -> ValidationReport:
        """
        Re-derive every hash and link, stopping at the first break.

        Checks, for each block after genesis: the stored hash recomputes
        from the block's fields, ``previous_hash`` equals the prior
        block's hash, the index follows the prior index, and the hash
        meets the difficulty.
        """
        chain = self.blocks()
        for i in range(1, len(chain)):
            current, previous = chain[i], chain[i - 1]
            reason = None
            if current.hash != current.compute_hash():
                reason = "hash_mismatch"
            elif current.previous_hash != previous.hash:
                reason = "chain_break"
            elif current.index != previous.index + 1:
                reason = "index_gap"
            elif not current.meets_difficulty(self._difficulty):
                reason = "difficulty"

            if reason is not None:
                report = ValidationReport(
                    valid=False, blocks_checked=i + 1, failed_index=i, reason=reason
                )
                self.last_failure = report
                logger.error("Chain corrupted at block #%d: %s", i, reason)
                return report

        self.last_failure = None
        return ValidationReport(valid=True, blocks_checked=len(chain))

    def validate(self) -> bool:
        return self.verify().valid

    # ─── Queries ─────────────────────────────────────────────────────

    def tally(self) -> dict[str, int]:
        """Votes per candidate. Genesis and payloads without a candidate are skipped."""
        counts: dict[str, int] = {}
        for block in self.blocks()[1:]:
            candidate = candidate_of(block.data)
            if candidate is None:
                logger.debug("Skipping block #%d: no candidate id", block.index)
                continue
            counts[candidate] = counts.get(candidate, 0) + 1
        return counts

    def results(self) -> list[tuple[str, int]]:
        """Tally ordered by votes (descending), then candidate id."""
        return sorted(self.tally().items(), key=lambda item: (-item[1], item[0]))

    def has_voted(self, fingerprint: str) -> bool:
        for block in self.blocks()[1:]:
            if fingerprint_of(block.data) == fingerprint:
                return True
        return False
