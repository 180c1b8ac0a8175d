"""
KUVote — Ledger Service.

Owns one ledger, its chain store and the mining worker pool. This is the
object the HTTP app and the CLI are handed at startup; nothing reaches
the ledger through module-level state.

Append protocol (one critical section, at most one append in flight):
    latest() → prepare → mine (worker thread) → save whole chain → commit

The block only enters the in-memory chain after the store confirmed the
save, so readers never observe an unconfirmed vote.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Mapping

from kuvote import config
from kuvote.chain.block import DEFAULT_CHECK_INTERVAL, Block, expected_hashes
from kuvote.chain.codec import deserialize, dump_blocks, serialize
from kuvote.chain.ledger import ValidationReport, VoteLedger
from kuvote.chain.payload import VotePayload, fingerprint_identity, fingerprint_of
from kuvote.exceptions import (
    ChainIntegrityError,
    CodecError,
    DuplicateVoteError,
    MiningTimeoutError,
    PersistenceError,
    StaleHeadError,
    UnconfirmedVoteError,
)
from kuvote.storage import ChainStore, MemoryChainStore, create_store

logger = logging.getLogger("kuvote.service")


class LedgerService:
    """
    Serialized, persisted access to a vote ledger.

    Attributes:
        ledger (VoteLedger): The live chain.
        store (ChainStore): Store currently receiving saves. Differs from
            the configured store while ``degraded``.
        degraded (bool): True when the configured store could not supply
            the chain at startup and this run records votes in memory only.
        corruption (ValidationReport | None): First break found when the
            chain was loaded. Appends are refused until a reset.
    """

    def __init__(
        self,
        store: ChainStore,
        difficulty: int = 2,
        *,
        mining_timeout: float | None = 30.0,
        mining_workers: int = 1,
        check_interval: int = DEFAULT_CHECK_INTERVAL,
        verify_on_load: bool = True,
        reject_duplicates: bool = True,
    ):
        self.difficulty = difficulty
        self._configured_difficulty = difficulty
        self.mining_timeout = mining_timeout
        self.check_interval = check_interval
        self.verify_on_load = verify_on_load
        self.reject_duplicates = reject_duplicates

        self._primary_store = store
        self.store: ChainStore = store
        self.ledger = VoteLedger(difficulty)
        self.degraded = False
        self.corruption: ValidationReport | None = None

        self._append_lock = asyncio.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=mining_workers, thread_name_prefix="kuvote-miner"
        )
        self._inflight: set[threading.Event] = set()

    @classmethod
    def from_config(
        cls, store: ChainStore | None = None, difficulty: int | None = None
    ) -> "LedgerService":
        """Build a service from ``kuvote.config`` (read at call time)."""
        if store is None:
            store = create_store(config.STORAGE_MODE, config.DB_PATH, name=config.LEDGER_NAME)
        return cls(
            store,
            difficulty=config.DIFFICULTY if difficulty is None else difficulty,
            mining_timeout=config.MINING_TIMEOUT or None,
            mining_workers=config.MINING_WORKERS,
            check_interval=config.MINING_CHECK_INTERVAL,
            verify_on_load=config.VERIFY_ON_LOAD,
            reject_duplicates=config.REJECT_DUPLICATES,
        )

    # ─── Lifecycle ───────────────────────────────────────────────────

    async def open(self) -> VoteLedger:
        """
        Load the persisted chain, falling back to genesis if unavailable.

        A difficulty pinned with the stored chain takes precedence over
        the configured one.
        """
        try:
            document = await self._primary_store.load()
            pinned = await self._primary_store.load_difficulty() if document is not None else None
        except PersistenceError as e:
            logger.warning(
                "Chain store unavailable on load (%s); this run starts a fresh "
                "in-memory genesis chain and prior votes are not recovered", e,
            )
            self._detach(VoteLedger(self.difficulty))
            return self.ledger

        if document is None:
            self.ledger = VoteLedger(self.difficulty)
            try:
                await self._primary_store.save(serialize(self.ledger), self.difficulty)
            except PersistenceError as e:
                logger.warning("Could not persist genesis block (%s); running in memory", e)
                self._detach(self.ledger)
                return self.ledger
            logger.info("No persisted chain found; created genesis block %s", self.ledger.latest().hash[:16])
        else:
            if pinned is not None and pinned != self.difficulty:
                logger.warning(
                    "Chain is pinned to difficulty %d; ignoring configured difficulty %d",
                    pinned, self.difficulty,
                )
                self.difficulty = pinned
            try:
                self.ledger = deserialize(document, self.difficulty)
            except CodecError as e:
                logger.error(
                    "Persisted chain is unreadable (%s); running on a fresh in-memory "
                    "genesis chain. The stored document is left untouched until reset.", e,
                )
                self._detach(VoteLedger(self.difficulty))
                return self.ledger

        logger.info(
            "Ledger loaded: %d blocks, difficulty %d (~%d hashes per vote)",
            len(self.ledger), self.difficulty, expected_hashes(self.difficulty),
        )
        if self.verify_on_load:
            report = self.ledger.verify()
            if not report.valid:
                self.corruption = report
                logger.error(
                    "CHAIN CORRUPTED at block #%s (%s). Reads are served from the loaded "
                    "chain, new votes are refused; run a reset to discard it.",
                    report.failed_index, report.reason,
                )
        return self.ledger

    def _detach(self, ledger: VoteLedger) -> None:
        # Keep the configured store untouched so a later reset, not a
        # stray save, decides what happens to whatever it holds.
        self.ledger = ledger
        self.store = MemoryChainStore()
        self.degraded = True

    async def close(self) -> None:
        """Abort in-flight mining, stop workers and close the store."""
        for cancel in list(self._inflight):
            cancel.set()
        self._executor.shutdown(wait=False, cancel_futures=True)
        if self.store is not self._primary_store:
            await self.store.close()
        await self._primary_store.close()

    # ─── Append ──────────────────────────────────────────────────────

    async def submit(
        self,
        payload: VotePayload | Mapping[str, Any],
        expected_head: str | None = None,
    ) -> Block:
        """
        Mine, persist and commit one vote.

        Args:
            payload: Vote payload (fingerprint, never raw identity).
            expected_head: Hash the caller believes is latest. When given
                and no longer latest, the vote is rejected instead of
                being rebuilt on the new head.

        Raises:
            ChainIntegrityError: The chain was found corrupted on load.
            StaleHeadError: ``expected_head`` is not the current head.
            DuplicateVoteError: The fingerprint already voted.
            MiningTimeoutError: Mining exceeded ``mining_timeout``.
            MiningCancelled: The service is shutting down.
            UnconfirmedVoteError: The chain could not be persisted; the
                vote is not recorded.
        """
        async with self._append_lock:
            if self.corruption is not None:
                raise ChainIntegrityError(
                    f"Chain corrupted at block #{self.corruption.failed_index}; reset required",
                    index=self.corruption.failed_index, reason=self.corruption.reason,
                )
            ledger = self.ledger
            head = ledger.latest()
            if expected_head is not None and head.hash != expected_head:
                raise StaleHeadError(
                    f"Head moved: expected {expected_head[:12]}, latest is "
                    f"#{head.index} {head.hash[:12]}"
                )

            data = payload.to_dict() if isinstance(payload, VotePayload) else dict(payload)
            fingerprint = fingerprint_of(data)
            if self.reject_duplicates and fingerprint and ledger.has_voted(fingerprint):
                raise DuplicateVoteError(f"Fingerprint {fingerprint[:12]}... has already voted")

            block = ledger.prepare(data)
            await self._mine(block)

            try:
                await self.store.save(dump_blocks(ledger.blocks() + (block,)), self.difficulty)
            except PersistenceError as e:
                logger.error("Vote block #%d mined but not persisted; vote NOT confirmed", block.index)
                raise UnconfirmedVoteError(f"Vote #{block.index} could not be persisted") from e

            ledger.commit(block)

        logger.info(
            "Vote sealed: block #%d | candidate %s | hash %s...",
            block.index, data.get("candidateId"), block.hash[:16],
        )
        return block

    async def vote(self, identity: str, candidate_id: str | int, faculty: str | None = None) -> Block:
        """Fingerprint a raw identity and submit its vote."""
        payload = VotePayload.create(fingerprint_identity(identity), candidate_id, faculty)
        return await self.submit(payload)

    async def _mine(self, block: Block) -> None:
        cancel = threading.Event()
        self._inflight.add(cancel)
        loop = asyncio.get_running_loop()
        work = loop.run_in_executor(
            self._executor,
            functools.partial(block.mine, self.difficulty, cancel, self.check_interval),
        )
        try:
            await asyncio.wait_for(work, timeout=self.mining_timeout)
        except asyncio.TimeoutError:
            cancel.set()
            logger.error(
                "Mining block #%d exceeded %.1fs budget (difficulty %d); aborted",
                block.index, self.mining_timeout, self.difficulty,
            )
            raise MiningTimeoutError(
                f"Mining exceeded {self.mining_timeout}s at difficulty {self.difficulty}"
            ) from None
        except asyncio.CancelledError:
            cancel.set()
            raise
        finally:
            self._inflight.discard(cancel)

    # ─── Recovery ────────────────────────────────────────────────────

    async def reset(self, reason: str) -> int:
        """
        Discard the current chain and start a fresh genesis chain.

        This is the only recovery for a corrupted chain and it loses
        data. The fresh chain is written to the configured store, which
        also ends a degraded run.

        Returns:
            Number of vote blocks discarded.
        """
        async with self._append_lock:
            discarded = len(self.ledger) - 1
            fresh = VoteLedger(self._configured_difficulty)
            await self._primary_store.save(serialize(fresh), fresh.difficulty)
            if self.store is not self._primary_store:
                await self.store.close()
            self.store = self._primary_store
            self.ledger = fresh
            self.difficulty = fresh.difficulty
            self.degraded = False
            self.corruption = None

        logger.warning(
            "LEDGER RESET: discarded %d vote blocks and started a new genesis chain. Reason: %s",
            discarded, reason,
        )
        return discarded

    # ─── Queries ─────────────────────────────────────────────────────

    def tally(self) -> dict[str, int]:
        return self.ledger.tally()

    def results(self) -> list[tuple[str, int]]:
        return self.ledger.results()

    def has_voted(self, fingerprint: str) -> bool:
        return self.ledger.has_voted(fingerprint)

    def verify(self) -> ValidationReport:
        return self.ledger.verify()

    def chain(self) -> tuple[Block, ...]:
        return self.ledger.blocks()
