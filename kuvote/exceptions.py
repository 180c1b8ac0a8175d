"""
KUVote — Custom Exceptions.

Typed error hierarchy so storage and mining details never leak
through the HTTP or CLI boundaries as raw driver errors.
"""

from __future__ import annotations


class KuvoteError(Exception):
    """Base exception for all KUVote errors."""


# ─── Ledger ──────────────────────────────────────────────────────────


class LedgerError(KuvoteError):
    """Raised when a ledger operation cannot be performed."""


class ChainIntegrityError(LedgerError):
    """Raised when the chain (or a block offered to it) fails verification.

    Attributes:
        index: Position of the first failing block, if known.
        reason: Short machine-readable reason (``hash_mismatch``,
            ``chain_break``, ``index_gap``, ``difficulty``).
    """

    def __init__(self, message: str, index: int | None = None, reason: str | None = None):
        super().__init__(message)
        self.index = index
        self.reason = reason


class StaleHeadError(LedgerError):
    """Raised when a block was built against a head that is no longer latest.

    The losing side of a concurrent append. The caller must rebuild the
    block against the new head (or give up); it is never merged.
    """


class DuplicateVoteError(LedgerError):
    """Raised when a fingerprint that already voted submits again."""


class MalformedPayloadError(KuvoteError):
    """Raised when a vote payload lacks required fields."""


# ─── Mining ──────────────────────────────────────────────────────────


class MiningError(KuvoteError):
    """Base exception for proof-of-work failures."""


class MiningCancelled(MiningError):
    """Raised by the miner when its cancel signal is set."""


class MiningTimeoutError(MiningError):
    """Raised when mining exceeds the caller's latency budget."""


# ─── Persistence ─────────────────────────────────────────────────────


class PersistenceError(KuvoteError):
    """Raised when the chain store cannot be read or written.

    Sanitizes the underlying SQLite/OS error so it is never exposed
    to external callers.
    """


class UnconfirmedVoteError(PersistenceError):
    """Raised when a mined vote could not be persisted.

    The vote is not part of the chain and must not be reported as
    accepted.
    """


class CodecError(KuvoteError):
    """Raised when a persisted chain document cannot be decoded."""
