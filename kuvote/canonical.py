"""KUVote — Canonical Hash Construction.

Provides deterministic JSON serialization and null-byte separated
hash computation for ledger blocks. The digest of a block must be
reproducible from its stored fields alone, on any machine and in any
process, so payload key order and whitespace never influence it.

Block hash scheme:
    sha256(f"{index}\\x00{previous_hash}\\x00{timestamp}\\x00{canonical_payload}\\x00{nonce}")
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

# ─── Canonical JSON ───────────────────────────────────────────────


def canonical_json(obj: Any) -> str:
    """Deterministic JSON: sorted keys, no whitespace, ASCII-safe.

    Guarantees identical output for semantically identical input
    regardless of Python dict insertion order.

    Args:
        obj: Any JSON-serializable object.

    Returns:
        Canonical JSON string.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"),
        ensure_ascii=True, default=str,
    )


# ─── Block Hash ──────────────────────────────────────────────────


def compute_block_hash(
    index: int,
    previous_hash: str,
    timestamp: int,
    payload: Any,
    nonce: int,
) -> str:
    """Compute a block digest using null-byte separated canonical form.

    Args:
        index: Block position in the chain.
        previous_hash: Hash of the prior block, or ``"0"`` for genesis.
        timestamp: Creation instant in epoch milliseconds.
        payload: Block payload (any JSON-serializable value).
        nonce: Proof-of-work counter.

    Returns:
        SHA-256 hex digest of the canonical input.
    """
    h_input = (
        f"{index}\x00{previous_hash}\x00{timestamp}"
        f"\x00{canonical_json(payload)}\x00{nonce}"
    )
    return hashlib.sha256(h_input.encode("utf-8")).hexdigest()


def sha256_hex(text: str) -> str:
    """SHA-256 hex digest of a UTF-8 string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
