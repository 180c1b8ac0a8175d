"""
KUVote — Chain Codec.

The persisted form of a ledger is a single JSON array holding every
block field-for-field, including the already-computed hash and nonce.
Loading never re-mines and never validates; integrity checking is an
explicit, separate step.
"""

from __future__ import annotations

import json
from typing import Iterable

from kuvote.chain.block import Block
from kuvote.chain.ledger import VoteLedger
from kuvote.exceptions import CodecError


def dump_blocks(blocks: Iterable[Block]) -> str:
    return json.dumps([block.to_dict() for block in blocks], ensure_ascii=False)


def serialize(ledger: VoteLedger) -> str:
    """Storable representation of the entire sequence."""
    return dump_blocks(ledger.blocks())


def load_blocks(document: str | bytes) -> list[Block]:
    try:
        records = json.loads(document)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise CodecError(f"Chain document is not valid JSON: {e}") from e

    if not isinstance(records, list):
        raise CodecError("Chain document must be a JSON array of blocks")
    if not records:
        raise CodecError("Chain document holds no blocks")
    if not all(isinstance(r, dict) for r in records):
        raise CodecError("Every block record must be a JSON object")

    return [Block.from_dict(record) for record in records]


def deserialize(document: str | bytes, difficulty: int) -> VoteLedger:
    """Rebuild a ledger exactly from its stored representation."""
    return VoteLedger(difficulty=difficulty, blocks=load_blocks(document))
