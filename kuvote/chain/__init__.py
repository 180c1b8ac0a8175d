"""
KUVote — Chain Layer.

Blocks, proof-of-work sealing, the vote ledger and its codec.
"""

from .block import Block, expected_hashes
from .codec import deserialize, serialize
from .ledger import ValidationReport, VoteLedger
from .payload import VotePayload, fingerprint_identity
