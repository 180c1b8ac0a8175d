"""
KUVote — Tamper-evident vote ledger.

Append-only proof-of-work chain of anonymized vote events with integrity
verification, tallying and duplicate-vote detection.
"""

__version__ = "1.0.0"
__author__ = "KUVote Team"

from kuvote.chain import Block, VoteLedger, VotePayload, fingerprint_identity

__all__ = ["Block", "VoteLedger", "VotePayload", "fingerprint_identity", "__version__"]
