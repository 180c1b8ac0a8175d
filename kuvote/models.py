"""
KUVote — API Models.
Centralized Pydantic models for request/response validation.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class VoteRequest(BaseModel):
    voter_id: str = Field(..., max_length=320, description="Voter identity; fingerprinted before it reaches the ledger")
    candidate_id: str = Field(..., max_length=100, description="Candidate identifier")
    faculty: str | None = Field(None, max_length=200, description="Voter faculty (carried, not interpreted)")

    @field_validator("voter_id", "candidate_id")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Must not be empty or whitespace only")
        return v.strip()


class VoteResponse(BaseModel):
    index: int
    hash: str
    previous_hash: str
    nonce: int
    timestamp: int
    message: str


class VoteStatusResponse(BaseModel):
    fingerprint: str
    has_voted: bool


class CandidateResult(BaseModel):
    candidate_id: str
    votes: int


class ResultsResponse(BaseModel):
    total_votes: int
    results: list[CandidateResult]


class LedgerReportResponse(BaseModel):
    valid: bool
    blocks_checked: int
    failed_index: int | None = None
    reason: str | None = None


class BlockRecord(BaseModel):
    index: int
    timestamp: int
    data: Any
    previousHash: str
    hash: str
    nonce: int


class ChainResponse(BaseModel):
    difficulty: int
    length: int
    blocks: list[BlockRecord]


class ResetRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500, description="Why the chain is being discarded")


class ResetResponse(BaseModel):
    discarded_blocks: int
    message: str


class HealthResponse(BaseModel):
    status: str
    version: str
    blocks: int
    degraded: bool
