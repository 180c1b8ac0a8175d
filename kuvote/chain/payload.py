"""
KUVote — Vote Payload.

The record a vote-submission collaborator hands to the ledger. The
voter is represented only by a one-way fingerprint of their identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from kuvote.canonical import sha256_hex
from kuvote.exceptions import MalformedPayloadError

FINGERPRINT_KEY = "identityFingerprint"
CANDIDATE_KEY = "candidateId"
# Chains written by the first deployment stored the fingerprint here.
LEGACY_FINGERPRINT_KEY = "emailHash"


def fingerprint_identity(identity: str) -> str:
    """One-way digest standing in for a voter's identity.

    The identity is stripped and lower-cased first so that
    ``" Alice@KU.ac.th"`` and ``"alice@ku.ac.th"`` map to the same
    fingerprint.
    """
    if not identity or not identity.strip():
        raise MalformedPayloadError("Voter identity must not be empty")
    return sha256_hex(identity.strip().lower())


def fingerprint_of(data: Any) -> str | None:
    """Extract the identity fingerprint from a stored payload, if any."""
    if not isinstance(data, Mapping):
        return None
    value = data.get(FINGERPRINT_KEY) or data.get(LEGACY_FINGERPRINT_KEY)
    return value if isinstance(value, str) and value else None


def candidate_of(data: Any) -> str | None:
    """Extract the candidate identifier from a stored payload, if any."""
    if not isinstance(data, Mapping):
        return None
    value = data.get(CANDIDATE_KEY)
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class VotePayload:
    identity_fingerprint: str
    candidate_id: str
    faculty: str | None = None
    iso_timestamp: str | None = None

    @classmethod
    def create(
        cls,
        identity_fingerprint: str,
        candidate_id: str | int,
        faculty: str | None = None,
    ) -> "VotePayload":
        """Build a payload stamped with the current UTC time."""
        if not identity_fingerprint:
            raise MalformedPayloadError("identityFingerprint is required")
        if candidate_id is None or str(candidate_id) == "":
            raise MalformedPayloadError("candidateId is required")
        return cls(
            identity_fingerprint=identity_fingerprint,
            candidate_id=str(candidate_id),
            faculty=faculty,
            iso_timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "VotePayload":
        """Parse a stored payload, raising if required fields are missing."""
        fingerprint = fingerprint_of(data)
        candidate = candidate_of(data)
        if fingerprint is None or candidate is None:
            raise MalformedPayloadError(
                f"Payload missing {FINGERPRINT_KEY} or {CANDIDATE_KEY}: {sorted(data) if isinstance(data, Mapping) else data!r}"
            )
        return cls(
            identity_fingerprint=fingerprint,
            candidate_id=candidate,
            faculty=data.get("faculty"),
            iso_timestamp=data.get("isoTimestamp"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Wire form stored as a block's ``data``."""
        data: dict[str, Any] = {
            FINGERPRINT_KEY: self.identity_fingerprint,
            CANDIDATE_KEY: self.candidate_id,
        }
        if self.faculty is not None:
            data["faculty"] = self.faculty
        if self.iso_timestamp is not None:
            data["isoTimestamp"] = self.iso_timestamp
        return data
