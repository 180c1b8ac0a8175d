"""Tests for vote payloads and identity fingerprints."""

import pytest

from kuvote.canonical import sha256_hex
from kuvote.chain.payload import VotePayload, candidate_of, fingerprint_identity, fingerprint_of
from kuvote.exceptions import MalformedPayloadError


class TestFingerprint:
    def test_is_sha256_of_normalized_identity(self):
        assert fingerprint_identity("alice@ku.ac.th") == sha256_hex("alice@ku.ac.th")

    def test_case_and_whitespace_insensitive(self):
        assert fingerprint_identity("  Alice@KU.ac.th ") == fingerprint_identity("alice@ku.ac.th")

    def test_never_contains_raw_identity(self):
        assert "alice" not in fingerprint_identity("alice@ku.ac.th")

    @pytest.mark.parametrize("identity", ["", "   "])
    def test_empty_identity_rejected(self, identity):
        with pytest.raises(MalformedPayloadError):
            fingerprint_identity(identity)


class TestVotePayload:
    def test_create_stamps_time_and_stringifies_candidate(self):
        payload = VotePayload.create("f" * 64, 3, "Science")
        assert payload.candidate_id == "3"
        assert payload.iso_timestamp is not None

    def test_to_dict_uses_wire_keys(self):
        data = VotePayload("fp", "A", "Science", "2026-01-01T00:00:00+00:00").to_dict()
        assert data == {
            "identityFingerprint": "fp",
            "candidateId": "A",
            "faculty": "Science",
            "isoTimestamp": "2026-01-01T00:00:00+00:00",
        }

    def test_optional_fields_omitted(self):
        assert VotePayload("fp", "A").to_dict() == {"identityFingerprint": "fp", "candidateId": "A"}

    def test_create_requires_fields(self):
        with pytest.raises(MalformedPayloadError):
            VotePayload.create("", "A")
        with pytest.raises(MalformedPayloadError):
            VotePayload.create("fp", "")

    def test_from_mapping_round_trip(self):
        payload = VotePayload("fp", "A", "Science", "2026-01-01T00:00:00+00:00")
        assert VotePayload.from_mapping(payload.to_dict()) == payload

    def test_from_mapping_missing_candidate(self):
        with pytest.raises(MalformedPayloadError):
            VotePayload.from_mapping({"identityFingerprint": "fp"})


class TestExtractors:
    def test_legacy_email_hash_alias(self):
        assert fingerprint_of({"emailHash": "abc", "candidateId": 1}) == "abc"

    def test_non_mapping_payloads(self):
        assert fingerprint_of("not a dict") is None
        assert candidate_of(None) is None

    def test_integer_candidate(self):
        assert candidate_of({"candidateId": 2}) == "2"

    def test_blank_candidate(self):
        assert candidate_of({"candidateId": ""}) is None
