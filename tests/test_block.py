"""
KUVote — Block and Miner Tests.

Construction, hashing, proof-of-work sealing and cancellation.
"""

import threading

import pytest

from kuvote.chain.block import Block, expected_hashes
from kuvote.exceptions import CodecError, MiningCancelled


def _block(**overrides) -> Block:
    fields = dict(
        index=1,
        timestamp=1700000000000,
        data={"identityFingerprint": "f" * 64, "candidateId": "A"},
        previous_hash="0" * 64,
    )
    fields.update(overrides)
    return Block(**fields)


class TestConstruct:
    def test_nonce_starts_at_zero_and_hash_is_computed(self):
        block = _block()
        assert block.nonce == 0
        assert block.hash == block.compute_hash()
        assert len(block.hash) == 64

    def test_compute_hash_is_repeatable(self):
        block = _block()
        assert block.compute_hash() == block.compute_hash() == block.hash

    def test_stored_hash_is_not_recomputed(self):
        block = _block(hash="deadbeef", nonce=3)
        assert block.hash == "deadbeef"
        assert block.nonce == 3


class TestMine:
    @pytest.mark.parametrize("difficulty", [1, 2, 3])
    def test_hash_has_required_zero_prefix(self, difficulty):
        block = _block()
        sealed = block.mine(difficulty)
        assert sealed == block.hash
        assert block.hash[:difficulty] == "0" * difficulty
        assert block.hash == block.compute_hash()
        assert block.meets_difficulty(difficulty)

    def test_difficulty_zero_succeeds_immediately(self):
        block = _block()
        original = block.hash
        block.mine(0)
        assert block.nonce == 0
        assert block.hash == original

    def test_negative_difficulty_rejected(self):
        with pytest.raises(ValueError):
            _block().mine(-1)

    def test_preset_cancel_aborts_before_search(self):
        cancel = threading.Event()
        cancel.set()
        block = _block()
        with pytest.raises(MiningCancelled):
            block.mine(2, cancel=cancel)
        assert block.nonce == 0

    def test_cancel_during_search(self):
        """A difficulty no test machine will solve, cancelled from another thread."""
        cancel = threading.Event()
        timer = threading.Timer(0.05, cancel.set)
        timer.start()
        try:
            with pytest.raises(MiningCancelled):
                _block().mine(40, cancel=cancel, check_interval=64)
        finally:
            timer.cancel()

    def test_expected_hashes(self):
        assert expected_hashes(0) == 1
        assert expected_hashes(2) == 256
        assert expected_hashes(4) == 65536


class TestWireForm:
    def test_round_trip_keeps_every_field(self):
        block = _block()
        block.mine(1)
        restored = Block.from_dict(block.to_dict())
        assert restored == block

    def test_wire_keys(self):
        assert set(_block().to_dict()) == {"index", "timestamp", "data", "previousHash", "hash", "nonce"}

    def test_missing_field_raises_codec_error(self):
        record = _block().to_dict()
        del record["previousHash"]
        with pytest.raises(CodecError):
            Block.from_dict(record)

    def test_non_numeric_index_raises_codec_error(self):
        record = _block().to_dict()
        record["index"] = "one"
        with pytest.raises(CodecError):
            Block.from_dict(record)
