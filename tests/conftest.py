import pytest

from kuvote import config
from kuvote.chain.ledger import VoteLedger
from kuvote.chain.payload import VotePayload, fingerprint_identity


@pytest.fixture(autouse=True)
def reset_kuvote_config(monkeypatch, tmp_path):
    """Point config at a throwaway directory and re-read it around every test."""
    monkeypatch.setenv("KUVOTE_DIR", str(tmp_path / ".kuvote"))
    monkeypatch.delenv("KUVOTE_DB", raising=False)
    monkeypatch.delenv("KUVOTE_STORAGE", raising=False)
    monkeypatch.setenv("KUVOTE_DIFFICULTY", "1")
    config.reload()

    yield

    monkeypatch.undo()
    config.reload()


def make_vote(voter: str, candidate: str, faculty: str | None = None) -> VotePayload:
    return VotePayload.create(fingerprint_identity(voter), candidate, faculty)


@pytest.fixture
def ledger():
    """Fresh ledger at a difficulty cheap enough for tests."""
    return VoteLedger(difficulty=1)


@pytest.fixture
def populated_ledger():
    """Ledger holding four votes: A, B, A, C."""
    chain = VoteLedger(difficulty=1)
    for voter, candidate in [("alice", "A"), ("bob", "B"), ("carol", "A"), ("dave", "C")]:
        chain.append(make_vote(f"{voter}@ku.ac.th", candidate, "Engineering"))
    return chain
