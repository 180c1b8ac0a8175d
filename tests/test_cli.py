"""Tests for the kuvote command-line interface."""

import json
import sqlite3

import pytest
from click.testing import CliRunner

from kuvote.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "cli.db")


def _invoke(runner, *args):
    return runner.invoke(cli, list(args), catch_exceptions=False)


def _read_raw_document(db):
    conn = sqlite3.connect(db)
    try:
        (document,) = conn.execute(
            "SELECT document FROM ledger_documents WHERE name = 'main'"
        ).fetchone()
    finally:
        conn.close()
    return document


def _write_raw_document(db, document):
    conn = sqlite3.connect(db)
    try:
        with conn:
            conn.execute(
                "UPDATE ledger_documents SET document = ? WHERE name = 'main'", (document,)
            )
    finally:
        conn.close()


def _rewrite_document(db, mutate):
    records = json.loads(_read_raw_document(db))
    mutate(records)
    _write_raw_document(db, json.dumps(records))


def test_version(runner):
    result = _invoke(runner, "--version")
    assert result.exit_code == 0
    assert "kuvote" in result.output


def test_vote_and_tally(runner, db):
    for voter, candidate in [("alice", "A"), ("bob", "B"), ("carol", "A")]:
        result = _invoke(runner, "vote", f"{voter}@ku.ac.th", candidate, "--db", db, "--difficulty", "1")
        assert result.exit_code == 0, result.output
        assert "sealed in block" in result.output

    result = _invoke(runner, "tally", "--db", db, "--difficulty", "1")
    assert result.exit_code == 0
    assert "Total votes: 3" in result.output


def test_tally_on_empty_chain(runner, db):
    result = _invoke(runner, "tally", "--db", db)
    assert result.exit_code == 0
    assert "No votes recorded yet" in result.output


def test_duplicate_vote_exits_nonzero(runner, db):
    assert _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1").exit_code == 0
    result = _invoke(runner, "vote", "alice@ku.ac.th", "B", "--db", db, "--difficulty", "1")
    assert result.exit_code == 1
    assert "already voted" in result.output


def test_check(runner, db):
    assert "Has not voted" in _invoke(runner, "check", "alice@ku.ac.th", "--db", db).output
    _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1")
    assert "Already voted" in _invoke(runner, "check", "alice@ku.ac.th", "--db", db).output


def test_ledger_show_json(runner, db):
    _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1")
    result = _invoke(runner, "ledger", "show", "--json", "--db", db, "--difficulty", "1")
    assert result.exit_code == 0
    start = result.output.index("[\n")
    blocks, _ = json.JSONDecoder().raw_decode(result.output[start:])
    assert [b["index"] for b in blocks] == [0, 1]
    assert blocks[1]["previousHash"] == blocks[0]["hash"]


def test_ledger_status(runner, db):
    result = _invoke(runner, "ledger", "status", "--db", db, "--difficulty", "2")
    assert result.exit_code == 0
    assert "Ledger Status" in result.output


def test_ledger_verify_and_reset(runner, db):
    _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1")
    result = _invoke(runner, "ledger", "verify", "--db", db, "--difficulty", "1")
    assert result.exit_code == 0
    assert "OK" in result.output

    result = _invoke(runner, "ledger", "reset", "--reason", "drill", "--yes", "--db", db, "--difficulty", "1")
    assert result.exit_code == 0
    assert "1 vote blocks discarded" in result.output


def test_difficulty_is_pinned_to_the_chain(runner, db):
    assert _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1").exit_code == 0
    result = _invoke(runner, "vote", "bob@ku.ac.th", "B", "--db", db, "--difficulty", "3")
    assert result.exit_code == 0, result.output

    result = _invoke(runner, "ledger", "verify", "--db", db, "--difficulty", "3")
    assert result.exit_code == 0, result.output
    assert "OK" in result.output
    assert "Difficulty: 1" in _invoke(runner, "ledger", "status", "--db", db, "--difficulty", "3").output


def test_ledger_verify_detects_tampering(runner, db):
    _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1")
    _invoke(runner, "vote", "bob@ku.ac.th", "B", "--db", db, "--difficulty", "1")
    _rewrite_document(db, lambda records: records[1]["data"].update(candidateId="B"))

    result = _invoke(runner, "ledger", "verify", "--db", db)
    assert result.exit_code == 1
    assert "FAILED" in result.output
    assert "hash_mismatch at block #1" in result.output


def test_vote_refused_on_corrupted_chain(runner, db):
    _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1")
    _rewrite_document(db, lambda records: records[1]["data"].update(candidateId="B"))

    result = _invoke(runner, "vote", "bob@ku.ac.th", "B", "--db", db)
    assert result.exit_code == 1
    assert "NOT recorded" in result.output
    assert "Has not voted" in _invoke(runner, "check", "bob@ku.ac.th", "--db", db).output


def test_vote_refused_when_stored_chain_is_unreadable(runner, db):
    assert _invoke(runner, "tally", "--db", db).exit_code == 0
    _write_raw_document(db, "{corrupted")

    result = _invoke(runner, "vote", "alice@ku.ac.th", "A", "--db", db, "--difficulty", "1")
    assert result.exit_code == 1
    assert "NOT recorded" in result.output
    assert "Has not voted" in _invoke(runner, "check", "alice@ku.ac.th", "--db", db).output
    assert _read_raw_document(db) == "{corrupted"

    result = _invoke(runner, "ledger", "verify", "--db", db)
    assert result.exit_code == 1
    assert "could not be loaded" in result.output


def test_reset_requires_confirmation(runner, db):
    result = runner.invoke(cli, ["ledger", "reset", "--reason", "drill", "--db", db], input="n\n")
    assert result.exit_code == 1
