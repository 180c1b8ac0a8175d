"""
KUVote — Configuration.
Shared settings and paths, read from the environment.
"""

import os
from pathlib import Path


def _bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def reload() -> None:
    """Re-read every setting from the environment."""
    global KUVOTE_DIR, DEFAULT_DB_PATH, DB_PATH, STORAGE_MODE, LEDGER_NAME
    global DIFFICULTY, MINING_TIMEOUT, MINING_WORKERS, MINING_CHECK_INTERVAL
    global VERIFY_ON_LOAD, REJECT_DUPLICATES, ALLOWED_ORIGINS

    # Base Paths
    KUVOTE_DIR = Path(os.environ.get("KUVOTE_DIR", str(Path.home() / ".kuvote")))

    # Storage
    DEFAULT_DB_PATH = KUVOTE_DIR / "kuvote.db"
    DB_PATH = os.environ.get("KUVOTE_DB", str(DEFAULT_DB_PATH))
    STORAGE_MODE = os.environ.get("KUVOTE_STORAGE", "sqlite")  # sqlite | memory
    LEDGER_NAME = os.environ.get("KUVOTE_LEDGER_NAME", "main")

    # Proof-of-work. Fixed for a chain's lifetime.
    DIFFICULTY = int(os.environ.get("KUVOTE_DIFFICULTY", "2"))
    MINING_TIMEOUT = float(os.environ.get("KUVOTE_MINING_TIMEOUT", "30"))
    MINING_WORKERS = int(os.environ.get("KUVOTE_MINING_WORKERS", "1"))
    MINING_CHECK_INTERVAL = int(os.environ.get("KUVOTE_MINING_CHECK_INTERVAL", "1024"))

    # Ledger policy
    VERIFY_ON_LOAD = _bool(os.environ.get("KUVOTE_VERIFY_ON_LOAD", "true"))
    REJECT_DUPLICATES = _bool(os.environ.get("KUVOTE_REJECT_DUPLICATES", "true"))

    # Security Configuration
    ALLOWED_ORIGINS = os.environ.get(
        "KUVOTE_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(",")


reload()
