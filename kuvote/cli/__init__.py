"""
KUVote CLI — Package init.

Re-exports the main CLI group and shared utilities.
"""

from __future__ import annotations

import logging

import click
from rich.console import Console

from kuvote import __version__, config
from kuvote.service import LedgerService
from kuvote.storage import create_store

console = Console()
DEFAULT_DB = str(config.DB_PATH)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def get_service(db: str = DEFAULT_DB, difficulty: int | None = None) -> LedgerService:
    """Create a ledger service on the given database."""
    store = create_store(config.STORAGE_MODE, db, name=config.LEDGER_NAME)
    return LedgerService.from_config(store=store, difficulty=difficulty)


# ─── Main Group ──────────────────────────────────────────────────


@click.group()
@click.version_option(__version__, prog_name="kuvote")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """KUVote — tamper-evident vote ledger."""
    setup_logging(verbose)


# ─── Register all sub-modules ───────────────────────────────────
from kuvote.cli import ledger_cmds  # noqa: E402, F401
from kuvote.cli.ledger_cmds import ledger  # noqa: E402

cli.add_command(ledger)


if __name__ == "__main__":
    cli()
