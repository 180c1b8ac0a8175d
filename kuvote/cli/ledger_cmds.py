"""CLI commands: vote, tally, check, ledger status/verify/show/reset, serve."""

from __future__ import annotations

import asyncio
import json
import sys

import click
from rich.panel import Panel
from rich.table import Table

from kuvote.chain.block import expected_hashes
from kuvote.chain.payload import fingerprint_identity
from kuvote.cli import DEFAULT_DB, cli, console, get_service
from kuvote.exceptions import (
    ChainIntegrityError,
    DuplicateVoteError,
    MalformedPayloadError,
    MiningError,
    PersistenceError,
    UnconfirmedVoteError,
)

db_option = click.option("--db", default=DEFAULT_DB, help="Database path")
difficulty_option = click.option(
    "--difficulty", type=click.IntRange(min=0), default=None,
    help="Proof-of-work difficulty for a new chain (defaults to KUVOTE_DIFFICULTY); "
    "an existing chain keeps the difficulty it was created with",
)


@cli.command()
@click.argument("voter_id")
@click.argument("candidate_id")
@click.option("--faculty", default=None, help="Voter faculty")
@db_option
@difficulty_option
def vote(voter_id, candidate_id, faculty, db, difficulty) -> None:
    """Record a vote for CANDIDATE_ID. VOTER_ID is fingerprinted, never stored."""

    async def _vote_async():
        service = get_service(db, difficulty)
        try:
            await service.open()
            if service.degraded:
                # In-memory votes do not outlive this process.
                console.print(
                    "[red]✗ Chain store unavailable or unreadable; vote NOT recorded.[/]\n"
                    "   [dim]Run 'kuvote ledger verify', then 'kuvote ledger reset --reason ...' "
                    "if the stored chain cannot be recovered.[/]"
                )
                return 1
            with console.status(
                f"[bold yellow]Mining block (~{expected_hashes(service.difficulty)} hashes)...[/]"
            ):
                block = await service.vote(voter_id, candidate_id, faculty)
            console.print(
                f"[green]✓[/] Vote for [bold]{candidate_id}[/] sealed in block [bold]#{block.index}[/].\n"
                f"   [dim]Hash: {block.hash[:16]}... nonce {block.nonce}[/]"
            )
            return 0
        except MalformedPayloadError as e:
            console.print(f"[red]✗ {e}[/]")
            return 2
        except DuplicateVoteError:
            console.print("[red]✗ This voter has already voted.[/]")
            return 1
        except ChainIntegrityError as e:
            console.print(f"[red]✗ Vote NOT recorded: {e}[/]")
            return 1
        except UnconfirmedVoteError:
            console.print("[red]✗ Vote could not be persisted. It was NOT counted.[/]")
            return 1
        except MiningError as e:
            console.print(f"[red]✗ Vote not sealed: {e}[/]")
            return 1
        finally:
            await service.close()

    code = asyncio.run(_vote_async())
    if code:
        sys.exit(code)


@cli.command()
@db_option
@difficulty_option
def tally(db, difficulty) -> None:
    """Show votes per candidate."""

    async def _tally_async():
        service = get_service(db, difficulty)
        try:
            await service.open()
            ranked = service.results()
        finally:
            await service.close()

        if not ranked:
            console.print("[yellow]No votes recorded yet.[/]")
            return

        table = Table(title="🗳  Results")
        table.add_column("Candidate", style="bold")
        table.add_column("Votes", justify="right", style="cyan")
        for candidate, votes in ranked:
            table.add_row(candidate, str(votes))
        console.print(table)
        console.print(f"[dim]Total votes: {sum(v for _, v in ranked)}[/]")

    asyncio.run(_tally_async())


@cli.command()
@click.argument("voter_id")
@db_option
@difficulty_option
def check(voter_id, db, difficulty) -> None:
    """Check whether VOTER_ID has already voted."""

    async def _check_async():
        service = get_service(db, difficulty)
        try:
            await service.open()
            voted = service.has_voted(fingerprint_identity(voter_id))
        finally:
            await service.close()

        if voted:
            console.print("[yellow]● Already voted[/]")
        else:
            console.print("[green]○ Has not voted[/]")

    asyncio.run(_check_async())


@cli.command()
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8000, type=int, help="Bind port")
def serve(host, port) -> None:
    """Run the HTTP API."""
    import uvicorn

    from kuvote.api import create_app

    uvicorn.run(create_app(), host=host, port=port)


# ─── Ledger Group ────────────────────────────────────────────────


@click.group()
def ledger():
    """Inspect and administer the vote ledger."""
    pass


@ledger.command("status")
@db_option
@difficulty_option
def ledger_status(db, difficulty):
    """Show the current state of the ledger."""

    async def _ledger_status_async():
        service = get_service(db, difficulty)
        try:
            await service.open()
            blocks = service.chain()
            head = blocks[-1]
            console.print(
                Panel(
                    f"[bold cyan]Height:[/] {len(blocks) - 1} votes\n"
                    f"[bold cyan]Difficulty:[/] {service.difficulty} "
                    f"(~{expected_hashes(service.difficulty)} hashes per vote)\n"
                    f"[bold cyan]Head:[/] #{head.index} {head.hash[:16]}...\n"
                    f"[bold cyan]Degraded:[/] {'yes' if service.degraded else 'no'}",
                    title="📊 Ledger Status",
                    border_style="cyan",
                )
            )
        finally:
            await service.close()

    asyncio.run(_ledger_status_async())


@ledger.command("verify")
@db_option
@difficulty_option
def ledger_verify(db, difficulty):
    """Verify the cryptographic integrity of the ledger."""

    async def _ledger_verify_async():
        service = get_service(db, difficulty)
        try:
            await service.open()
            degraded = service.degraded
            with console.status("[bold blue]Verifying hash chain...[/]"):
                report = service.verify()
        finally:
            await service.close()

        if degraded:
            console.print("[red]❌ Hash chain integrity: FAILED[/]")
            console.print("  [red]✗[/] stored chain could not be loaded")
            console.print("  [dim]Run 'kuvote ledger reset --reason ...' to discard the chain.[/]")
            return False

        if report.valid:
            console.print(f"[green]✅ Hash chain integrity: OK[/] ({report.blocks_checked} blocks)")
            return True

        console.print("[red]❌ Hash chain integrity: FAILED[/]")
        console.print(f"  [red]✗[/] {report.reason} at block #{report.failed_index}")
        console.print("  [dim]Run 'kuvote ledger reset --reason ...' to discard the chain.[/]")
        return False

    if not asyncio.run(_ledger_verify_async()):
        sys.exit(1)


@ledger.command("show")
@click.option("--json", "as_json", is_flag=True, help="Print the raw chain document")
@db_option
@difficulty_option
def ledger_show(as_json, db, difficulty):
    """Dump every block in the chain."""

    async def _ledger_show_async():
        service = get_service(db, difficulty)
        try:
            await service.open()
            blocks = service.chain()
        finally:
            await service.close()

        if as_json:
            click.echo(json.dumps([b.to_dict() for b in blocks], indent=2, ensure_ascii=False))
            return

        table = Table(title="⛓  Chain")
        table.add_column("#", justify="right")
        table.add_column("Hash")
        table.add_column("Previous")
        table.add_column("Nonce", justify="right")
        table.add_column("Candidate")
        for b in blocks:
            candidate = b.data.get("candidateId", "") if isinstance(b.data, dict) else ""
            table.add_row(str(b.index), b.hash[:16], b.previous_hash[:16], str(b.nonce), str(candidate))
        console.print(table)

    asyncio.run(_ledger_show_async())


@ledger.command("reset")
@click.option("--reason", required=True, help="Why the chain is being discarded")
@click.option("--yes", is_flag=True, help="Skip confirmation")
@db_option
@difficulty_option
def ledger_reset(reason, yes, db, difficulty):
    """Discard the chain and start a new genesis chain. Loses every vote."""
    if not yes:
        click.confirm("This permanently discards every recorded vote. Continue?", abort=True)

    async def _ledger_reset_async():
        service = get_service(db, difficulty)
        try:
            await service.open()
            discarded = await service.reset(reason)
        except PersistenceError:
            console.print("[red]✗ Reset failed: chain store unavailable.[/]")
            return False
        finally:
            await service.close()
        console.print(f"[yellow]⚠ Chain reset. {discarded} vote blocks discarded.[/]")
        return True

    if not asyncio.run(_ledger_reset_async()):
        sys.exit(1)
