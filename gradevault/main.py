from __future__ import annotations

import asyncio
import sys
from typing import Any, Awaitable, Callable, List, Optional

import typer

from gradevault.config import get_settings
from gradevault.errors import LedgerError, UnknownRecord
from gradevault.reporter import print_snapshot
from gradevault.session import GradeSession, build_session
from gradevault.utils.logging import configure_logging

app = typer.Typer(help="GradeVault CLI: encrypted grade records with selective reveal.")


def _emit(session: GradeSession, as_json: bool) -> None:
    if as_json:
        typer.echo(session.snapshot.model_dump_json(indent=2))
    else:
        print_snapshot(session.snapshot)


def _run_session(action: Callable[[GradeSession], Awaitable[Any]], owner: Optional[str]) -> Any:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    async def _main() -> Any:
        async with build_session(settings, owner=owner) as session:
            return await action(session)

    try:
        return asyncio.run(_main())
    except LedgerError as exc:
        typer.echo(f"Ledger error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    except UnknownRecord as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"ledger={settings.ledger_backend} "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"oracle={settings.oracle_url} timeout={settings.reveal_timeout_seconds}s | "
        f"student={settings.student_address}"
    )


@app.command("list")
def list_records(
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Viewing student address."),
    as_json: bool = typer.Option(False, "--json", help="Print the snapshot as JSON."),
) -> None:
    """
    Load records from the ledger and show them with the current averages.
    """

    async def action(session: GradeSession) -> None:
        await session.load()
        _emit(session, as_json)

    _run_session(action, owner)


@app.command()
def submit(
    subject: str = typer.Argument(..., help="Subject name, e.g. Mathematics."),
    score: int = typer.Argument(..., min=0, max=100, help="Score between 0 and 100."),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Submitting student address."),
) -> None:
    """
    Encrypt a score and append it to the ledger.
    """

    async def action(session: GradeSession) -> int:
        await session.load()
        return await session.submit_record(subject, score)

    record_id = _run_session(action, owner)
    typer.echo(f"Submitted '{subject}' as record {record_id}.")


@app.command()
def decrypt(
    record_ids: List[int] = typer.Argument(..., help="Record ids to reveal."),
    authorization: Optional[str] = typer.Option(
        None, "--authorization", "-a", help="Authorization token/signature for the oracle."
    ),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Viewing student address."),
    as_json: bool = typer.Option(False, "--json", help="Print the snapshot as JSON."),
) -> None:
    """
    Reveal one or more records concurrently and show the resulting snapshot.
    """

    async def action(session: GradeSession) -> bool:
        await session.load()
        outcomes = await asyncio.gather(
            *(session.request_decrypt(record_id, authorization) for record_id in record_ids)
        )
        _emit(session, as_json)
        return all(outcome.failure_reason is None for outcome in outcomes)

    if not _run_session(action, owner):
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
