from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from gradevault.domain.models import DecryptionState, StoreStatus, ViewSnapshot

_STATE_STYLES = {
    DecryptionState.ENCRYPTED: "dim",
    DecryptionState.REQUESTING: "yellow",
    DecryptionState.DECRYPTED: "green",
    DecryptionState.FAILED: "red",
}

_STATUS_TEXT = {
    StoreStatus.IDLE: "Not loaded",
    StoreStatus.LOADING: "Loading...",
    StoreStatus.READY: "Ready",
    StoreStatus.DEGRADED: "Ledger unavailable",
}


def _fmt_average(value: Optional[int]) -> str:
    return "N/A" if value is None else str(value)


def print_snapshot(snapshot: ViewSnapshot, console: Optional[Console] = None) -> None:
    """
    Render a view snapshot as a rich table followed by the aggregate summary.

    Encrypted and failed records are always listed; a failure shows its reason.
    """
    console = console or Console()

    status = _STATUS_TEXT[snapshot.status]
    if snapshot.error:
        status = f"{status} [dim]({snapshot.error})[/dim]"

    if not snapshot.records:
        console.print(f"[yellow]No grades submitted yet.[/yellow] Status: {status}")
    else:
        table = Table(
            title="Encrypted Learning Records",
            box=box.ROUNDED,
            caption=f"Status: {status}",
        )
        table.add_column("ID", justify="right", style="cyan", no_wrap=True)
        table.add_column("Subject", style="magenta")
        table.add_column("State")
        table.add_column("Score", justify="right")
        table.add_column("Notes", style="dim")

        for row in snapshot.records:
            style = _STATE_STYLES[row.decryption_state]
            notes = ""
            if row.render_error:
                notes = f"render error: {row.render_error}"
            elif row.failure_reason is not None:
                notes = f"{row.failure_reason.value} (retry possible)"
            table.add_row(
                str(row.id),
                row.subject,
                f"[{style}]{row.decryption_state.value}[/{style}]",
                row.display_label,
                notes,
            )
        console.print(table)

    agg = snapshot.aggregates
    summary = Table(box=box.SIMPLE, show_header=True)
    summary.add_column("Total Courses", justify="right")
    summary.add_column("Decrypted", justify="right")
    summary.add_column("Average Score", justify="right", style="bold green")
    summary.add_column("Global Average", justify="right", style="green")
    summary.add_row(
        str(agg.total_count),
        str(agg.decrypted_count),
        _fmt_average(agg.student_average),
        _fmt_average(agg.global_average),
    )
    console.print(summary)


__all__ = ["print_snapshot"]
