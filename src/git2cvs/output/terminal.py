"""Rich terminal reporter — run summary and failure details."""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.table import Table

from git2cvs.metadata.store import BranchMapping
from git2cvs.replay.models import ReplayResult, ReplayState

_STATE_STYLE = {
    ReplayState.DONE: "bold green",
    ReplayState.FAILED: "bold red",
    ReplayState.CANCELLED: "bold yellow",
}


def render(
    result: ReplayResult,
    *,
    show_summary: bool = True,
    console: Optional[Console] = None,
) -> None:
    """Print replay results to the terminal using Rich."""
    console = console or Console(stderr=True)
    console.print()

    if result.ok:
        console.print(
            f"[bold green]✓ Replayed {result.replayed} commit(s) of "
            f"{result.branch} into CVS.[/bold green]"
        )
    elif result.cancelled:
        console.print(
            f"[bold yellow]⚠ Cancelled after {result.replayed} of {result.total} "
            f"commit(s).[/bold yellow]"
        )
    elif result.failure is not None:
        failure = result.failure
        console.print(f"[bold red]✗ Replay of {result.branch} failed.[/bold red]")
        table = Table(show_header=False, border_style="dim")
        table.add_column("Field", style="dim")
        table.add_column("Value")
        table.add_row("Step", failure.step.value)
        table.add_row("Commit", failure.oid or "-")
        table.add_row("Branch index", "-" if failure.branch_index is None else str(failure.branch_index))
        table.add_row("Error", failure.kind)
        table.add_row("Message", failure.message)
        console.print(table)
        console.print(
            "[dim]The CVS checkout and repository are left as they were at the "
            "failing step.[/dim]"
        )

    if show_summary:
        _print_summary(console, result)


def _print_summary(console: Console, result: ReplayResult) -> None:
    style = _STATE_STYLE.get(result.state)
    state = result.state.value
    if style:
        state = f"[{style}]{state}[/{style}]"
    console.print()
    console.print(f"[dim]Branch:[/dim]    {result.branch} → {result.cvs_branch or '-'}")
    console.print(f"[dim]State:[/dim]     {state}")
    console.print(f"[dim]Replayed:[/dim]  {result.replayed}/{result.total}")
    console.print(f"[dim]Duration:[/dim]  {result.duration_ms:.0f}ms")


def render_status(
    mappings: List[BranchMapping],
    counts: dict[str, int],
    *,
    console: Optional[Console] = None,
) -> None:
    """Print the branch mappings recorded in the metadata store."""
    console = console or Console()
    if not mappings:
        console.print("[dim]No branches converted yet.[/dim]")
        return
    table = Table(title="Converted branches", title_style="bold", border_style="dim")
    table.add_column("Git branch", style="cyan")
    table.add_column("CVS name", style="magenta")
    table.add_column("Commits", justify="right", style="green")
    for mapping in mappings:
        table.add_row(mapping.git, mapping.cvs, str(counts.get(mapping.git, 0)))
    console.print(table)
