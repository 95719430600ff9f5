"""git2cvs CLI — Typer application with replay, status, and init commands."""

from __future__ import annotations

import contextlib
import signal
import tempfile
import threading
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from git2cvs import __version__

app = typer.Typer(
    name="git2cvs",
    help="Replay a git branch's history into a CVS repository.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


def _fail(label: str, exc: Exception, code: int) -> typer.Exit:
    console.print(f"[bold red]{label}:[/bold red] {exc}")
    return typer.Exit(code=code)


@contextlib.contextmanager
def _cancel_on_interrupt():
    """Turn the first Ctrl-C into a request to stop between commits."""
    cancel = threading.Event()

    def _handler(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        console.print("[yellow]Stopping after the current commit (Ctrl-C again to abort).[/yellow]")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


# ── replay ────────────────────────────────────────────────────────────────────


@app.command()
def replay(
    git: str = typer.Option(..., "--git", "-g", help="Path to the git repository"),
    branch: str = typer.Option(..., "--branch", "-b", help="The branch to replay"),
    database: str = typer.Option(..., "--database", "-d", help="Metadata database path"),
    cvsroot: Optional[str] = typer.Option(None, "--cvsroot", "-c", help="CVSROOT (defaults to $CVSROOT)"),
    module: Optional[str] = typer.Option(None, "--module", "-m", help="CVS module to check out"),
    target: Optional[str] = typer.Option(
        None, "--target", "-t", help="Directory inside the checkout to write to; . for top level",
    ),
    remote: bool = typer.Option(False, "--remote", "-r", help="Use a remote-tracking branch"),
    workdir: Optional[str] = typer.Option(None, "--workdir", help="Keep the CVS checkout in this new directory"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to git2cvs.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Report format: terminal | json | yaml"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write report to file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log each replayed commit"),
    debug: bool = typer.Option(False, "--debug", help="Log every git and cvs command"),
) -> None:
    """Replay every commit on BRANCH into a CVS checkout, oldest first."""
    from git2cvs import _logging
    from git2cvs.config.loader import ConfigError, load_config, validate
    from git2cvs.cvs.driver import CvsContext, DriverError, sanitise_module_name
    from git2cvs.git.adapter import GitRepository, HistoryReadError
    from git2cvs.metadata.store import MetadataError, MetadataStore
    from git2cvs.output import json_report, terminal, yaml_report
    from git2cvs.replay.engine import ReplayEngine
    from git2cvs.replay.materializer import WorkingCheckout

    # --- Load config ---
    try:
        cfg = load_config(Path.cwd(), config)
    except ConfigError as exc:
        raise _fail("Config error", exc, 2) from exc

    # --- CLI overrides ---
    if cvsroot:
        cfg.cvs.cvsroot = cvsroot
    if module:
        cfg.cvs.module = module
    if target:
        cfg.cvs.target = target
    if remote:
        cfg.git.remote = True
    if workdir:
        cfg.replay.workdir = workdir
    if format:
        cfg.output.format = format  # type: ignore[assignment]
    if debug:
        cfg.logging.level = "debug"
    elif verbose:
        cfg.logging.level = "info"
    try:
        validate(cfg)
    except ConfigError as exc:
        raise _fail("Config error", exc, 2) from exc

    _logging.configure(cfg.logging.level, console=console)

    if not cfg.cvs.cvsroot:
        console.print("[bold red]Error:[/bold red] no CVSROOT given (use --cvsroot or set CVSROOT)")
        raise typer.Exit(code=2)

    # --- Source history: fail before touching CVS ---
    try:
        repo = GitRepository.open(git, timeout=cfg.git.timeout)
        repo.resolve_branch(branch, remote=cfg.git.remote)
    except HistoryReadError as exc:
        raise _fail("Git error", exc, 1) from exc

    with contextlib.ExitStack() as stack:
        try:
            store = stack.enter_context(MetadataStore.open(database))
        except MetadataError as exc:
            raise _fail("Metadata error", exc, 2) from exc

        if cfg.replay.workdir:
            checkout_dir = Path(cfg.replay.workdir)
            if checkout_dir.exists():
                console.print(f"[bold red]Error:[/bold red] workdir already exists: {checkout_dir}")
                raise typer.Exit(code=2)
        else:
            tmp = stack.enter_context(tempfile.TemporaryDirectory(prefix="git2cvs-"))
            checkout_dir = Path(tmp) / "checkout"

        try:
            driver = CvsContext(cfg.cvs.binary).checkout(
                cfg.cvs.cvsroot,
                cfg.cvs.module,
                checkout_dir,
                author_trailer=cfg.cvs.author_trailer,
            )
        except DriverError as exc:
            raise _fail("CVS error", exc, 1) from exc

        checkout = WorkingCheckout(checkout_dir, cfg.cvs.target)
        cancel = stack.enter_context(_cancel_on_interrupt())

        if cfg.output.format == "terminal":
            from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

            progress = stack.enter_context(
                Progress(
                    TextColumn("[bold]{task.description}"),
                    BarColumn(),
                    MofNCompleteColumn(),
                    TextColumn("[dim]{task.fields[oid]}"),
                    console=console,
                    transient=True,
                )
            )
            task = progress.add_task(f"Replaying {branch}", total=None, oid="")

            def on_progress(done, total, commit):
                progress.update(task, completed=done, total=total, oid=commit.short_oid)
        else:
            on_progress = None

        engine = ReplayEngine(
            repo,
            driver,
            store,
            checkout,
            set_mtime=cfg.replay.set_mtime,
            cancel=cancel,
            on_progress=on_progress,
        )
        result = engine.run(branch, sanitise_module_name(branch), remote=cfg.git.remote)

    # --- Output ---
    report_text: Optional[str] = None

    if cfg.output.format == "terminal":
        terminal.render(result, show_summary=cfg.output.show_summary, console=console)
    elif cfg.output.format == "json":
        report_text = json_report.render(result)
        print(report_text)
    elif cfg.output.format == "yaml":
        report_text = yaml_report.render(result)
        print(report_text, end="")

    if output:
        Path(output).write_text(report_text or json_report.render(result), encoding="utf-8")
        if verbose:
            console.print(f"[dim]Report written to {output}[/dim]")

    if cfg.replay.workdir and not result.ok:
        console.print(f"[dim]Checkout kept at {cfg.replay.workdir}[/dim]")

    raise typer.Exit(code=0 if result.ok else 1)


# ── status ────────────────────────────────────────────────────────────────────


@app.command()
def status(
    database: str = typer.Option(..., "--database", "-d", help="Metadata database path"),
    branch: Optional[str] = typer.Option(None, "--branch", "-b", help="Show the commits of one branch"),
) -> None:
    """Show what the metadata database says has been converted."""
    from rich.table import Table

    from git2cvs.metadata.store import MetadataError, MetadataStore
    from git2cvs.output import terminal

    out = Console()
    if not Path(database).is_file():
        console.print(f"[bold red]Error:[/bold red] no metadata database at {database}")
        raise typer.Exit(code=2)

    try:
        with MetadataStore.open(database) as store:
            if branch is None:
                mappings = store.list_branch_mappings()
                counts = {m.git: store.count_commits(m.git) for m in mappings}
                terminal.render_status(mappings, counts, console=out)
                return
            cvs_name = store.get_branch_mapping(branch)
            records = store.list_commits(branch)
    except MetadataError as exc:
        raise _fail("Metadata error", exc, 2) from exc

    if cvs_name is None:
        console.print(f"[yellow]Branch {branch} has not been converted.[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"{branch} → {cvs_name}", title_style="bold", border_style="dim")
    table.add_column("Index", justify="right", style="green")
    table.add_column("Commit", style="cyan")
    for record in records:
        table.add_row(str(record.branch_index), record.oid)
    out.print(table)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init() -> None:
    """Generate a starter git2cvs.toml in the current directory."""
    from git2cvs.config.defaults import CONFIG_FILENAME, DEFAULT_TOML

    config_path = Path.cwd() / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"git2cvs {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """git2cvs — replay a git branch's history into a CVS repository."""
