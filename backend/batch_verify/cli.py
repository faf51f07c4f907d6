"""Typer command line: paste identifiers, run a batch, manage the stored API key."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from shared.models.enums import SessionState
from shared.utils.logging import setup_logging
from shared.utils.metrics import start_metrics_server

from batch_verify.config import BatchVerifySettings, get_batch_verify_settings
from batch_verify.credentials import CredentialStore, mask_credential
from batch_verify.exceptions import BatchVerifyError
from batch_verify.export import export_results
from batch_verify.extractor import count_verification_ids, extract_verification_ids
from batch_verify.main import run_batch
from batch_verify.sinks import ConsoleSink

console = Console()

app = typer.Typer(
    add_completion=False,
    help="Submit verification identifiers in bulk and follow their progress.",
    no_args_is_help=True,
)


def _store(settings: BatchVerifySettings) -> CredentialStore:
    return CredentialStore(settings.credential_store_path, settings.credential_store_key)


def _read_input(source: Optional[Path]) -> str:
    if source is None:
        return sys.stdin.read()
    try:
        return source.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"cannot read {source}: {exc}") from exc


def _fail(message: str) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {message}")
    return typer.Exit(code=2)


@app.callback()
def main() -> None:
    """Configure logging and metrics before any command runs."""
    setup_logging("batch-verify")
    start_metrics_server()


@app.command("run")
def run_command(
    source: Optional[Path] = typer.Argument(None, help="File with one identifier or URL per line; stdin if omitted."),
    export: bool = typer.Option(True, "--export/--no-export", help="Write a report file when the batch ends."),
    export_dir: Optional[Path] = typer.Option(None, "--export-dir", help="Directory for the report file."),
) -> None:
    """Run one batch and render progress live."""
    settings = get_batch_verify_settings()
    ids = extract_verification_ids(_read_input(source))
    credential = _store(settings).load()

    try:
        with ConsoleSink(console) as sink:
            result = asyncio.run(run_batch(ids, credential, sink, settings=settings))
    except BatchVerifyError as exc:
        raise _fail(str(exc))

    outcome = result.outcome
    if outcome.state is SessionState.CANCELLED:
        console.print("[yellow]验证已取消[/yellow]")
    if export and len(result.reconciler):
        path = export_results(result.reconciler.get_ordered(), export_dir or settings.export_dir)
        console.print(f"已导出: {path}")
    if outcome.state is SessionState.FAILED:
        raise typer.Exit(code=1)


@app.command("count")
def count_command(
    source: Optional[Path] = typer.Argument(None, help="File to scan; stdin if omitted."),
) -> None:
    """Print how many distinct identifiers the input contains."""
    console.print(count_verification_ids(_read_input(source)))


@app.command("set-key")
def set_key_command(value: str = typer.Argument(..., help="API key to store.")) -> None:
    """Store the API key. Blank values are ignored."""
    store = _store(get_batch_verify_settings())
    if not store.save(value):
        raise _fail("API Key 不能为空")
    console.print(f"✓ {mask_credential(store.load())}")


@app.command("show-key")
def show_key_command() -> None:
    """Show the stored API key, masked."""
    value = _store(get_batch_verify_settings()).load()
    console.print(f"✓ {mask_credential(value)}" if value else mask_credential(value))


@app.command("clear-key")
def clear_key_command() -> None:
    """Remove the stored API key."""
    _store(get_batch_verify_settings()).clear()
    console.print(mask_credential(""))


if __name__ == "__main__":  # pragma: no cover
    app()
