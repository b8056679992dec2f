"""Command-line entry point."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer

from mcfetcher.config import load_config
from mcfetcher.errors import ConfigError
from mcfetcher.fetch import run_fetch
from mcfetcher.observability import setup_logging

log = structlog.get_logger()

CONFIG_ERROR_EXIT = 2

app = typer.Typer(
    help="Fetch, filter, and sanitize objects across Kubernetes clusters.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main() -> None:
    """Fetch, filter, and sanitize objects across Kubernetes clusters."""


@app.command()
def fetch(
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="YAML config file with the 'gvk' policy section."),
    ] = None,
    work_dir: Annotated[
        Optional[Path],
        typer.Option("--work-dir", "-d", help="Cache directory. Default '.' (env MCFETCHER_WORK_DIR)."),
    ] = None,
    kubeconfig: Annotated[
        Optional[Path],
        typer.Option("--kubeconfig", help="kubeconfig path (env MCFETCHER_KUBECONFIG)."),
    ] = None,
    contexts: Annotated[
        Optional[list[str]],
        typer.Option(
            "--kubeconfig-contexts",
            help="Context to fetch from; repeat or comma-separate (env MCFETCHER_KUBECONFIG_CONTEXTS).",
        ),
    ] = None,
    concurrency: Annotated[
        Optional[int],
        typer.Option("--concurrency", "-j", help="Number of contexts fetched in parallel. Default 10."),
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", help="debug, info, warning or error.")] = "info",
) -> None:
    """Fetch every configured kind from every context, reusing cached results."""
    setup_logging(log_level)
    start = time.monotonic()

    flattened = [c for value in contexts for c in value.split(",") if c] if contexts else None
    try:
        fetch_config = load_config(
            config,
            work_dir=work_dir,
            kubeconfig=kubeconfig,
            contexts=flattened,
            concurrency=concurrency,
        )
    except ConfigError as e:
        log.error("invalid_configuration", error=str(e))
        raise typer.Exit(code=CONFIG_ERROR_EXIT) from None

    try:
        exit_code = run_fetch(fetch_config)
    finally:
        log.info("done", total_duration_s=round(time.monotonic() - start, 3))
    raise typer.Exit(code=exit_code)
