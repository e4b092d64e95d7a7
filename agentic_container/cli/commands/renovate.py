"""``agentic-container check-renovate [ROOT]`` — verify Renovate's regex managers match."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from agentic_container.cli import services
from agentic_container.cli.output import StatusPrinter
from agentic_container.core.renovate_check import check_renovate

console = Console()


def check_renovate_cmd(
    root: Path = typer.Argument(
        None,
        help="Repository checkout to scan (default: the project root).",
    ),
) -> None:
    """Check that the version pins Renovate manages are still where its patterns look."""
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)

    root = root or settings.project_root
    if not root.is_dir():
        printer.error(f"{root} is not a directory")
        raise typer.Exit(code=1)

    report = check_renovate(svc.config_checker, root)
    printer.config_results(report.results)
    for failure in report.failures:
        printer.failures.append(failure.name)
    printer.summary("Renovate configuration")
    if not report.ok:
        raise typer.Exit(code=1)
