"""Rich terminal output shared by every command.

Color scheme
------------
- cyan      : info
- green     : success / passed
- yellow    : warning / retained
- red       : error / failed
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from agentic_container.core.stage_graph import StageGraph
from agentic_container.models import (
    CheckStatus,
    ConfigCheckResult,
    SizeReport,
    SweepResult,
    ValidationReport,
)

_STATUS_STYLES: dict[CheckStatus, str] = {
    CheckStatus.PASS: "[green]PASS[/green]",
    CheckStatus.WARN: "[yellow]WARN[/yellow]",
    CheckStatus.FAIL: "[bold red]FAIL[/bold red]",
    CheckStatus.INFO: "[blue]INFO[/blue]",
}


def configure_logging(level: str, console: Console | None = None) -> None:
    """Route stdlib logging through a RichHandler at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


class StatusPrinter:
    """Colored status lines plus a closing summary of failed checks.

    Status messages are plain text; markup in them is escaped.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.failures: list[str] = []

    # ------------------------------------------------------------------
    # Status lines
    # ------------------------------------------------------------------

    def info(self, message: str) -> None:
        self.console.print(f"[cyan]INFO[/cyan]  {escape(message)}")

    def success(self, message: str) -> None:
        self.console.print(f"[green]OK[/green]    {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]WARN[/yellow]  {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]ERROR[/bold red] {escape(message)}")

    def fail(self, name: str, message: str | None = None) -> None:
        """Record a failed check by *name* and print it."""
        self.failures.append(name)
        self.error(message or name)

    def raw(self, text: str) -> None:
        """Print tool output verbatim, without markup or highlighting."""
        if text.strip():
            self.console.print(text.rstrip(), markup=False, highlight=False)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self, title: str) -> None:
        if self.ok:
            self.console.print(
                Panel("[bold green]All checks passed.[/bold green]", title=title, border_style="green")
            )
            return
        lines = [f"[bold red]{len(self.failures)} failed:[/bold red]"]
        lines += [f"  [red]- {escape(name)}[/red]" for name in self.failures]
        self.console.print(Panel("\n".join(lines), title=title, border_style="red"))

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def validation_report(self, report: ValidationReport) -> None:
        table = Table(title=f"Validation: {report.image}")
        table.add_column("Assertion", style="cyan")
        table.add_column("Result", justify="center")
        table.add_column("Details")
        for result in report.passed:
            table.add_row(result.key, "[green]PASS[/green]", "")
        for result in report.failed:
            table.add_row(result.key, "[bold red]FAIL[/bold red]", escape(result.message))
        self.console.print(table)
        self.console.print(
            f"[bold]{len(report.passed)}[/bold] passed, "
            f"[bold]{len(report.failed)}[/bold] failed "
            f"([dim]{report.duration_seconds:.1f}s[/dim])"
        )

    def sweep_result(self, result: SweepResult) -> None:
        title = "Cleanup (dry run)" if result.dry_run else "Cleanup"
        table = Table(title=title)
        table.add_column("Tag", style="cyan")
        table.add_column("Action")
        deleted = {t.tag for t in result.deleted}
        for tag in result.candidates:
            if tag.tag in deleted:
                action = "[green]deleted[/green]"
            elif result.dry_run:
                action = "[yellow]would delete[/yellow]"
            else:
                action = "[red]failed[/red]"
            table.add_row(tag.tag, action)
        for tag in result.retained:
            table.add_row(tag.tag, "[dim]retained[/dim]")
        self.console.print(table)

    def targets(self, graph: StageGraph) -> None:
        table = Table(title="Build targets")
        table.add_column("Target", style="cyan", no_wrap=True)
        table.add_column("Parent")
        table.add_column("Kind")
        table.add_column("Dockerfile", style="dim")
        for name in graph.target_names:
            target = graph.get(name)
            kind = "stage" if target.is_multistage_stage else "extension"
            table.add_row(name, target.parent or "-", kind, str(target.dockerfile))
        self.console.print(table)

    def size_report(self, report: SizeReport) -> None:
        table = Table(title=f"Size checks: {report.analysis.image}")
        table.add_column("Check", style="cyan")
        table.add_column("Result", justify="center")
        table.add_column("Details")
        for check in report.checks:
            mark = "[green]PASS[/green]" if check.passed else "[bold red]FAIL[/bold red]"
            table.add_row(check.name, mark, escape(check.message))
        self.console.print(table)

    def config_results(self, results: list[ConfigCheckResult]) -> None:
        for result in results:
            self.console.print(f"{_STATUS_STYLES[result.status]}  {escape(result.message)}")
            for sample in result.samples:
                self.console.print(f"      [dim]{escape(sample)}[/dim]", highlight=False)
