"""``agentic-container cleanup`` and ``list-tags`` — ephemeral PR tags in the registry."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from agentic_container.adapters import ToolCommandError
from agentic_container.cli import services
from agentic_container.cli.output import StatusPrinter
from agentic_container.core.cleanup_sweeper import CleanupSweeper

console = Console()


def cleanup_cmd(
    pr_number: int = typer.Argument(
        None,
        help="Delete every tag of this PR. Without it, tags of closed and merged PRs go.",
        min=1,
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Show what would be deleted without deleting anything.",
    ),
) -> None:
    """Delete ephemeral ``pr-<number>-*`` tags from the registry."""
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)
    sweeper = CleanupSweeper(svc.registry, svc.pull_requests, settings)

    scope = f"PR #{pr_number}" if pr_number else "closed and merged PRs"
    printer.info(f"Sweeping ephemeral tags for {scope}" + (" (dry run)" if dry_run else ""))
    try:
        result = sweeper.sweep(pr_number, dry_run=dry_run)
    except ToolCommandError as exc:
        printer.fail("list registry versions", f"Cannot list registry versions: {exc}")
        printer.summary("Cleanup")
        raise typer.Exit(code=1)

    printer.sweep_result(result)
    if not result.candidates:
        printer.info("No ephemeral tags to delete")
    elif dry_run:
        printer.info(f"{len(result.candidates)} tag(s) would be deleted")
    else:
        printer.success(f"Deleted {len(result.deleted)} tag(s)")
    for failure in result.failed:
        printer.fail(failure.tag.tag, f"Could not delete {failure.tag.tag}: {failure.error}")
    printer.summary("Cleanup")
    if not result.ok:
        raise typer.Exit(code=1)


def list_tags_cmd(
    pr_number: int = typer.Argument(
        None,
        help="Only list tags of this PR.",
        min=1,
    ),
    with_state: bool = typer.Option(
        False,
        "--state",
        help="Look up and show each PR's state.",
    ),
) -> None:
    """List ephemeral PR tags in the registry."""
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)
    sweeper = CleanupSweeper(svc.registry, svc.pull_requests, settings)

    try:
        if with_state:
            lifecycle = sweeper.lifecycle()
            if pr_number is not None:
                lifecycle = [s for s in lifecycle if s.pr_number == pr_number]
            rows = [(t, s.state.value) for s in lifecycle for t in s.tags]
        else:
            rows = [(t, "") for t in sweeper.list_tags(pr_number)]
    except ToolCommandError as exc:
        printer.error(f"Cannot list registry versions: {exc}")
        raise typer.Exit(code=1)

    if not rows:
        printer.info("No ephemeral tags found")
        return

    table = Table(title=f"Ephemeral tags ({settings.registry_image})")
    table.add_column("Tag", style="cyan")
    table.add_column("PR", justify="right")
    if with_state:
        table.add_column("State")
    table.add_column("Created", style="dim")
    for tag, state in rows:
        created = tag.created_at.strftime("%Y-%m-%d %H:%M") if tag.created_at else "-"
        cells = [tag.tag, str(tag.pr_number)]
        if with_state:
            cells.append(state)
        cells.append(created)
        table.add_row(*cells)
    console.print(table)
