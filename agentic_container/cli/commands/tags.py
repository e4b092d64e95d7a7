"""``agentic-container tag`` and ``targets`` — tag allocation and the stage graph."""

from __future__ import annotations

import typer
from rich.console import Console

from agentic_container.cli import services
from agentic_container.cli.output import StatusPrinter
from agentic_container.core.tag_allocator import InvalidContextError, allocate, context_from_ci
from agentic_container.models import (
    BranchBuild,
    BuildContext,
    MainBranchBuild,
    ManualBuild,
    PullRequestBuild,
)

console = Console()
# Status lines go to stderr so stdout carries only the tags.
err_console = Console(stderr=True)


def tag_cmd(
    target: str = typer.Option(
        None,
        "--target",
        "-t",
        help="Build target the tags are for (default target when omitted).",
    ),
    pr: int = typer.Option(
        None,
        "--pr",
        help="Pull request number.",
    ),
    sha: str = typer.Option(
        None,
        "--sha",
        help="Commit SHA (at least 7 hex characters).",
    ),
    branch: str = typer.Option(
        None,
        "--branch",
        help="Branch name for a branch build.",
    ),
    custom: str = typer.Option(
        None,
        "--custom",
        help="Explicit tag for a manual build.",
    ),
    fork: bool = typer.Option(
        False,
        "--fork",
        help="Treat the pull request as coming from a fork.",
    ),
) -> None:
    """Print the tags allocated for a build context, one per line.

    Without options the context is read from the GitHub Actions environment.
    """
    settings = services.load_settings()
    printer = StatusPrinter(err_console)

    context: BuildContext
    try:
        if custom is not None:
            context = ManualBuild(custom_tag=custom, target=target)
        elif pr is not None:
            context = PullRequestBuild(pr_number=pr, sha=sha or "", is_fork=fork, target=target)
        elif branch is not None and branch != settings.main_branch:
            context = BranchBuild(branch=branch, sha=sha or "", target=target)
        elif sha is not None:
            context = MainBranchBuild(sha=sha, target=target)
        else:
            context = context_from_ci(settings, target)
        allocation = allocate(context, settings)
    except InvalidContextError as exc:
        printer.error(f"Invalid build context: {exc}")
        raise typer.Exit(code=1)

    for reference in allocation.references:
        typer.echo(reference)
    if allocation.local_only:
        printer.warning("Local-only tag: this build must not be published")


def targets_cmd() -> None:
    """List the build targets declared by the Dockerfile and cookbooks."""
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)
    try:
        graph = svc.stage_graph()
    except OSError as exc:
        printer.error(f"Cannot read the stage graph: {exc}")
        raise typer.Exit(code=1)
    printer.targets(graph)
