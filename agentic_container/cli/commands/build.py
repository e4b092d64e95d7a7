"""``agentic-container build [TARGET] [TAG]`` — build a stage or cookbook.

Parent stages are built first when missing or older than the Dockerfile.
With ``--ci`` the tags come from the Tag Allocator for the current GitHub
Actions context instead of the TAG argument.
"""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from agentic_container.cli import services
from agentic_container.cli.output import StatusPrinter
from agentic_container.core.build_orchestrator import BuildFailure
from agentic_container.core.stage_graph import UnknownTargetError
from agentic_container.core.tag_allocator import InvalidContextError, allocate, context_from_ci

console = Console()


def parse_build_args(values: list[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` strings into a mapping."""
    parsed = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {value!r}", param_hint="--build-arg")
        parsed[key] = val
    return parsed


def build_cmd(
    target: str = typer.Argument(
        None,
        help="Stage or cookbook to build (default: the configured default target).",
    ),
    tag: str = typer.Argument(
        None,
        help="Image reference to tag the result with (default: <local_image>:local).",
    ),
    build_arg: list[str] = typer.Option(
        [],
        "--build-arg",
        "-b",
        help="Build argument override as KEY=VALUE (repeatable).",
    ),
    secret: bool = typer.Option(
        True,
        "--secret/--no-secret",
        help="Pass the GitHub token to the build as a secret.",
    ),
    ci_tags: bool = typer.Option(
        False,
        "--ci",
        help="Tag with the tags allocated for the current CI context.",
    ),
) -> None:
    """Build a target and every parent stage it needs."""
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)
    target = target or settings.default_target
    overrides = parse_build_args(build_arg)

    try:
        orchestrator = svc.orchestrator()
        orchestrator.graph.get(target)
    except UnknownTargetError as exc:
        printer.error(str(exc))
        raise typer.Exit(code=1)
    except OSError as exc:
        printer.error(f"Cannot read the stage graph: {exc}")
        raise typer.Exit(code=1)

    if ci_tags:
        try:
            allocation = allocate(context_from_ci(settings, target), settings)
        except InvalidContextError as exc:
            printer.error(f"Invalid build context: {exc}")
            raise typer.Exit(code=1)
        tags = allocation.references
        if allocation.local_only:
            printer.warning("Fork pull request: building a local-only image")
    else:
        tags = [tag or f"{settings.local_image}:local"]
    stage_ref = orchestrator.stage_reference(target)
    if stage_ref not in tags:
        tags.append(stage_ref)

    printer.info(f"Building {target} as {', '.join(tags)}")
    try:
        result = orchestrator.build(target, tags, overrides, svc.secrets(secret))
    except BuildFailure as exc:
        printer.raw(exc.output)
        printer.fail(target, str(exc))
        printer.summary("Build")
        raise typer.Exit(code=1)

    for parent in result.reused_parents:
        printer.info(f"Reused up-to-date parent {parent}")
    for parent in result.built_parents:
        printer.success(f"Built parent {parent}")
    printer.success(f"Built {target} in {result.duration_seconds:.1f}s")
    console.print(
        Panel(
            "\n".join([
                f"[bold]Target:[/bold] {target}",
                f"[bold]Tags:[/bold]   {', '.join(tags)}",
                f"[bold]Digest:[/bold] {result.digest or '-'}",
            ]),
            title="[bold]Build complete[/bold]",
            border_style="green",
        )
    )
