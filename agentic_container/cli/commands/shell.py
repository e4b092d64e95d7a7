"""``agentic-container shell [TARGET|COOKBOOK] [TAG] [-- COMMAND...]``.

Builds the target when needed, then starts a throwaway container: an
interactive session by default, or the given one-off command.  The
container is removed on exit.
"""

from __future__ import annotations

import typer
from rich.console import Console

from agentic_container.cli import services
from agentic_container.cli.output import StatusPrinter
from agentic_container.core.build_orchestrator import BuildFailure
from agentic_container.core.stage_graph import StageGraph, UnknownTargetError

console = Console()

WELCOME = (
    'echo "Welcome to your agentic container!"; '
    'echo "Useful commands: mise list, mise current, exit"; '
    "exec /bin/bash"
)


def split_shell_args(
    args: list[str], graph: StageGraph, default_target: str
) -> tuple[str, str | None, list[str]]:
    """Split ``[TARGET] [TAG] [COMMAND...]`` into its parts.

    The first token is a target only when the graph declares it; the next
    token is a tag only when it looks like an image reference (has a ``:``).
    Everything else is the command.
    """
    rest = list(args)
    target = default_target
    if rest and rest[0] in graph:
        target = rest.pop(0)
    tag = None
    if rest and ":" in rest[0] and not rest[0].startswith("-"):
        tag = rest.pop(0)
    return target, tag, rest


def shell_cmd(
    args: list[str] = typer.Argument(
        None,
        help="[TARGET|COOKBOOK] [TAG] [-- COMMAND...]",
        show_default=False,
    ),
    secret: bool = typer.Option(
        True,
        "--secret/--no-secret",
        help="Pass the GitHub token to the build as a secret.",
    ),
) -> None:
    """Open a shell (or run a command) in a freshly built container."""
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)

    try:
        orchestrator = svc.orchestrator()
    except OSError as exc:
        printer.error(f"Cannot read the stage graph: {exc}")
        raise typer.Exit(code=1)

    target, tag, command = split_shell_args(args or [], orchestrator.graph, settings.default_target)
    image = tag or orchestrator.stage_reference(target)

    printer.info(f"Preparing {target} as {image}")
    try:
        orchestrator.build(target, image, secrets=svc.secrets(secret), only_if_stale=True)
    except UnknownTargetError as exc:
        printer.error(str(exc))
        raise typer.Exit(code=1)
    except BuildFailure as exc:
        printer.raw(exc.output)
        printer.fail(target, str(exc))
        printer.summary("Shell")
        raise typer.Exit(code=1)

    env = settings.mise_env()
    if command:
        printer.info(f"Running {' '.join(command)}")
        status, output = svc.runner.run(image, command, env=env, capture=False)
    else:
        printer.info("Starting interactive shell; the container is removed on exit")
        status, output = svc.runner.run(
            image, ["/bin/bash", "-c", WELCOME], interactive=True, env=env, capture=False
        )
    printer.raw(output)
    if status != 0:
        raise typer.Exit(code=status)
