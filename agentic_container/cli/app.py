"""Main Typer application — imports and registers all CLI commands.

Entry point: ``agentic-container`` (configured via pyproject.toml scripts).

Commands: build, test, shell, cleanup, list-tags, tag, targets, analyze,
check-renovate.
"""

from __future__ import annotations

import typer
from rich.console import Console

from agentic_container.cli import services
from agentic_container.cli.commands.analyze import analyze_cmd
from agentic_container.cli.commands.build import build_cmd
from agentic_container.cli.commands.cleanup import cleanup_cmd, list_tags_cmd
from agentic_container.cli.commands.renovate import check_renovate_cmd
from agentic_container.cli.commands.shell import shell_cmd
from agentic_container.cli.commands.tags import tag_cmd, targets_cmd
from agentic_container.cli.commands.testing import image_test_cmd
from agentic_container.cli.output import configure_logging

app = typer.Typer(
    name="agentic-container",
    help="agentic-container: build, validate and tag the agentic container images.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug output, including every external command run.",
    ),
) -> None:
    """Configure logging before any command runs."""
    level = "DEBUG" if verbose else services.load_settings().log_level
    configure_logging(level, Console(stderr=True))


# Register subcommands
app.command(name="build", help="Build a target and the parent stages it needs.")(build_cmd)
app.command(name="test", help="Build if stale, then validate with goss.")(image_test_cmd)
app.command(
    name="shell",
    help="Open a shell or run a command in a built container.",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)(shell_cmd)
app.command(name="cleanup", help="Delete ephemeral PR tags from the registry.")(cleanup_cmd)
app.command(name="list-tags", help="List ephemeral PR tags in the registry.")(list_tags_cmd)
app.command(name="tag", help="Print the tags allocated for a build context.")(tag_cmd)
app.command(name="targets", help="List the declared build targets.")(targets_cmd)
app.command(name="analyze", help="Check image size and efficiency with dive.")(analyze_cmd)
app.command(
    name="check-renovate", help="Check that Renovate's version patterns still match."
)(check_renovate_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
