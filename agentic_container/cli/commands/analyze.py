"""``agentic-container analyze IMAGE [BASELINE]`` — size and efficiency checks with dive."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console

from agentic_container.adapters import ToolCommandError
from agentic_container.cli import services
from agentic_container.cli.output import StatusPrinter
from agentic_container.core.size_check import (
    REPORT_FORMATS,
    SizeChecker,
    SizeThresholds,
    render_json,
    render_text,
    write_report,
)

console = Console()


def analyze_cmd(
    image: str = typer.Argument(..., help="Image to analyze."),
    baseline: str = typer.Argument(None, help="Baseline image to compare sizes against."),
    ci: bool = typer.Option(
        False,
        "--ci",
        help="Use the stricter CI thresholds (90% efficiency, 10% / 100MB waste).",
    ),
    fmt: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Report format: text, json or github (step summary).",
    ),
    output_dir: Path = typer.Option(
        None,
        "--output-dir",
        "-o",
        help="Directory for JSON reports (default: the configured reports dir).",
    ),
    min_efficiency: float = typer.Option(None, "--min-efficiency", help="Minimum efficiency (0-1)."),
    max_waste_percent: float = typer.Option(None, "--max-waste-percent", help="Maximum waste %."),
    max_waste_mb: int = typer.Option(None, "--max-waste-mb", help="Maximum waste in MB."),
    max_increase_percent: float = typer.Option(
        None, "--max-increase-percent", help="Maximum size increase % over the baseline."
    ),
    max_increase_mb: int = typer.Option(
        None, "--max-increase-mb", help="Maximum size increase in MB over the baseline."
    ),
) -> None:
    """Analyze image size and layer efficiency; exit 1 when a threshold is exceeded."""
    if fmt not in REPORT_FORMATS:
        raise typer.BadParameter(
            f"must be one of {', '.join(REPORT_FORMATS)}", param_hint="--format"
        )
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)

    thresholds = SizeThresholds.ci() if ci else SizeThresholds()
    overrides = {
        "min_efficiency": min_efficiency,
        "max_waste_percent": max_waste_percent,
        "max_waste_mb": max_waste_mb,
        "max_increase_percent": max_increase_percent,
        "max_increase_mb": max_increase_mb,
    }
    thresholds = thresholds.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )

    try:
        report = SizeChecker(svc.analyzer, thresholds).check(image, baseline)
    except (ToolCommandError, json.JSONDecodeError) as exc:
        printer.fail("analysis", f"Image analysis failed: {exc}")
        printer.summary("Image size")
        raise typer.Exit(code=1)

    printer.size_report(report)
    if fmt == "text":
        printer.raw(render_text(report))
    elif fmt == "json":
        path = write_report(report, fmt, output_dir or settings.resolve(settings.reports_dir))
        printer.info(f"JSON report saved to {path}")
    else:
        path = write_report(report, fmt, settings.reports_dir, settings.github_step_summary)
        if path is None:
            printer.raw(json.dumps(render_json(report)["summary"]))

    for check in report.checks:
        if not check.passed:
            printer.failures.append(check.name)
    printer.summary(f"Image size: {image}")
    if not report.passed:
        raise typer.Exit(code=1)
