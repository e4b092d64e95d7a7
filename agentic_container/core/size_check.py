"""Image size and layer efficiency checks on top of dive's analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from agentic_container.adapters import ImageAnalyzer
from agentic_container.models import ImageAnalysis, SizeReport, ThresholdCheck

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


def _whole_mb(size_bytes: int) -> int:
    """Whole megabytes, truncated toward zero so a small shrink reads as 0."""
    return int(size_bytes / _MB)


REPORT_FORMATS = ("text", "json", "github")


class SizeThresholds(BaseModel):
    """Limits an image must stay within."""

    model_config = ConfigDict(frozen=True)

    min_efficiency: float = 0.85
    max_waste_percent: float = 15
    max_waste_mb: int = 200
    max_increase_percent: float = 10
    max_increase_mb: int = 100

    @classmethod
    def ci(cls) -> SizeThresholds:
        """The stricter profile used in CI."""
        return cls(min_efficiency=0.9, max_waste_percent=10, max_waste_mb=100)


def evaluate(
    analysis: ImageAnalysis,
    thresholds: SizeThresholds,
    baseline: ImageAnalysis | None = None,
) -> SizeReport:
    checks = [
        ThresholdCheck(
            name="efficiency",
            passed=analysis.efficiency >= thresholds.min_efficiency,
            actual=analysis.efficiency,
            limit=thresholds.min_efficiency,
            message=(
                f"Efficiency {analysis.efficiency * 100:.1f}% "
                f"(minimum {thresholds.min_efficiency * 100:.1f}%)"
            ),
        ),
        ThresholdCheck(
            name="waste-percent",
            passed=analysis.waste_percent <= thresholds.max_waste_percent,
            actual=round(analysis.waste_percent, 1),
            limit=thresholds.max_waste_percent,
            message=(
                f"Waste {analysis.waste_percent:.1f}% "
                f"(maximum {thresholds.max_waste_percent:g}%)"
            ),
        ),
        ThresholdCheck(
            name="waste-mb",
            passed=analysis.wasted_mb <= thresholds.max_waste_mb,
            actual=analysis.wasted_mb,
            limit=thresholds.max_waste_mb,
            message=f"Waste {analysis.wasted_mb}MB (maximum {thresholds.max_waste_mb}MB)",
        ),
    ]
    if baseline is not None:
        checks.append(_increase_check(analysis, baseline, thresholds))
    return SizeReport(analysis=analysis, baseline=baseline, checks=checks)


def _increase_check(
    analysis: ImageAnalysis, baseline: ImageAnalysis, thresholds: SizeThresholds
) -> ThresholdCheck:
    diff = analysis.size_bytes - baseline.size_bytes
    diff_mb = _whole_mb(diff)
    percent = diff * 100 / baseline.size_bytes if baseline.size_bytes else 0.0
    if diff_mb > thresholds.max_increase_mb:
        return ThresholdCheck(
            name="size-increase",
            passed=False,
            actual=diff_mb,
            limit=thresholds.max_increase_mb,
            message=f"Size increase {diff_mb}MB exceeds maximum {thresholds.max_increase_mb}MB",
        )
    if percent > thresholds.max_increase_percent:
        return ThresholdCheck(
            name="size-increase",
            passed=False,
            actual=round(percent, 1),
            limit=thresholds.max_increase_percent,
            message=(
                f"Size increase {percent:.1f}% exceeds maximum "
                f"{thresholds.max_increase_percent:g}%"
            ),
        )
    return ThresholdCheck(
        name="size-increase",
        passed=True,
        actual=diff_mb,
        limit=thresholds.max_increase_mb,
        message=f"Size change {diff_mb}MB ({percent:.1f}%) within limits",
    )


class SizeChecker:
    """Analyzes an image (and an optional baseline) and applies thresholds."""

    def __init__(self, analyzer: ImageAnalyzer, thresholds: SizeThresholds | None = None) -> None:
        self._analyzer = analyzer
        self.thresholds = thresholds or SizeThresholds()

    def check(self, image: str, baseline_image: str | None = None) -> SizeReport:
        logger.info("Analyzing %s", image)
        analysis = self._analyzer.analyze(image)
        baseline = None
        if baseline_image:
            logger.info("Analyzing baseline %s", baseline_image)
            baseline = self._analyzer.analyze(baseline_image)
        return evaluate(analysis, self.thresholds, baseline)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def render_text(report: SizeReport) -> str:
    analysis = report.analysis
    lines = [
        f"Image Analysis Report: {analysis.image}",
        f"Image Size: {analysis.size_mb}MB",
        f"Efficiency: {analysis.efficiency * 100:.1f}%",
        f"Wasted Space: {analysis.wasted_mb}MB",
    ]
    if report.size_change_bytes is not None:
        lines += ["", f"Size Change from Baseline: {_whole_mb(report.size_change_bytes)}MB"]
    lines += ["", "Top 5 Largest Layers:"]
    for position, layer in enumerate(analysis.largest_layers(5), start=1):
        lines.append(f"  {position}. {layer.size_mb}MB: {layer.command}")
    return "\n".join(lines)


def render_json(report: SizeReport) -> dict:
    analysis = report.analysis
    change = report.size_change_bytes
    return {
        "image": analysis.image,
        "timestamp": report.timestamp_utc.isoformat(),
        "passed": report.passed,
        "analysis": analysis.model_dump(mode="json"),
        "baseline": report.baseline.model_dump(mode="json") if report.baseline else None,
        "checks": [c.model_dump(mode="json") for c in report.checks],
        "summary": {
            "size_mb": analysis.size_mb,
            "efficiency_percent": int(analysis.efficiency * 100),
            "waste_mb": analysis.wasted_mb,
            "change_mb": _whole_mb(change) if change is not None else None,
        },
    }


def render_github(report: SizeReport) -> str:
    analysis = report.analysis
    text = (
        f"## Image Analysis: {analysis.image}\n\n"
        "| Metric | Value |\n"
        "|--------|-------|\n"
        f"| Size | {analysis.size_mb}MB |\n"
        f"| Efficiency | {analysis.efficiency * 100:.1f}% |\n"
        f"| Wasted Space | {analysis.wasted_mb}MB |\n\n"
    )
    change = report.size_change_bytes
    if change is not None:
        if change > 100 * _MB:
            marker = ":red_circle:"
        elif change > 10 * _MB:
            marker = ":yellow_circle:"
        else:
            marker = ":green_circle:"
        text += f"### Size Change from Baseline\n{marker} **{_whole_mb(change)}MB** change from baseline\n\n"
    return text


def write_report(
    report: SizeReport,
    fmt: str,
    output_dir: Path,
    step_summary: Path | None = None,
) -> Path | None:
    """Persist a ``json`` or ``github`` report; ``text`` writes nothing.

    Returns the file written, if any.
    """
    if fmt not in REPORT_FORMATS:
        raise ValueError(f"Unknown report format {fmt!r}; expected one of {REPORT_FORMATS}")
    if fmt == "json":
        output_dir.mkdir(parents=True, exist_ok=True)
        name = report.analysis.image.rsplit("/", 1)[-1].replace(":", "-")
        path = output_dir / f"{name}-report.json"
        path.write_text(json.dumps(render_json(report), indent=2), encoding="utf-8")
        return path
    if fmt == "github":
        if step_summary is None:
            logger.warning("GITHUB_STEP_SUMMARY is not set; skipping the step summary")
            return None
        with step_summary.open("a", encoding="utf-8") as handle:
            handle.write(render_github(report))
        return step_summary
    return None
