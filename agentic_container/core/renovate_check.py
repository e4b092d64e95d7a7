"""Renovate configuration check: do the custom regex managers still have work?"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from agentic_container.adapters import ConfigChecker
from agentic_container.models import CheckStatus, ConfigCheckResult

logger = logging.getLogger(__name__)

# Results whose counts Renovate's custom managers act on.
MANAGED_PATTERNS = ("runtime-args", "tool-args", "script-pins")


class RenovateReport(BaseModel):
    """All findings for one checkout."""

    model_config = ConfigDict(frozen=True)

    root: Path
    results: list[ConfigCheckResult] = []

    @property
    def ok(self) -> bool:
        return not any(r.status is CheckStatus.FAIL for r in self.results)

    @property
    def managed_count(self) -> int:
        return sum(r.count for r in self.results if r.name in MANAGED_PATTERNS)

    @property
    def failures(self) -> list[ConfigCheckResult]:
        return [r for r in self.results if r.status is CheckStatus.FAIL]


def check_renovate(checker: ConfigChecker, root: Path) -> RenovateReport:
    """Run *checker* over *root* and add the managed-pattern total."""
    results = list(checker.check(root))
    report = RenovateReport(root=root, results=results)
    if not report.ok:
        return report
    total = report.managed_count
    if total:
        summary = ConfigCheckResult(
            name="total",
            status=CheckStatus.PASS,
            message=f"Total custom patterns: {total} will be managed by Renovate",
            count=total,
        )
    else:
        summary = ConfigCheckResult(
            name="total",
            status=CheckStatus.WARN,
            message="No custom patterns detected; only standard dependencies will be managed",
        )
    logger.debug("Renovate check of %s: %d managed pins", root, total)
    return report.model_copy(update={"results": [*results, summary]})
