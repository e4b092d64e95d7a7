"""Checks that Renovate's regex managers still find the version pins they manage."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from pathlib import Path

from agentic_container.models import CheckStatus, ConfigCheckResult

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(".github/renovate.json5")

RUNTIME_ARG = re.compile(r"ARG\s+(NODE_VERSION|PYTHON_VERSION|RUBY_VERSION|GO_VERSION)=")
TOOL_ARG = re.compile(r"ARG\s+(AST_GREP_VERSION|LEFTHOOK_VERSION|UV_VERSION)=")
SCRIPT_PIN = re.compile(r"DIVE_VERSION=.*\d+\.\d+\.\d+")
WORKFLOW_PIN = re.compile(r"version:\s*v\d+\.\d+\.\d+")
MISE_PIN = re.compile(r"\w+\s*=\s*\"(latest|\d+\.\d+\.\d+)\"")

_SKIP_DIRS = {".git", "node_modules", ".venv"}
_SAMPLES = 3


def _walk(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if any(part in _SKIP_DIRS for part in path.relative_to(root).parts):
            continue
        if path.is_file():
            yield path


def _grep(paths: list[Path], pattern: re.Pattern[str], root: Path) -> list[str]:
    hits: list[str] = []
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Skipping unreadable %s: %s", path, exc)
            continue
        for line in text.splitlines():
            if pattern.search(line):
                hits.append(f"{path.relative_to(root)}:{line.strip()}")
    return hits


def _pattern_result(
    name: str, hits: list[str], *, found: str, missing: str, missing_status: CheckStatus
) -> ConfigCheckResult:
    if hits:
        return ConfigCheckResult(
            name=name,
            status=CheckStatus.PASS,
            message=found.format(count=len(hits)),
            count=len(hits),
            samples=hits[:_SAMPLES],
        )
    return ConfigCheckResult(name=name, status=missing_status, message=missing)


class RenovatePatternChecker:
    """Scans a repository checkout for the pins Renovate's custom managers track."""

    def check(self, root: Path) -> list[ConfigCheckResult]:
        config = root / CONFIG_PATH
        if not config.is_file():
            return [
                ConfigCheckResult(
                    name="config",
                    status=CheckStatus.FAIL,
                    message=f"Configuration file missing at {CONFIG_PATH}",
                )
            ]

        results = [
            ConfigCheckResult(
                name="config",
                status=CheckStatus.PASS,
                message=f"Configuration file exists at {CONFIG_PATH}",
            )
        ]
        files = list(_walk(root))
        dockerfiles = [p for p in files if "Dockerfile" in p.name]

        results.append(
            _pattern_result(
                "runtime-args",
                _grep(dockerfiles, RUNTIME_ARG, root),
                found="Regex patterns will match {count} language runtime ARG declarations",
                missing="No language runtime ARG declarations found",
                missing_status=CheckStatus.WARN,
            )
        )
        results.append(
            _pattern_result(
                "tool-args",
                _grep(dockerfiles, TOOL_ARG, root),
                found="Regex patterns will match {count} development tool ARG declarations",
                missing="No development tool ARG declarations found",
                missing_status=CheckStatus.WARN,
            )
        )
        scripts = [p for p in files if p.relative_to(root).parts[0] == "scripts"]
        results.append(
            _pattern_result(
                "script-pins",
                _grep(scripts, SCRIPT_PIN, root),
                found="Regex patterns will match {count} script version declarations",
                missing="No script version declarations found",
                missing_status=CheckStatus.WARN,
            )
        )
        results.append(self._workflows(root))
        results.append(self._mise(root))
        results.append(self._package_json(root))
        results.append(
            ConfigCheckResult(
                name="dockerfiles",
                status=CheckStatus.PASS if dockerfiles else CheckStatus.WARN,
                message=(
                    f"Found {len(dockerfiles)} Dockerfile(s); base images will be detected"
                    if dockerfiles
                    else "No Dockerfiles found"
                ),
                count=len(dockerfiles),
            )
        )
        return results

    def _workflows(self, root: Path) -> ConfigCheckResult:
        workflows_dir = root / ".github" / "workflows"
        if not workflows_dir.is_dir():
            return ConfigCheckResult(
                name="workflow-pins",
                status=CheckStatus.WARN,
                message="No .github/workflows directory found",
            )
        workflows = sorted(
            p for p in workflows_dir.rglob("*") if p.suffix in (".yml", ".yaml") and p.is_file()
        )
        return _pattern_result(
            "workflow-pins",
            _grep(workflows, WORKFLOW_PIN, root),
            found=f"Found {{count}} version pins across {len(workflows)} workflow files",
            missing="No 'version: v*' patterns found in workflows",
            missing_status=CheckStatus.INFO,
        )

    def _mise(self, root: Path) -> ConfigCheckResult:
        mise = root / "mise.toml"
        if not mise.is_file():
            return ConfigCheckResult(
                name="mise-pins", status=CheckStatus.WARN, message="No mise.toml file found"
            )
        return _pattern_result(
            "mise-pins",
            _grep([mise], MISE_PIN, root),
            found="Found {count} tool version patterns in mise.toml",
            missing="No version patterns found in mise.toml",
            missing_status=CheckStatus.INFO,
        )

    def _package_json(self, root: Path) -> ConfigCheckResult:
        package = root / "package.json"
        if not package.is_file():
            return ConfigCheckResult(
                name="package-json",
                status=CheckStatus.INFO,
                message="No package.json found; no Node.js dependency updates",
            )
        try:
            data = json.loads(package.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            return ConfigCheckResult(
                name="package-json",
                status=CheckStatus.WARN,
                message=f"package.json could not be parsed: {exc}",
            )
        runtime = len(data.get("dependencies") or {})
        dev = len(data.get("devDependencies") or {})
        return ConfigCheckResult(
            name="package-json",
            status=CheckStatus.PASS,
            message=f"Found package.json: {runtime} runtime, {dev} development dependencies",
            count=runtime + dev,
        )
