"""End-to-end integration tests — a pull request image from tag to cleanup.

These tests exercise the Tag Allocator, StageGraph, BuildOrchestrator,
ValidationRunner and CleanupSweeper working together against fake adapters.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from agentic_container.config import BuildSettings
from agentic_container.core.build_orchestrator import BuildOrchestrator, BuildSecrets
from agentic_container.core.cleanup_sweeper import CleanupSweeper
from agentic_container.core.specs import SMOKE_SPEC
from agentic_container.core.stage_graph import StageGraph
from agentic_container.core.tag_allocator import allocate, context_from_ci
from agentic_container.core.validation_runner import ValidationRunner
from agentic_container.models import PRState, PullRequestBuild, RegistryVersion

from conftest import FakeEngine, FakeLookup, FakeRegistry, FakeValidator

SHA = "abc1234def5678"


class TestPullRequestFlow:
    """Allocate → build → validate → publish → merge → sweep."""

    @pytest.fixture
    def ci_settings(self, make_settings, project: Path) -> BuildSettings:
        event = project / "event.json"
        event.write_text(
            '{"pull_request": {"number": 110, "head": {"sha": "%s", '
            '"repo": {"full_name": "example/agentic-container"}}}}' % SHA,
            encoding="utf-8",
        )
        return make_settings(
            ci=True,
            github_actions=True,
            github_event_name="pull_request",
            github_event_path=event,
            github_sha="ffffffff",
        )

    def test_pull_request_lifecycle(self, ci_settings: BuildSettings, project: Path):
        # Allocate
        context = context_from_ci(ci_settings, "dev")
        assert context == PullRequestBuild(pr_number=110, sha=SHA, target="dev")
        allocation = allocate(context, ci_settings)
        assert allocation.publish is True
        assert allocation.references == ["ghcr.io/example/agentic-container:pr-110-abc1234-dev"]

        # Build: CI rebuilds every stage in parent order
        engine = FakeEngine()
        graph = StageGraph.from_project(project / "Dockerfile", project / "docs" / "cookbooks")
        orchestrator = BuildOrchestrator(ci_settings, graph, engine)
        result = orchestrator.build(
            "dev", allocation.references, secrets=BuildSecrets.from_settings(ci_settings)
        )
        assert engine.built_targets[-2:] == ["standard", "dev"]
        assert result.tag == allocation.primary.reference
        assert result.digest.startswith("sha256:")

        # Validate the exact image that was tagged
        validator = FakeValidator()
        report = ValidationRunner(validator).validate(
            allocation.primary.reference, [project / "goss" / "dev.yaml"], [SMOKE_SPEC]
        )
        assert report.ok
        assert report.exit_code == 0
        assert validator.calls[0][0] == allocation.primary.reference

        # Publish, then sweep while the PR is still open
        registry = FakeRegistry(
            [
                RegistryVersion(version_id="10", tags=[t.tag for t in allocation.tags]),
                RegistryVersion(version_id="11", tags=["latest", "sha-1234567"]),
            ]
        )
        lookup = FakeLookup({110: PRState.OPEN})
        sweeper = CleanupSweeper(registry, lookup, ci_settings)
        assert sweeper.sweep().deleted == []
        assert [t.tag for t in sweeper.list_tags(110)] == ["pr-110-abc1234-dev"]

        # Merge, sweep again
        lookup.states[110] = PRState.MERGED
        swept = sweeper.sweep()
        assert [t.tag for t in swept.deleted] == ["pr-110-abc1234-dev"]
        assert registry.deleted == ["10"]
        assert sweeper.list_tags() == []
        assert [v.version_id for v in registry.versions] == ["11"]

    def test_failed_assertion_fails_the_pr_image(
        self, ci_settings: BuildSettings, project: Path
    ):
        allocation = allocate(context_from_ci(ci_settings), ci_settings)
        graph = StageGraph.from_project(project / "Dockerfile", project / "docs" / "cookbooks")
        BuildOrchestrator(ci_settings, graph, FakeEngine()).build(
            "standard", allocation.references
        )
        report = ValidationRunner(FakeValidator(failing={"user:agent"})).validate(
            allocation.primary.reference, [project / "goss" / "standard.yaml"]
        )
        assert not report.ok
        assert report.failed_keys == ["user:agent"]
        assert report.exit_code != 0
