"""Tests for the CleanupSweeper — which ephemeral tags go, which stay."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from agentic_container.config import BuildSettings
from agentic_container.core.cleanup_sweeper import CleanupSweeper
from agentic_container.models import PRState, RegistryVersion

from conftest import FakeLookup, FakeRegistry

CREATED = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _tags(tags) -> list[str]:
    return sorted(t.tag for t in tags)


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry(
        [
            RegistryVersion(version_id="1", tags=["pr-100-abc1234"], created_at=CREATED),
            RegistryVersion(version_id="2", tags=["pr-101-abc1234"], created_at=CREATED),
            RegistryVersion(version_id="3", tags=["pr-102-def5678", "pr-102-def5678-dev"]),
            RegistryVersion(version_id="4", tags=["latest", "sha-abc1234", "pr-100-fff0000"]),
            RegistryVersion(version_id="5", tags=["sha-1234567"]),
            RegistryVersion(version_id="6", tags=[]),
        ]
    )


@pytest.fixture
def lookup() -> FakeLookup:
    return FakeLookup({100: PRState.MERGED, 101: PRState.OPEN, 102: PRState.CLOSED})


@pytest.fixture
def sweeper(registry: FakeRegistry, lookup: FakeLookup, settings: BuildSettings) -> CleanupSweeper:
    return CleanupSweeper(registry, lookup, settings)


class TestListing:
    def test_lists_only_ephemeral_tags(self, sweeper: CleanupSweeper):
        assert _tags(sweeper.list_tags()) == [
            "pr-100-abc1234",
            "pr-100-fff0000",
            "pr-101-abc1234",
            "pr-102-def5678",
            "pr-102-def5678-dev",
        ]

    def test_lists_one_pr(self, sweeper: CleanupSweeper):
        tags = sweeper.list_tags(102)
        assert _tags(tags) == ["pr-102-def5678", "pr-102-def5678-dev"]
        assert all(t.registry == "ghcr.io" for t in tags)

    def test_created_at_is_carried(self, sweeper: CleanupSweeper):
        (tag,) = sweeper.list_tags(101)
        assert tag.created_at == CREATED
        assert tag.reference == "ghcr.io/example/agentic-container:pr-101-abc1234"

    def test_lifecycle(self, sweeper: CleanupSweeper):
        states = sweeper.lifecycle()
        assert [(s.pr_number, s.state) for s in states] == [
            (100, PRState.MERGED),
            (101, PRState.OPEN),
            (102, PRState.CLOSED),
        ]
        assert len(states[0].tags) == 2


class TestSweepAll:
    def test_closed_and_merged_prs_are_swept(self, sweeper: CleanupSweeper, registry: FakeRegistry):
        result = sweeper.sweep()
        assert _tags(result.deleted) == ["pr-100-abc1234", "pr-102-def5678", "pr-102-def5678-dev"]
        assert registry.deleted == ["1", "3"]
        assert _tags(result.retained) == ["pr-100-fff0000", "pr-101-abc1234"]
        assert result.ok is True

    def test_non_ephemeral_tags_are_never_deleted(
        self, sweeper: CleanupSweeper, registry: FakeRegistry
    ):
        sweeper.sweep()
        remaining = {t for v in registry.versions for t in v.tags}
        assert {"latest", "sha-abc1234", "sha-1234567"} <= remaining

    def test_dry_run_changes_nothing(self, sweeper: CleanupSweeper, registry: FakeRegistry):
        result = sweeper.sweep(dry_run=True)
        assert result.dry_run is True
        assert _tags(result.candidates) == ["pr-100-abc1234", "pr-102-def5678", "pr-102-def5678-dev"]
        assert result.deleted == []
        assert registry.deleted == []

    def test_delete_failure_is_recorded_and_sweep_continues(
        self, sweeper: CleanupSweeper, registry: FakeRegistry
    ):
        registry.fail_ids = {"1"}
        result = sweeper.sweep()
        assert registry.deleted == ["3"]
        assert [f.tag.tag for f in result.failed] == ["pr-100-abc1234"]
        assert result.failed[0].version_id == "1"
        assert "403" in result.failed[0].error
        assert result.ok is False

    def test_unknown_pr_state_keeps_tags(self, registry: FakeRegistry, settings: BuildSettings):
        sweeper = CleanupSweeper(registry, FakeLookup({100: PRState.MERGED}), settings)
        result = sweeper.sweep()
        assert registry.deleted == ["1"]
        assert "pr-102-def5678" in _tags(result.retained)

    def test_pr_state_is_looked_up_once(self, sweeper: CleanupSweeper, lookup: FakeLookup):
        sweeper.sweep()
        assert sorted(lookup.calls) == [100, 101, 102]


class TestSweepOnePr:
    def test_explicit_pr_is_swept_regardless_of_state(
        self, sweeper: CleanupSweeper, registry: FakeRegistry, lookup: FakeLookup
    ):
        result = sweeper.sweep(101)
        assert registry.deleted == ["2"]
        assert _tags(result.deleted) == ["pr-101-abc1234"]
        assert lookup.calls == []

    def test_other_prs_untouched(self, sweeper: CleanupSweeper, registry: FakeRegistry):
        result = sweeper.sweep(102)
        assert registry.deleted == ["3"]
        assert result.retained == []
        assert result.pr_number == 102

    def test_protected_version_retained(self, sweeper: CleanupSweeper, registry: FakeRegistry):
        result = sweeper.sweep(100)
        assert registry.deleted == ["1"]
        assert _tags(result.retained) == ["pr-100-fff0000"]

    def test_version_shared_with_another_pr(self, settings: BuildSettings):
        registry = FakeRegistry(
            [RegistryVersion(version_id="9", tags=["pr-100-aaa1111", "pr-101-aaa1111"])]
        )
        lookup = FakeLookup({100: PRState.MERGED, 101: PRState.OPEN})
        sweeper = CleanupSweeper(registry, lookup, settings)
        assert _tags(sweeper.sweep(100).retained) == ["pr-100-aaa1111"]
        assert _tags(sweeper.sweep().retained) == ["pr-100-aaa1111", "pr-101-aaa1111"]
        assert registry.deleted == []

    def test_no_matching_tags(self, sweeper: CleanupSweeper, registry: FakeRegistry):
        result = sweeper.sweep(999)
        assert result.candidates == []
        assert registry.deleted == []
