"""Cleanup Sweeper: deletes ephemeral PR tags once they are no longer needed.

Deletion happens per registry version, since deleting a version removes
every tag pointing at it.  A version that also carries a non-ephemeral tag
(``latest``, ``sha-...``) is never deleted.  Deletion is best effort: one
failure is recorded and the sweep moves on.
"""

from __future__ import annotations

import logging

from agentic_container.adapters import PullRequestLookup, Registry, ToolCommandError
from agentic_container.config import BuildSettings
from agentic_container.models import (
    ImageTag,
    PRLifecycleState,
    PRState,
    RegistryDeleteFailure,
    RegistryVersion,
    SweepResult,
)

logger = logging.getLogger(__name__)


class CleanupSweeper:
    """Selects and deletes ephemeral tags from a registry package.

    Parameters
    ----------
    registry:
        The registry package adapter.
    lookup:
        Pull request state lookup; only used when sweeping all PRs.
    settings:
        Used to name the registry and repository on reported tags.
    """

    def __init__(
        self,
        registry: Registry,
        lookup: PullRequestLookup,
        settings: BuildSettings | None = None,
    ) -> None:
        self._registry = registry
        self._lookup = lookup
        self._settings = settings or BuildSettings()

    def _tag(self, version: RegistryVersion, name: str) -> ImageTag:
        return ImageTag(
            registry=self._settings.registry,
            repository=self._settings.repository,
            tag=name,
            created_at=version.created_at,
        )

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def list_tags(self, pr_number: int | None = None) -> list[ImageTag]:
        """Every ephemeral tag in the registry, optionally for one PR only."""
        tags = []
        for version in self._registry.list_versions():
            for name in version.tags:
                tag = self._tag(version, name)
                if tag.is_ephemeral and (pr_number is None or tag.pr_number == pr_number):
                    tags.append(tag)
        return tags

    def lifecycle(self) -> list[PRLifecycleState]:
        """Group ephemeral tags by PR and attach each PR's current state.

        PRs whose state cannot be looked up are left out.
        """
        by_pr: dict[int, list[ImageTag]] = {}
        for tag in self.list_tags():
            by_pr.setdefault(tag.pr_number, []).append(tag)
        states = []
        for number in sorted(by_pr):
            state = self._state(number)
            if state is not None:
                states.append(PRLifecycleState(pr_number=number, state=state, tags=by_pr[number]))
        return states

    def _state(self, pr_number: int) -> PRState | None:
        try:
            return self._lookup.state(pr_number)
        except ToolCommandError as exc:
            logger.warning("Could not look up PR #%d; keeping its tags: %s", pr_number, exc)
            return None

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def sweep(self, pr_number: int | None = None, dry_run: bool = False) -> SweepResult:
        """Delete ephemeral tags for *pr_number*, or for every closed/merged PR.

        With ``dry_run=True`` the classification is returned but the
        registry is never modified.
        """
        versions = self._registry.list_versions()
        states: dict[int, PRState | None] = {}

        candidates: list[tuple[RegistryVersion, list[ImageTag]]] = []
        retained: list[ImageTag] = []
        for version in versions:
            tags = [self._tag(version, name) for name in version.tags]
            ephemeral = [t for t in tags if t.is_ephemeral]
            selected = [t for t in ephemeral if pr_number is None or t.pr_number == pr_number]
            if not selected:
                continue

            protected = [t.tag for t in tags if not t.is_ephemeral]
            if protected:
                logger.info(
                    "Version %s is also tagged %s; not deleting",
                    version.version_id, ", ".join(protected),
                )
                retained.extend(selected)
                continue
            if len(selected) != len(ephemeral):
                logger.info(
                    "Version %s is shared with another PR; not deleting", version.version_id
                )
                retained.extend(selected)
                continue
            if pr_number is None and not self._all_done(selected, states):
                retained.extend(selected)
                continue
            candidates.append((version, selected))

        deleted: list[ImageTag] = []
        failed: list[RegistryDeleteFailure] = []
        for version, tags in candidates:
            if dry_run:
                logger.info("[dry-run] Would delete %s", ", ".join(t.tag for t in tags))
                continue
            try:
                self._registry.delete_version(version.version_id)
            except ToolCommandError as exc:
                logger.error("Failed to delete version %s: %s", version.version_id, exc)
                failed.extend(
                    RegistryDeleteFailure(tag=t, version_id=version.version_id, error=str(exc))
                    for t in tags
                )
                continue
            logger.info("Deleted %s", ", ".join(t.tag for t in tags))
            deleted.extend(tags)

        return SweepResult(
            dry_run=dry_run,
            pr_number=pr_number,
            candidates=[t for _, tags in candidates for t in tags],
            deleted=deleted,
            retained=retained,
            failed=failed,
        )

    def _all_done(self, tags: list[ImageTag], states: dict[int, PRState | None]) -> bool:
        for tag in tags:
            number = tag.pr_number
            if number not in states:
                states[number] = self._state(number)
            state = states[number]
            if state is None or state.retains_tags:
                return False
        return True
