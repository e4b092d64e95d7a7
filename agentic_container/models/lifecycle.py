"""Pull request lifecycle and registry package models (tag retention)."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from agentic_container.models.tags import ImageTag


class PRState(str, Enum):
    """Retention-relevant state of a pull request."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"

    @property
    def retains_tags(self) -> bool:
        return self is PRState.OPEN


class PRLifecycleState(BaseModel):
    """A pull request and the ephemeral tags built for it."""

    model_config = ConfigDict(frozen=True)

    pr_number: int
    state: PRState
    tags: list[ImageTag] = []


class RegistryVersion(BaseModel):
    """One package version in the registry and every tag pointing at it.

    Deleting a version removes all of its tags at once, so the sweeper
    reasons about versions rather than individual tags.
    """

    model_config = ConfigDict(frozen=True)

    version_id: str
    tags: list[str] = []
    created_at: datetime | None = None


class RegistryDeleteFailure(BaseModel):
    """A tag that could not be deleted during a sweep."""

    model_config = ConfigDict(frozen=True)

    tag: ImageTag
    version_id: str
    error: str


class SweepResult(BaseModel):
    """Outcome of a cleanup sweep.

    ``candidates`` are the tags selected for deletion; in a dry run they
    are reported but ``deleted`` stays empty.
    """

    model_config = ConfigDict(frozen=True)

    dry_run: bool
    pr_number: int | None = None
    candidates: list[ImageTag] = []
    deleted: list[ImageTag] = []
    retained: list[ImageTag] = []
    failed: list[RegistryDeleteFailure] = []
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def ok(self) -> bool:
        return not self.failed
