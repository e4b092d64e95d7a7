"""Image tag models and the build contexts tags are allocated from."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# ``pr-<number>-<sha>[-<target>]``: the only tags the sweeper may delete.
EPHEMERAL_TAG_PATTERN = re.compile(r"^pr-(?P<number>\d+)-(?P<rest>[0-9a-z][0-9a-z._-]*)$")


class ImageTag(BaseModel):
    """A tagged image artifact, local or in a registry."""

    model_config = ConfigDict(frozen=True)

    registry: str = ""  # empty for local-only images
    repository: str
    tag: str
    created_at: datetime | None = None
    digest: str | None = None

    @property
    def reference(self) -> str:
        """``registry/repository:tag`` (or ``repository:tag`` when local)."""
        prefix = f"{self.registry}/" if self.registry else ""
        return f"{prefix}{self.repository}:{self.tag}"

    @property
    def is_ephemeral(self) -> bool:
        return EPHEMERAL_TAG_PATTERN.match(self.tag) is not None

    @property
    def pr_number(self) -> int | None:
        """The PR number embedded in an ephemeral tag, if any."""
        match = EPHEMERAL_TAG_PATTERN.match(self.tag)
        return int(match.group("number")) if match else None

    def __str__(self) -> str:
        return self.reference


# ---------------------------------------------------------------------------
# Build contexts: what triggered a build
# ---------------------------------------------------------------------------


class MainBranchBuild(BaseModel):
    """A push to the main branch."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["main"] = "main"
    sha: str
    target: str | None = None


class BranchBuild(BaseModel):
    """A push to any other branch."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["branch"] = "branch"
    branch: str
    sha: str
    target: str | None = None


class PullRequestBuild(BaseModel):
    """A pull request build; forks never receive registry tags."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pr"] = "pr"
    pr_number: int | None = None
    sha: str
    is_fork: bool = False
    target: str | None = None


class ManualBuild(BaseModel):
    """A developer-requested build with an explicit tag."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["manual"] = "manual"
    custom_tag: str
    target: str | None = None


BuildContext = Union[MainBranchBuild, BranchBuild, PullRequestBuild, ManualBuild]


class TagAllocation(BaseModel):
    """The tags a build should produce, and whether they may be pushed."""

    model_config = ConfigDict(frozen=True)

    context: BuildContext = Field(discriminator="kind")
    tags: list[ImageTag]
    publish: bool = True
    local_only: bool = False

    @property
    def primary(self) -> ImageTag:
        """The tag the build is performed under; extra tags are aliases."""
        return self.tags[0]

    @property
    def references(self) -> list[str]:
        return [t.reference for t in self.tags]
