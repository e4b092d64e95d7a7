"""Tag Allocator: deterministic image tags from the context that triggered a build.

Tags embed the short commit SHA, so two commits of the same pull request
never share a tag and a re-run of the same commit always produces the same
one.  Fork pull requests never receive registry tags.
"""

from __future__ import annotations

import json
import logging
import re

from agentic_container.config import BuildSettings
from agentic_container.models import (
    BranchBuild,
    BuildContext,
    ImageTag,
    MainBranchBuild,
    ManualBuild,
    PullRequestBuild,
    TagAllocation,
)

logger = logging.getLogger(__name__)

SHORT_SHA_LENGTH = 7

_HEX = re.compile(r"^[0-9a-fA-F]+$")
_DOCKER_TAG = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
_PR_EVENTS = ("pull_request", "pull_request_target")


class InvalidContextError(ValueError):
    """Raised when a build context is malformed; nothing has been built yet."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def short_sha(sha: str) -> str:
    """Return the lower-cased 7-character prefix of a commit SHA."""
    sha = (sha or "").strip()
    if len(sha) < SHORT_SHA_LENGTH or not _HEX.match(sha):
        raise InvalidContextError(
            f"commit SHA must be at least {SHORT_SHA_LENGTH} hex characters, got {sha!r}"
        )
    return sha[:SHORT_SHA_LENGTH].lower()


def sanitize_branch(branch: str) -> str:
    """Turn a branch name into a valid tag fragment (``feature/X`` -> ``feature-x``)."""
    cleaned = branch.strip().lower()
    cleaned = re.sub(r"[^a-z0-9._-]", "-", cleaned)
    cleaned = re.sub(r"-{2,}", "-", cleaned)
    cleaned = cleaned.strip("-.")
    if not cleaned:
        raise InvalidContextError(f"branch name {branch!r} yields an empty tag")
    return cleaned[:100]


def validate_tag(tag: str) -> str:
    if not _DOCKER_TAG.match(tag):
        raise InvalidContextError(f"{tag!r} is not a valid image tag")
    return tag


def _target_suffix(target: str | None, settings: BuildSettings) -> str:
    if target is None or target == settings.default_target:
        return ""
    return f"-{sanitize_branch(target)}"


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------


def allocate(context: BuildContext, settings: BuildSettings) -> TagAllocation:
    """Compute the tags for *context*.

    Raises
    ------
    InvalidContextError
        When the context is missing required fields or carries values that
        cannot form a tag.
    """
    if isinstance(context, MainBranchBuild):
        return _allocate_main(context, settings)
    if isinstance(context, PullRequestBuild):
        return _allocate_pr(context, settings)
    if isinstance(context, BranchBuild):
        return _allocate_branch(context, settings)
    if isinstance(context, ManualBuild):
        return _allocate_manual(context, settings)
    raise InvalidContextError(f"unsupported build context: {context!r}")


def _registry_tag(tag: str, settings: BuildSettings) -> ImageTag:
    return ImageTag(registry=settings.registry, repository=settings.repository, tag=tag)


def _allocate_main(context: MainBranchBuild, settings: BuildSettings) -> TagAllocation:
    sha = short_sha(context.sha)
    if context.target is None or context.target == settings.default_target:
        names = ["latest", f"sha-{sha}"]
    else:
        target = sanitize_branch(context.target)
        names = [target, f"{target}-sha-{sha}"]
    return TagAllocation(
        context=context, tags=[_registry_tag(n, settings) for n in names]
    )


def _allocate_pr(context: PullRequestBuild, settings: BuildSettings) -> TagAllocation:
    if context.pr_number is None or context.pr_number <= 0:
        raise InvalidContextError(
            f"pull request build requires a positive PR number, got {context.pr_number!r}"
        )
    name = f"pr-{context.pr_number}-{short_sha(context.sha)}"
    name += _target_suffix(context.target, settings)
    if context.is_fork:
        logger.info("Fork pull request #%d: allocating local-only tag", context.pr_number)
        return TagAllocation(
            context=context,
            tags=[ImageTag(repository=settings.local_image, tag=name)],
            publish=False,
            local_only=True,
        )
    return TagAllocation(context=context, tags=[_registry_tag(name, settings)])


def _allocate_branch(context: BranchBuild, settings: BuildSettings) -> TagAllocation:
    branch = sanitize_branch(context.branch) + _target_suffix(context.target, settings)
    sha = short_sha(context.sha)
    return TagAllocation(
        context=context,
        tags=[_registry_tag(branch, settings), _registry_tag(f"{branch}-{sha}", settings)],
    )


def _allocate_manual(context: ManualBuild, settings: BuildSettings) -> TagAllocation:
    custom = context.custom_tag.strip()
    if not custom:
        raise InvalidContextError("manual build requires a non-empty tag")
    repository, sep, tag = custom.rpartition(":")
    if not sep or "/" in tag:
        repository, tag = settings.local_image, custom
    if not repository:
        raise InvalidContextError(f"{custom!r} has an empty repository")
    return TagAllocation(
        context=context,
        tags=[ImageTag(repository=repository, tag=validate_tag(tag))],
        publish=False,
        local_only=True,
    )


# ---------------------------------------------------------------------------
# CI context
# ---------------------------------------------------------------------------


def context_from_ci(settings: BuildSettings, target: str | None = None) -> BuildContext:
    """Build the context from the GitHub Actions variables captured in settings.

    Pull request events read the event payload for the PR number, the head
    commit and the head repository; a head repository other than the
    workflow's own marks the build as a fork.
    """
    if settings.github_event_name in _PR_EVENTS:
        event = _read_event(settings)
        pr = event.get("pull_request") or {}
        number = pr.get("number", event.get("number"))
        head = pr.get("head") or {}
        head_repo = (head.get("repo") or {}).get("full_name", "")
        is_fork = bool(head_repo) and head_repo != settings.github_repository
        try:
            pr_number = int(number) if number is not None else None
        except (TypeError, ValueError):
            raise InvalidContextError(f"event payload has a malformed PR number: {number!r}") from None
        return PullRequestBuild(
            pr_number=pr_number,
            sha=head.get("sha") or settings.github_sha,
            is_fork=is_fork,
            target=target,
        )

    if not settings.github_sha:
        raise InvalidContextError("GITHUB_SHA is not set; cannot derive a CI build context")
    if not settings.github_ref_name or settings.github_ref_name == settings.main_branch:
        return MainBranchBuild(sha=settings.github_sha, target=target)
    return BranchBuild(branch=settings.github_ref_name, sha=settings.github_sha, target=target)


def _read_event(settings: BuildSettings) -> dict:
    if settings.github_event_path is None:
        raise InvalidContextError("pull request event without GITHUB_EVENT_PATH")
    try:
        return json.loads(settings.github_event_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise InvalidContextError(
            f"cannot read event payload {settings.github_event_path}: {exc}"
        ) from exc
