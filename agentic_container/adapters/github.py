"""GitHub adapters (container registry packages and pull requests) via ``gh``."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime

from agentic_container.adapters._process import ToolCommandError, run_tool
from agentic_container.config import BuildSettings
from agentic_container.models import PRState, RegistryVersion

logger = logging.getLogger(__name__)


def resolve_github_token(settings: BuildSettings) -> str | None:
    """Return the GitHub token from settings, falling back to ``gh auth token``.

    Returns None (and logs a warning) when neither source yields a token;
    builds then proceed without the secret.
    """
    if settings.github_token is not None:
        token = settings.github_token.get_secret_value().strip()
        if token:
            return token
    try:
        completed = run_tool([settings.gh_binary, "auth", "token"], merge_stderr=False)
    except ToolCommandError as exc:
        logger.warning("No GitHub token available (%s); building without it", exc.returncode)
        return None
    token = completed.stdout.strip()
    if not token:
        logger.warning("gh auth token returned nothing; building without a GitHub token")
        return None
    return token


def _gh_env(settings: BuildSettings) -> dict[str, str]:
    env = dict(os.environ)
    if settings.github_token is not None:
        env["GH_TOKEN"] = settings.github_token.get_secret_value()
    return env


def _parse_timestamp(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_package_versions(output: str) -> list[RegistryVersion]:
    """Parse ``gh api ... --jq '.[] | @json'`` output, one version per line."""
    versions: list[RegistryVersion] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        item = json.loads(line)
        container = (item.get("metadata") or {}).get("container") or {}
        versions.append(
            RegistryVersion(
                version_id=str(item["id"]),
                tags=list(container.get("tags") or []),
                created_at=_parse_timestamp(item.get("created_at")),
            )
        )
    return versions


class GitHubRegistry:
    """The GitHub Container Registry package for the configured repository."""

    def __init__(self, settings: BuildSettings) -> None:
        self._settings = settings
        self._base = (
            f"/{settings.registry_owner_type}/{settings.package_owner}"
            f"/packages/container/{settings.package_name}/versions"
        )

    def list_versions(self) -> list[RegistryVersion]:
        completed = run_tool(
            [
                self._settings.gh_binary, "api", self._base,
                "--paginate", "--jq", ".[] | @json",
            ],
            env=_gh_env(self._settings),
            merge_stderr=False,
        )
        return parse_package_versions(completed.stdout)

    def delete_version(self, version_id: str) -> None:
        run_tool(
            [self._settings.gh_binary, "api", "-X", "DELETE", f"{self._base}/{version_id}"],
            env=_gh_env(self._settings),
        )


class GitHubPullRequests:
    """Looks up pull request state with ``gh pr view``."""

    def __init__(self, settings: BuildSettings) -> None:
        self._settings = settings

    def state(self, pr_number: int) -> PRState:
        command = [self._settings.gh_binary, "pr", "view", str(pr_number)]
        if self._settings.github_repository:
            command += ["--repo", self._settings.github_repository]
        else:
            command += ["--repo", self._settings.repository]
        command += ["--json", "state", "--jq", ".state"]
        completed = run_tool(command, env=_gh_env(self._settings), merge_stderr=False)
        raw = completed.stdout.strip().lower()
        try:
            return PRState(raw)
        except ValueError:
            raise ToolCommandError(command, 0, f"unexpected pull request state {raw!r}") from None
