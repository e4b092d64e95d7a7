"""Process configuration — populated once at start-up, passed everywhere.

Every setting can be overridden through ``AGENTIC_*`` environment variables
or a ``.env`` file.  The ambient CI variables the shell scripts used to read
ad hoc (``GITHUB_TOKEN``, ``CI``, ``GITHUB_SHA`` ...) are captured here via
aliases, so no other module touches ``os.environ``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class BuildSettings(BaseSettings):
    """Configuration for tagging, building, validating and sweeping images.

    Examples
    --------
    Override via environment::

        export AGENTIC_LOCAL_IMAGE=my-container
        export AGENTIC_LOG_LEVEL=DEBUG
        export GITHUB_TOKEN=ghp_...

    Or via .env file::

        AGENTIC_REGISTRY=ghcr.io
        AGENTIC_SPEC_CONFLICT_POLICY=error
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="AGENTIC_",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Runtime
    log_level: str = "INFO"

    # Project layout
    project_root: Path = Path(".")
    dockerfile: Path = Path("Dockerfile")
    cookbooks_dir: Path = Path("docs/cookbooks")
    default_target: str = "standard"

    # Image naming
    registry: str = "ghcr.io"
    repository: str = "technicalpickles/agentic-container"
    local_image: str = "agentic-container"
    main_branch: str = "main"

    # Build engine
    docker_binary: str = "docker"
    cache_from: list[str] = []
    inline_cache: bool = True

    # Validation
    spec_filename: str = "goss.yaml"
    spec_conflict_policy: str = "override"  # "override" | "error"
    goss_version: str = "0.4.9"

    # Size analysis
    dive_binary: str = "dive"
    reports_dir: Path = Path("reports")

    # Registry cleanup (GitHub Packages API through the gh CLI)
    gh_binary: str = "gh"
    registry_owner_type: str = "users"  # "users" | "orgs"

    # Secrets and CI context, read from the unprefixed CI variables
    github_token: SecretStr | None = Field(
        default=None, validation_alias=_env("AGENTIC_GITHUB_TOKEN", "GITHUB_TOKEN")
    )
    ci: bool = Field(default=False, validation_alias=_env("AGENTIC_CI", "CI"))
    github_actions: bool = Field(
        default=False, validation_alias=_env("AGENTIC_GITHUB_ACTIONS", "GITHUB_ACTIONS")
    )
    github_repository: str = Field(
        default="", validation_alias=_env("AGENTIC_GITHUB_REPOSITORY", "GITHUB_REPOSITORY")
    )
    github_sha: str = Field(
        default="", validation_alias=_env("AGENTIC_GITHUB_SHA", "GITHUB_SHA")
    )
    github_event_name: str = Field(
        default="", validation_alias=_env("AGENTIC_GITHUB_EVENT_NAME", "GITHUB_EVENT_NAME")
    )
    github_event_path: Path | None = Field(
        default=None, validation_alias=_env("AGENTIC_GITHUB_EVENT_PATH", "GITHUB_EVENT_PATH")
    )
    github_ref_name: str = Field(
        default="", validation_alias=_env("AGENTIC_GITHUB_REF_NAME", "GITHUB_REF_NAME")
    )
    github_step_summary: Path | None = Field(
        default=None,
        validation_alias=_env("AGENTIC_GITHUB_STEP_SUMMARY", "GITHUB_STEP_SUMMARY"),
    )

    # mise directories exported into every container we start
    mise_data_dir: str = Field(
        default="/usr/local/share/mise",
        validation_alias=_env("AGENTIC_MISE_DATA_DIR", "MISE_DATA_DIR"),
    )
    mise_config_dir: str = Field(
        default="/etc/mise",
        validation_alias=_env("AGENTIC_MISE_CONFIG_DIR", "MISE_CONFIG_DIR"),
    )
    mise_cache_dir: str = Field(
        default="/tmp/mise-cache",
        validation_alias=_env("AGENTIC_MISE_CACHE_DIR", "MISE_CACHE_DIR"),
    )

    @property
    def in_ci(self) -> bool:
        """Whether we are running under a CI scheduler."""
        return self.ci or self.github_actions

    @property
    def registry_image(self) -> str:
        """The fully qualified registry image, without a tag."""
        return f"{self.registry}/{self.repository}" if self.registry else self.repository

    @property
    def package_owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def package_name(self) -> str:
        return self.repository.split("/", 1)[-1]

    def resolve(self, path: Path) -> Path:
        """Resolve *path* against the project root unless it is absolute."""
        return path if path.is_absolute() else self.project_root / path

    def mise_env(self) -> dict[str, str]:
        """The mise directory variables containers are started with."""
        return {
            "MISE_DATA_DIR": self.mise_data_dir,
            "MISE_CONFIG_DIR": self.mise_config_dir,
            "MISE_CACHE_DIR": self.mise_cache_dir,
        }
