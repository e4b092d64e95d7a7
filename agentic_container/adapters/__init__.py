"""Adapter protocols for the external tools the orchestrator drives.

The core modules only ever see these protocols; the concrete classes wrap
the docker, goss, dive and gh command-line tools through :func:`run_tool`.
Tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from agentic_container.adapters._process import ToolCommandError, run_tool
from agentic_container.models import (
    BuildRequest,
    CheckOutcome,
    ConfigCheckResult,
    ImageAnalysis,
    PRState,
    RegistryVersion,
)


@runtime_checkable
class ImageInspector(Protocol):
    """Read-only queries against the local image store."""

    def image_exists(self, reference: str) -> bool:
        """Return True when *reference* is present locally."""
        ...

    def image_created(self, reference: str) -> str | None:
        """Return the raw creation timestamp, or None if the image is absent."""
        ...

    def image_digest(self, reference: str) -> str:
        """Return the image id (content digest) of *reference*."""
        ...


@runtime_checkable
class BuildEngine(ImageInspector, Protocol):
    """Builds and removes images.

    ``build`` raises :class:`ToolCommandError` on a non-zero engine exit.
    *secret_values* is merged into the engine's environment only.
    """

    def build(self, request: BuildRequest, secret_values: Mapping[str, str]) -> None:
        ...

    def remove_image(self, reference: str) -> bool:
        ...


@runtime_checkable
class ContainerRunner(Protocol):
    """Starts containers from an image."""

    def run(
        self,
        image: str,
        command: Sequence[str] = (),
        *,
        interactive: bool = False,
        mounts: Sequence[tuple[Path, str]] = (),
        env: Mapping[str, str] | None = None,
        user: str | None = None,
        capture: bool = True,
    ) -> tuple[int, str]:
        """Run *command* in a throwaway container; return (exit status, output)."""
        ...


@runtime_checkable
class Validator(Protocol):
    """Evaluates a rendered spec file inside an image."""

    def validate(self, image: str, spec_file: Path) -> list[CheckOutcome]:
        ...


@runtime_checkable
class ImageAnalyzer(Protocol):
    def analyze(self, image: str) -> ImageAnalysis:
        ...


@runtime_checkable
class Registry(Protocol):
    """A container registry package whose versions carry tags."""

    def list_versions(self) -> list[RegistryVersion]:
        ...

    def delete_version(self, version_id: str) -> None:
        """Delete one version; raises :class:`ToolCommandError` on failure."""
        ...


@runtime_checkable
class PullRequestLookup(Protocol):
    def state(self, pr_number: int) -> PRState:
        ...


@runtime_checkable
class ConfigChecker(Protocol):
    def check(self, root: Path) -> list[ConfigCheckResult]:
        ...


__all__ = [
    "BuildEngine",
    "ConfigChecker",
    "ContainerRunner",
    "ImageAnalyzer",
    "ImageInspector",
    "PullRequestLookup",
    "Registry",
    "ToolCommandError",
    "Validator",
    "run_tool",
]
