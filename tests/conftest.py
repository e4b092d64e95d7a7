"""Shared test fixtures for agentic-container."""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest
import yaml

from agentic_container.adapters import ToolCommandError
from agentic_container.adapters.renovate import RenovatePatternChecker
from agentic_container.cli import services as cli_services
from agentic_container.cli.services import Services
from agentic_container.config import BuildSettings
from agentic_container.core.stage_graph import StageGraph
from agentic_container.models import (
    BuildRequest,
    CheckOutcome,
    ImageAnalysis,
    PRState,
    RegistryVersion,
)

# Creation time given to every image the fake engine builds; always newer
# than any Dockerfile written during a test.
BUILT_AT = "2099-01-01T00:00:00Z"

DOCKERFILE = """\
# syntax=docker/dockerfile:1
ARG NODE_VERSION=22.1.0
ARG PYTHON_VERSION=3.12.4

FROM ubuntu:24.04 AS builder
ARG NODE_VERSION
RUN echo "node $NODE_VERSION"

FROM builder AS node-stage
RUN echo node

FROM ubuntu:24.04 AS standard
ARG PYTHON_VERSION
ARG EXTRA
COPY --from=builder /opt /opt

FROM standard AS dev
ARG DEV_TOOLS=ripgrep
"""

COOKBOOK_DOCKERFILE = """\
ARG BASE_IMAGE=ghcr.io/example/agentic-container:latest
FROM ${BASE_IMAGE}
RUN pip install httpie
"""


# ---------------------------------------------------------------------------
# Fake adapters
# ---------------------------------------------------------------------------


class FakeEngine:
    """In-memory build engine; ``images`` maps reference -> creation time."""

    def __init__(self, images: Mapping[str, str] | None = None) -> None:
        self.images: dict[str, str] = dict(images or {})
        self.requests: list[BuildRequest] = []
        self.secret_values: list[dict[str, str]] = []
        self.removed: list[str] = []
        self.fail_on: set[str] = set()

    def build(self, request: BuildRequest, secret_values: Mapping[str, str]) -> None:
        self.requests.append(request)
        self.secret_values.append(dict(secret_values))
        name = request.target or request.tags[0]
        if name in self.fail_on:
            raise ToolCommandError(["docker", "build"], 1, f"step 3/7 failed for {name}")
        for tag in request.tags:
            self.images[tag] = BUILT_AT

    def image_exists(self, reference: str) -> bool:
        return reference in self.images

    def image_created(self, reference: str) -> str | None:
        return self.images.get(reference)

    def image_digest(self, reference: str) -> str:
        if reference not in self.images:
            raise ToolCommandError(["docker", "image", "inspect", reference], 1, "No such image")
        return "sha256:" + hashlib.sha256(reference.encode()).hexdigest()

    def remove_image(self, reference: str) -> bool:
        self.removed.append(reference)
        return self.images.pop(reference, None) is not None

    @property
    def built_targets(self) -> list[str | None]:
        return [r.target for r in self.requests]


class FakeRunner:
    def __init__(self, status: int = 0, output: str = "") -> None:
        self.status = status
        self.output = output
        self.calls: list[dict] = []

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
        self.calls.append(
            {
                "image": image,
                "command": list(command),
                "interactive": interactive,
                "mounts": list(mounts),
                "env": dict(env or {}),
                "user": user,
                "capture": capture,
            }
        )
        return self.status, self.output


class FakeValidator:
    """Evaluates every resource of the rendered spec.

    Keys in ``failing`` fail; keys in ``skipped`` produce no result at all.
    """

    def __init__(self, failing: set[str] | None = None, skipped: set[str] | None = None) -> None:
        self.failing = set(failing or ())
        self.skipped = set(skipped or ())
        self.calls: list[tuple[str, dict]] = []

    def validate(self, image: str, spec_file: Path) -> list[CheckOutcome]:
        document = yaml.safe_load(spec_file.read_text(encoding="utf-8")) or {}
        self.calls.append((image, document))
        outcomes = []
        for resource_type, resources in document.items():
            for resource_id, attributes in resources.items():
                key = f"{resource_type}:{resource_id}"
                if key in self.skipped:
                    continue
                prop = next(iter(attributes or {}), "exists")
                outcomes.append(
                    CheckOutcome(
                        resource_type=resource_type,
                        resource_id=resource_id,
                        property=prop,
                        successful=key not in self.failing,
                        message="" if key not in self.failing else f"{prop}: mismatch",
                    )
                )
        return outcomes


class FakeAnalyzer:
    def __init__(self, analyses: Mapping[str, ImageAnalysis] | None = None) -> None:
        self.analyses = dict(analyses or {})

    def analyze(self, image: str) -> ImageAnalysis:
        if image not in self.analyses:
            raise ToolCommandError(["dive", image], 1, "image not found")
        return self.analyses[image]


class FakeRegistry:
    def __init__(self, versions: Sequence[RegistryVersion] = ()) -> None:
        self.versions = list(versions)
        self.fail_ids: set[str] = set()
        self.deleted: list[str] = []

    def list_versions(self) -> list[RegistryVersion]:
        return list(self.versions)

    def delete_version(self, version_id: str) -> None:
        if version_id in self.fail_ids:
            raise ToolCommandError(["gh", "api", "-X", "DELETE", version_id], 1, "HTTP 403")
        self.deleted.append(version_id)
        self.versions = [v for v in self.versions if v.version_id != version_id]


class FakeLookup:
    """PR states by number; unknown PRs fail like an unreachable API."""

    def __init__(self, states: Mapping[int, PRState] | None = None) -> None:
        self.states = dict(states or {})
        self.calls: list[int] = []

    def state(self, pr_number: int) -> PRState:
        self.calls.append(pr_number)
        if pr_number not in self.states:
            raise ToolCommandError(["gh", "pr", "view", str(pr_number)], 1, "not found")
        return self.states[pr_number]


# ---------------------------------------------------------------------------
# Settings and project layout
# ---------------------------------------------------------------------------


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., BuildSettings]:
    """Factory fixture: settings isolated from the CI environment."""

    def _factory(**overrides) -> BuildSettings:
        values = {
            "project_root": tmp_path,
            "registry": "ghcr.io",
            "repository": "example/agentic-container",
            "local_image": "agentic-container",
            "default_target": "standard",
            "cache_from": [],
            "ci": False,
            "github_actions": False,
            "github_token": "test-token",
            "github_repository": "example/agentic-container",
            "github_sha": "",
            "github_event_name": "",
            "github_event_path": None,
            "github_ref_name": "",
            "github_step_summary": None,
            "reports_dir": tmp_path / "reports",
        }
        values.update(overrides)
        return BuildSettings(_env_file=None, **values)

    return _factory


@pytest.fixture
def settings(make_settings: Callable[..., BuildSettings]) -> BuildSettings:
    return make_settings()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A checkout with a multi-stage Dockerfile, a cookbook and goss specs."""
    (tmp_path / "Dockerfile").write_text(DOCKERFILE, encoding="utf-8")

    cookbook = tmp_path / "docs" / "cookbooks" / "python-cli"
    cookbook.mkdir(parents=True)
    (cookbook / "Dockerfile").write_text(COOKBOOK_DOCKERFILE, encoding="utf-8")
    (cookbook / "goss.yaml").write_text(
        "command:\n  python3 --version:\n    exit-status: 0\n", encoding="utf-8"
    )
    template = tmp_path / "docs" / "cookbooks" / "_template"
    template.mkdir()
    (template / "Dockerfile").write_text(COOKBOOK_DOCKERFILE, encoding="utf-8")

    goss = tmp_path / "goss"
    goss.mkdir()
    (goss / "standard.yaml").write_text(
        "command:\n  mise --version:\n    exit-status: 0\n"
        "user:\n  agent:\n    exists: true\n",
        encoding="utf-8",
    )
    (goss / "dev.yaml").write_text(
        "gossfile:\n  standard.yaml: {}\n"
        "command:\n  rg --version:\n    exit-status: 0\n",
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def graph(project: Path) -> StageGraph:
    return StageGraph.from_project(project / "Dockerfile", project / "docs" / "cookbooks")


# ---------------------------------------------------------------------------
# Adapters and CLI wiring
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def container_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def validator() -> FakeValidator:
    return FakeValidator()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry()


@pytest.fixture
def lookup() -> FakeLookup:
    return FakeLookup()


@pytest.fixture
def fake_services(
    settings: BuildSettings,
    engine: FakeEngine,
    container_runner: FakeRunner,
    validator: FakeValidator,
    analyzer: FakeAnalyzer,
    registry: FakeRegistry,
    lookup: FakeLookup,
) -> Services:
    return Services(
        settings,
        engine=engine,
        runner=container_runner,
        validator=validator,
        analyzer=analyzer,
        registry=registry,
        pull_requests=lookup,
        config_checker=RenovatePatternChecker(),
    )


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, settings: BuildSettings, fake_services: Services):
    """Point every CLI command at the fake services."""
    monkeypatch.setattr(cli_services, "load_settings", lambda: settings)
    monkeypatch.setattr(cli_services, "build_services", lambda s, **kwargs: fake_services)
    return fake_services
