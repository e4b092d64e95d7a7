"""Adapter wiring for CLI commands.

Commands obtain settings and adapters through :func:`load_settings` and
:func:`build_services`; tests replace both with fixtures.
"""

from __future__ import annotations

from agentic_container.adapters import (
    BuildEngine,
    ConfigChecker,
    ContainerRunner,
    ImageAnalyzer,
    PullRequestLookup,
    Registry,
    Validator,
)
from agentic_container.adapters.dive import DiveAnalyzer
from agentic_container.adapters.docker import DockerEngine
from agentic_container.adapters.github import GitHubPullRequests, GitHubRegistry
from agentic_container.adapters.goss import GossValidator
from agentic_container.adapters.renovate import RenovatePatternChecker
from agentic_container.config import BuildSettings
from agentic_container.core.build_orchestrator import BuildOrchestrator, BuildSecrets
from agentic_container.core.stage_graph import StageGraph


class Services:
    """The adapters one command invocation works with."""

    def __init__(
        self,
        settings: BuildSettings,
        *,
        engine: BuildEngine,
        runner: ContainerRunner,
        validator: Validator,
        analyzer: ImageAnalyzer,
        registry: Registry,
        pull_requests: PullRequestLookup,
        config_checker: ConfigChecker,
    ) -> None:
        self.settings = settings
        self.engine = engine
        self.runner = runner
        self.validator = validator
        self.analyzer = analyzer
        self.registry = registry
        self.pull_requests = pull_requests
        self.config_checker = config_checker

    def stage_graph(self) -> StageGraph:
        """Stages of the project Dockerfile plus discovered cookbooks."""
        return StageGraph.from_project(
            self.settings.resolve(self.settings.dockerfile),
            self.settings.resolve(self.settings.cookbooks_dir),
            cookbook_parent=self.settings.default_target,
        )

    def orchestrator(self, graph: StageGraph | None = None) -> BuildOrchestrator:
        return BuildOrchestrator(
            self.settings, graph if graph is not None else self.stage_graph(), self.engine
        )

    def secrets(self, enabled: bool = True) -> BuildSecrets:
        """The GitHub token secret, unless *enabled* is False."""
        return BuildSecrets.from_settings(self.settings) if enabled else BuildSecrets()


def load_settings() -> BuildSettings:
    return BuildSettings()


def build_services(settings: BuildSettings, *, stream_output: bool = True) -> Services:
    """Wire the docker, goss, dive, gh and Renovate adapters for *settings*."""
    docker = DockerEngine(settings.docker_binary, stream_output=stream_output)
    return Services(
        settings,
        engine=docker,
        runner=docker,
        validator=GossValidator(
            docker, goss_version=settings.goss_version, env=settings.mise_env()
        ),
        analyzer=DiveAnalyzer(settings.dive_binary),
        registry=GitHubRegistry(settings),
        pull_requests=GitHubPullRequests(settings),
        config_checker=RenovatePatternChecker(),
    )
