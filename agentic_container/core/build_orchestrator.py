"""Build Orchestrator: drives the build engine across the stage graph.

Ancestor stages are made present first, root first; each one is reused when
the Staleness Detector says it is fresh and built otherwise.  CI skips the
staleness check and rebuilds every stage, relying on the engine's layer
cache.  A tag is only reported once the engine has exited successfully and
the image has been read back.
"""

from __future__ import annotations

import logging
import re
import tempfile
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from pydantic import SecretStr

from agentic_container.adapters import BuildEngine, ToolCommandError
from agentic_container.adapters.github import resolve_github_token
from agentic_container.config import BuildSettings
from agentic_container.core.stage_graph import StageGraph
from agentic_container.core.staleness import StalenessDetector
from agentic_container.models import BuildRequest, BuildResult, BuildTarget

logger = logging.getLogger(__name__)

GITHUB_TOKEN_SECRET = "github_token"


class BuildFailure(RuntimeError):
    """Raised when the build engine fails; ``output`` is its text verbatim."""

    def __init__(self, target: str, message: str, output: str = "") -> None:
        self.target = target
        self.output = output
        super().__init__(f"Build of {target!r} failed: {message}")


# ---------------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------------


class BuildSecrets:
    """Build secrets keyed by id, handed to the engine through its environment.

    Each secret id maps to an upper-cased environment variable of the same
    name (``github_token`` -> ``GITHUB_TOKEN``); the engine is told
    ``--secret id=github_token,env=GITHUB_TOKEN``.
    """

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self._values = {k: SecretStr(v) for k, v in (values or {}).items() if v}

    @classmethod
    def from_settings(cls, settings: BuildSettings) -> BuildSecrets:
        token = resolve_github_token(settings)
        return cls({GITHUB_TOKEN_SECRET: token} if token else {})

    @staticmethod
    def env_name(secret_id: str) -> str:
        return re.sub(r"[^A-Z0-9_]", "_", secret_id.upper())

    @property
    def ids(self) -> list[str]:
        return sorted(self._values)

    def secret_env(self) -> dict[str, str]:
        """Secret id -> environment variable name."""
        return {sid: self.env_name(sid) for sid in self.ids}

    def environment(self) -> dict[str, str]:
        """Environment variable name -> secret value."""
        return {self.env_name(sid): self._values[sid].get_secret_value() for sid in self.ids}

    def __bool__(self) -> bool:
        return bool(self._values)

    def __repr__(self) -> str:
        return f"BuildSecrets(ids={self.ids})"


# ---------------------------------------------------------------------------
# Standalone Dockerfiles
# ---------------------------------------------------------------------------


def localize_dockerfile(
    path: Path,
    registry_image: str,
    local_image: str,
    aliases: Mapping[str, str] | None = None,
) -> Path:
    """Write a temporary copy of *path* that builds from local images.

    Every ``<registry_image>:<tag>`` reference becomes
    ``<local_image>:<tag>``, with *aliases* renaming tags (``latest`` ->
    ``standard``).  The caller deletes the returned file.
    """
    aliases = aliases or {}
    pattern = re.compile(re.escape(registry_image) + r":(?P<tag>[A-Za-z0-9_][A-Za-z0-9_.-]*)")

    def replace(match: re.Match[str]) -> str:
        tag = match.group("tag")
        return f"{local_image}:{aliases.get(tag, tag)}"

    text = pattern.sub(replace, path.read_text(encoding="utf-8"))
    with tempfile.NamedTemporaryFile(
        "w", prefix=f"{path.parent.name or 'local'}-", suffix=".Dockerfile",
        delete=False, encoding="utf-8",
    ) as handle:
        handle.write(text)
    logger.debug("Localized %s -> %s", path, handle.name)
    return Path(handle.name)


def referenced_stage(path: Path, local_image: str) -> str | None:
    """Return the tag of the first ``FROM <local_image>:<tag>`` line, if any."""
    pattern = re.compile(
        r"^FROM\s+(?:--platform=\S+\s+)?" + re.escape(local_image) + r":(?P<tag>\S+)",
        re.IGNORECASE,
    )
    for line in path.read_text(encoding="utf-8").splitlines():
        match = pattern.match(line.strip())
        if match:
            return match.group("tag")
    return None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class BuildOrchestrator:
    """Builds targets of a :class:`StageGraph` with the configured engine.

    Parameters
    ----------
    settings:
        Process configuration (image names, cache settings, CI flag).
    graph:
        The declared stage graph; targets outside it are rejected before
        the engine is invoked.
    engine:
        The build engine adapter.
    staleness:
        Optional detector; defaults to one backed by *engine*.
    """

    def __init__(
        self,
        settings: BuildSettings,
        graph: StageGraph,
        engine: BuildEngine,
        staleness: StalenessDetector | None = None,
    ) -> None:
        self._settings = settings
        self._graph = graph
        self._engine = engine
        self._staleness = staleness or StalenessDetector(engine)

    @property
    def graph(self) -> StageGraph:
        return self._graph

    def stage_reference(self, name: str) -> str:
        """The local image reference a stage is kept under."""
        return f"{self._settings.local_image}:{name}"

    def build(
        self,
        target: str,
        tag: str | Sequence[str] | None = None,
        build_args: Mapping[str, str] | None = None,
        secrets: BuildSecrets | None = None,
        *,
        only_if_stale: bool = False,
    ) -> BuildResult:
        """Build *target*, making sure its ancestors are present first.

        Raises
        ------
        UnknownTargetError
            If *target* is not declared in the graph.
        BuildFailure
            If any engine invocation fails or an image is missing afterwards.
        """
        build_target = self._graph.get(target)
        if tag is None:
            tags = [self.stage_reference(target)]
        elif isinstance(tag, str):
            tags = [tag]
        else:
            tags = list(tag)
        overrides = dict(build_args or {})
        secrets = secrets or BuildSecrets()
        started = time.monotonic()

        built_parents: list[str] = []
        reused_parents: list[str] = []
        for ancestor in self._graph.ancestors(target):
            reference = self.stage_reference(ancestor.name)
            if self._is_fresh(ancestor, reference):
                logger.info("Reusing up-to-date stage %s", reference)
                reused_parents.append(ancestor.name)
            else:
                logger.info("Building parent stage %s", ancestor.name)
                self._build_one(ancestor, [reference], overrides, secrets)
                built_parents.append(ancestor.name)
            if not self._engine.image_exists(reference):
                raise BuildFailure(
                    ancestor.name, f"parent image {reference} is not present after build"
                )

        if only_if_stale and self._is_fresh(build_target, tags[0]):
            logger.info("Image %s is up to date; skipping build", tags[0])
            return BuildResult(
                target=target,
                tag=tags[0],
                digest=self._digest(target, tags[0]),
                reused=True,
                built_parents=built_parents,
                reused_parents=reused_parents,
            )

        self._build_one(build_target, tags, overrides, secrets)
        duration = time.monotonic() - started
        result = BuildResult(
            target=target,
            tag=tags[0],
            digest=self._digest(target, tags[0]),
            duration_seconds=round(duration, 3),
            built_parents=built_parents,
            reused_parents=reused_parents,
        )
        logger.info("Built %s as %s in %.1fs", target, tags[0], duration)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_fresh(self, target: BuildTarget, reference: str) -> bool:
        if self._settings.in_ci:
            return False
        dockerfile = self._settings.resolve(target.source or target.dockerfile)
        return not self._staleness.needs_rebuild(dockerfile, reference)

    def _build_args(self, target: BuildTarget, overrides: Mapping[str, str]) -> dict[str, str]:
        # Declared defaults are left to the Dockerfile (they may reference
        # other ARGs); only explicit values are sent.
        args = dict(overrides)
        if target.base_image_arg and target.parent is not None:
            args[target.base_image_arg] = self.stage_reference(target.parent)
        if self._settings.inline_cache:
            args["BUILDKIT_INLINE_CACHE"] = "1"
        return args

    def request_for(
        self,
        target: BuildTarget,
        tags: list[str],
        overrides: Mapping[str, str] | None = None,
        secrets: BuildSecrets | None = None,
    ) -> BuildRequest:
        return BuildRequest(
            dockerfile=self._settings.resolve(target.dockerfile),
            context=self._settings.resolve(target.context),
            target=target.name if target.is_multistage_stage else None,
            tags=tags,
            build_args=self._build_args(target, overrides or {}),
            secret_env=secrets.secret_env() if secrets else {},
            cache_from=list(self._settings.cache_from),
        )

    def _build_one(
        self,
        target: BuildTarget,
        tags: list[str],
        overrides: Mapping[str, str],
        secrets: BuildSecrets,
    ) -> None:
        request = self.request_for(target, tags, overrides, secrets)
        try:
            self._engine.build(request, secrets.environment())
        except ToolCommandError as exc:
            message = f"engine exited with status {exc.returncode}"
            if not exc.output.strip():
                message += " (see build output above)"
            raise BuildFailure(target.name, message, exc.output) from exc

    def _digest(self, target: str, reference: str) -> str:
        try:
            return self._engine.image_digest(reference)
        except ToolCommandError as exc:
            raise BuildFailure(target, f"image {reference} is not present after build") from exc
