"""Build target models — the named stages of the image graph."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class BuildTarget(BaseModel):
    """A named stage in the multi-stage build graph.

    ``parent`` encodes stage inheritance (``FROM <parent> AS <name>``).
    A target with its own ``dockerfile`` (a cookbook extension) receives its
    parent's tag through the ``base_image_arg`` build argument.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    parent: str | None = None
    build_args: dict[str, str] = {}  # declared ARG name -> default ("" if none)
    dockerfile: Path = Path("Dockerfile")
    context: Path = Path(".")
    base_image_arg: str | None = None
    source: Path | None = None  # file whose mtime decides staleness, if not dockerfile
    standalone: bool = False  # own Dockerfile, built without --target
    description: str = ""

    @property
    def is_multistage_stage(self) -> bool:
        """True when this target is built with ``--target`` from a shared file."""
        return not self.standalone


class BuildRequest(BaseModel):
    """A single invocation of the build engine.

    Secrets are referenced by id and the environment variable that carries
    them; their values never live on this model.
    """

    model_config = ConfigDict(frozen=True)

    dockerfile: Path
    context: Path
    target: str | None = None
    tags: list[str]
    build_args: dict[str, str] = {}
    secret_env: dict[str, str] = {}  # secret id -> env var name
    cache_from: list[str] = []
