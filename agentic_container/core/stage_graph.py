"""Stage graph: the named build targets of a multi-stage Dockerfile.

The graph enforces:
- Target names are unique.
- A parent is declared before any child that builds ``FROM`` it.
- Asking for an undeclared target fails with the list of valid names.

Cookbook extensions (standalone Dockerfiles taking ``ARG BASE_IMAGE``) are
added as children of the stage they extend.
"""

from __future__ import annotations

import logging
import re
import shlex
from collections import deque
from pathlib import Path

from agentic_container.models import BuildTarget

logger = logging.getLogger(__name__)

COOKBOOK_BASE_ARG = "BASE_IMAGE"

_FROM = re.compile(
    r"^FROM\s+(?:--platform=\S+\s+)?(?P<image>\S+)(?:\s+AS\s+(?P<name>\S+))?\s*$",
    re.IGNORECASE,
)
_ARG = re.compile(r"^ARG\s+(?P<body>.+)$", re.IGNORECASE)


class UnknownTargetError(KeyError):
    """Raised when a build target is not declared in the stage graph."""

    def __init__(self, name: str, valid: list[str]) -> None:
        self.name = name
        self.valid = list(valid)
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown target {self.name!r}. Valid targets: {', '.join(self.valid)}"


class StageGraphError(ValueError):
    """Raised when targets violate naming or declaration-order invariants."""


# ---------------------------------------------------------------------------
# Dockerfile parsing
# ---------------------------------------------------------------------------


def _parse_arg(body: str) -> list[tuple[str, str | None]]:
    """Split an ``ARG`` body into (name, default) pairs; quotes group words."""
    try:
        tokens = shlex.split(body)
    except ValueError:
        logger.warning("Unbalanced quotes in ARG %s", body)
        tokens = body.split()
    declared = []
    for token in tokens:
        name, sep, default = token.partition("=")
        declared.append((name, default if sep else None))
    return declared


def parse_dockerfile(path: Path, context: Path | None = None) -> list[BuildTarget]:
    """Return the named stages of *path* in declaration order.

    Global ``ARG`` defaults (before the first ``FROM``) are inherited by a
    stage that re-declares the argument without a default.  A stage's
    parent is the ``FROM`` image when that names an earlier stage.
    """
    context = context if context is not None else path.parent
    global_args: dict[str, str] = {}
    targets: list[BuildTarget] = []
    current: dict | None = None
    seen: set[str] = set()

    def flush() -> None:
        if current is not None and current["name"]:
            targets.append(BuildTarget(**current))

    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        from_match = _FROM.match(line)
        if from_match:
            flush()
            name = from_match.group("name")
            image = from_match.group("image")
            current = {
                "name": name,
                "parent": image if image in seen else None,
                "build_args": {},
                "dockerfile": path,
                "context": context,
            }
            if name:
                seen.add(name)
            continue

        arg_match = _ARG.match(line)
        if arg_match:
            for name, default in _parse_arg(arg_match.group("body")):
                if current is None:
                    global_args[name] = default or ""
                else:
                    value = default if default is not None else global_args.get(name, "")
                    current["build_args"][name] = value

    flush()
    logger.debug("Parsed %d stages from %s", len(targets), path)
    return targets


def target_for_dockerfile(
    dockerfile: Path,
    name: str,
    parent: str | None,
    context: Path | None = None,
    source: Path | None = None,
) -> BuildTarget:
    """Describe a standalone Dockerfile that extends *parent*.

    When the file declares ``ARG BASE_IMAGE`` the parent's tag is passed
    through it.  *source* is the file *dockerfile* was derived from, if any;
    its modification time decides whether the image is stale.
    """
    build_args: dict[str, str] = {}
    for line in dockerfile.read_text(encoding="utf-8").splitlines():
        arg_match = _ARG.match(line.strip())
        if arg_match:
            for arg, default in _parse_arg(arg_match.group("body")):
                build_args[arg] = default or ""
    return BuildTarget(
        name=name,
        parent=parent,
        build_args=build_args,
        dockerfile=dockerfile,
        context=context if context is not None else dockerfile.parent,
        base_image_arg=COOKBOOK_BASE_ARG if COOKBOOK_BASE_ARG in build_args else None,
        standalone=True,
        description=f"standalone {dockerfile}",
        source=source,
    )


def discover_cookbooks(
    cookbooks_dir: Path, parent: str, context: Path | None = None
) -> list[BuildTarget]:
    """Return a target for every ``<cookbooks_dir>/<name>/Dockerfile``.

    Directories starting with ``_`` (templates) are skipped.
    """
    if not cookbooks_dir.is_dir():
        return []
    targets = []
    for dockerfile in sorted(cookbooks_dir.glob("*/Dockerfile")):
        name = dockerfile.parent.name
        if name.startswith("_"):
            continue
        target = target_for_dockerfile(dockerfile, name, parent, context)
        targets.append(
            target.model_copy(
                update={"base_image_arg": COOKBOOK_BASE_ARG, "description": f"cookbook {name}"}
            )
        )
    return targets


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


class StageGraph:
    """Directed acyclic graph of build targets keyed by name."""

    def __init__(self, targets: list[BuildTarget]) -> None:
        self._targets: dict[str, BuildTarget] = {}
        # Reverse edges: name -> targets built FROM it
        self._children: dict[str, list[str]] = {}
        for target in targets:
            if target.name in self._targets:
                raise StageGraphError(f"Duplicate target name {target.name!r}")
            if target.parent is not None and target.parent not in self._targets:
                raise StageGraphError(
                    f"Target {target.name!r} builds from {target.parent!r}, "
                    f"which is not declared before it"
                )
            self._targets[target.name] = target
            self._children[target.name] = []
            if target.parent is not None:
                self._children[target.parent].append(target.name)

    @classmethod
    def from_project(
        cls, dockerfile: Path, cookbooks_dir: Path | None = None, cookbook_parent: str = "standard"
    ) -> StageGraph:
        """Stages of *dockerfile* plus any cookbooks extending *cookbook_parent*."""
        targets = parse_dockerfile(dockerfile)
        if cookbooks_dir is not None and any(t.name == cookbook_parent for t in targets):
            names = {t.name for t in targets}
            for cookbook in discover_cookbooks(cookbooks_dir, cookbook_parent, dockerfile.parent):
                if cookbook.name in names:
                    logger.warning("Cookbook %s shadows a stage name; skipped", cookbook.name)
                    continue
                targets.append(cookbook)
        return cls(targets)

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    @property
    def target_names(self) -> list[str]:
        """All target names in declaration order (parents before children)."""
        return list(self._targets)

    def get(self, name: str) -> BuildTarget:
        try:
            return self._targets[name]
        except KeyError:
            raise UnknownTargetError(name, self.target_names) from None

    def ancestors(self, name: str) -> list[BuildTarget]:
        """Return the parent chain of *name*, root first, excluding *name*."""
        chain = []
        parent = self.get(name).parent
        while parent is not None:
            target = self._targets[parent]
            chain.append(target)
            parent = target.parent
        chain.reverse()
        return chain

    def descendants(self, name: str) -> list[str]:
        """Return all transitive children of *name* (BFS)."""
        self.get(name)
        result = []
        queue = deque(self._children.get(name, []))
        visited: set[str] = set()
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            result.append(node)
            queue.extend(self._children.get(node, []))
        return result

    def with_target(self, target: BuildTarget) -> StageGraph:
        """Return a new graph extended by *target*."""
        return StageGraph([*self._targets.values(), target])
