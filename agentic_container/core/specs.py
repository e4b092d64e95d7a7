"""Loading, composing and rendering goss assertion specs.

A spec file is goss YAML: one mapping per resource type (``command``,
``file``, ``user`` ...) keyed by resource id, plus an optional ``gossfile``
section naming the spec it builds on.  Includes form a strictly linear
chain, so each file names at most one parent.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from agentic_container.models import Assertion, ValidationSpec

logger = logging.getLogger(__name__)

INCLUDE_SECTION = "gossfile"

POLICY_OVERRIDE = "override"
POLICY_ERROR = "error"


class SpecCompositionError(ValueError):
    """Raised for malformed specs, branching includes and include cycles."""


class SpecConflictError(ValueError):
    """Raised under the ``error`` policy when a key is redefined differently."""

    def __init__(self, key: str, first: str, second: str) -> None:
        self.key = key
        super().__init__(
            f"Assertion {key!r} defined in {first!r} is redefined differently in {second!r}"
        )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def spec_name(path: Path) -> str:
    """``docs/cookbooks/python-cli/goss.yaml`` -> ``python-cli``; otherwise the stem."""
    return path.parent.name if path.stem == "goss" and path.parent.name else path.stem


def load_spec(path: Path) -> ValidationSpec:
    """Parse one goss YAML file without following its include."""
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise SpecCompositionError(f"Cannot read spec {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SpecCompositionError(f"Invalid YAML in spec {path}: {exc}") from exc
    if not isinstance(document, dict):
        raise SpecCompositionError(f"Spec {path} must be a mapping of resource types")

    name = spec_name(path)
    includes = [
        (path.parent / include).resolve() for include in (document.get(INCLUDE_SECTION) or {})
    ]
    if len(includes) > 1:
        raise SpecCompositionError(
            f"Spec {path} includes {len(includes)} specs; includes must form a linear chain"
        )

    assertions: dict[str, Assertion] = {}
    for resource_type, resources in document.items():
        if resource_type == INCLUDE_SECTION:
            continue
        if not isinstance(resources, dict):
            raise SpecCompositionError(
                f"Section {resource_type!r} in {path} must map resource ids to attributes"
            )
        for resource_id, attributes in resources.items():
            assertion = Assertion(
                resource_type=str(resource_type),
                resource_id=str(resource_id),
                attributes=attributes or {},
                source=name,
            )
            assertions[assertion.key] = assertion
    return ValidationSpec(name=name, path=path, assertions=assertions, includes=includes)


def load_chain(path: Path) -> list[ValidationSpec]:
    """Return *path* and everything it includes, base spec first."""
    chain: list[ValidationSpec] = []
    visited: set[Path] = set()
    current: Path | None = path.resolve()
    while current is not None:
        if current in visited:
            raise SpecCompositionError(f"Include cycle through {current}")
        visited.add(current)
        spec = load_spec(current)
        chain.append(spec)
        current = spec.includes[0] if spec.includes else None
    chain.reverse()
    return chain


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def merge_specs(
    specs: Sequence[ValidationSpec], policy: str = POLICY_OVERRIDE
) -> ValidationSpec:
    """Merge *specs* in order; later definitions replace earlier ones by key.

    Identical redefinitions are not conflicts.  A differing redefinition
    logs a warning under ``override`` and raises under ``error``.
    """
    if policy not in (POLICY_OVERRIDE, POLICY_ERROR):
        raise ValueError(f"Unknown spec conflict policy {policy!r}")

    merged: dict[str, Assertion] = {}
    names: list[str] = []
    for spec in specs:
        if spec.name not in names:
            names.append(spec.name)
        for key, assertion in spec.assertions.items():
            existing = merged.get(key)
            if existing is not None and existing.attributes != assertion.attributes:
                if policy == POLICY_ERROR:
                    raise SpecConflictError(key, existing.source, assertion.source)
                logger.warning(
                    "Assertion %s from %s overrides the definition in %s",
                    key, assertion.source, existing.source,
                )
            if existing is None or existing.attributes != assertion.attributes:
                merged[key] = assertion
    return ValidationSpec(name="+".join(names), assertions=merged)


def compose(spec_files: Sequence[Path], policy: str = POLICY_OVERRIDE) -> ValidationSpec:
    """Load every file with its include chain and merge them in order.

    A spec reached twice (two files sharing a base) is merged once.
    """
    ordered: list[ValidationSpec] = []
    seen: set[Path] = set()
    for path in spec_files:
        for spec in load_chain(path):
            if spec.path in seen:
                continue
            seen.add(spec.path)
            ordered.append(spec)
    return merge_specs(ordered, policy)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_spec(spec: ValidationSpec) -> dict[str, dict[str, Any]]:
    """Return the goss document for *spec* (no ``gossfile`` section)."""
    document: dict[str, dict[str, Any]] = {}
    for assertion in spec.assertions.values():
        document.setdefault(assertion.resource_type, {})[assertion.resource_id] = dict(
            assertion.attributes
        )
    return document


def write_spec(spec: ValidationSpec, path: Path) -> Path:
    path.write_text(
        yaml.safe_dump(render_spec(spec), sort_keys=False, default_flow_style=False),
        encoding="utf-8",
    )
    return path


def _smoke() -> ValidationSpec:
    started = Assertion(
        resource_type="command",
        resource_id="echo 'Container started successfully'",
        attributes={"exit-status": 0, "stdout": ["Container started successfully"]},
        source="smoke",
    )
    workspace = Assertion(
        resource_type="file",
        resource_id="/workspace",
        attributes={"exists": True, "filetype": "directory"},
        source="smoke",
    )
    return ValidationSpec(
        name="smoke", assertions={started.key: started, workspace.key: workspace}
    )


# The container starts and the workspace directory is present.
SMOKE_SPEC = _smoke()
