"""``agentic-container test TARGET|DOCKERFILE`` — build if stale, then validate.

A Dockerfile path is built as a standalone extension of the stage it
references (registry references are rewritten to the local images first).
The image is validated against the goss spec found next to its Dockerfile
(or ``goss/<target>.yaml`` for stages), any ``--spec`` files, and the
built-in smoke checks.  A Dockerfile without its own spec fails unless
``--spec`` is given.  With ``--image`` an existing image is validated and
nothing is built.
"""

from __future__ import annotations

import re
from pathlib import Path

import typer
from rich.console import Console

from agentic_container.adapters.goss import ValidatorError
from agentic_container.cli import services
from agentic_container.cli.output import StatusPrinter
from agentic_container.config import BuildSettings
from agentic_container.core.build_orchestrator import (
    BuildFailure,
    localize_dockerfile,
    referenced_stage,
)
from agentic_container.core.specs import SMOKE_SPEC, SpecCompositionError, SpecConflictError
from agentic_container.core.stage_graph import StageGraph, UnknownTargetError, target_for_dockerfile
from agentic_container.core.validation_runner import ValidationRunner
from agentic_container.models import BuildTarget, ValidationSpec

console = Console()


def _slug(path: Path) -> str:
    base = path.parent.name if path.name == "Dockerfile" else path.stem
    return re.sub(r"[^a-z0-9._-]+", "-", base.lower()).strip("-.") or "dockerfile"


def default_spec_files(settings: BuildSettings, target: BuildTarget, source: Path) -> list[Path]:
    """The spec next to a standalone Dockerfile, or ``goss/<name>.yaml`` for stages."""
    if target.standalone:
        candidate = source.parent / settings.spec_filename
    else:
        candidate = settings.resolve(Path("goss")) / f"{target.name}.yaml"
    return [candidate] if candidate.is_file() else []


def image_test_cmd(
    subject: str = typer.Argument(
        ...,
        help="A stage or cookbook name, or the path of a Dockerfile to test.",
    ),
    spec: list[Path] = typer.Option(
        [],
        "--spec",
        "-s",
        help="Additional goss spec file (repeatable; later files override earlier ones).",
    ),
    image_ref: str = typer.Option(
        None,
        "--image",
        "-i",
        help="Validate this pre-built image instead of building SUBJECT.",
    ),
    smoke: bool = typer.Option(
        True,
        "--smoke/--no-smoke",
        help="Include the built-in smoke checks.",
    ),
    cleanup: bool = typer.Option(
        False,
        "--cleanup",
        help="Remove the test image afterwards (never a pre-built --image).",
    ),
    secret: bool = typer.Option(
        True,
        "--secret/--no-secret",
        help="Pass the GitHub token to the build as a secret.",
    ),
) -> None:
    """Build (if needed) and validate an image; exit 0 only if every check passes."""
    settings = services.load_settings()
    svc = services.build_services(settings)
    printer = StatusPrinter(console)

    try:
        graph = svc.stage_graph()
    except OSError as exc:
        printer.error(f"Cannot read the stage graph: {exc}")
        raise typer.Exit(code=1)

    localized: Path | None = None
    built_image: str | None = None
    path = Path(subject)
    try:
        if subject not in graph and path.is_file():
            name = f"test-{_slug(path)}"
            if image_ref is None:
                localized = localize_dockerfile(
                    path,
                    settings.registry_image,
                    settings.local_image,
                    aliases={"latest": settings.default_target},
                )
                parent = referenced_stage(localized, settings.local_image)
                if parent not in graph:
                    parent = settings.default_target
                target = target_for_dockerfile(
                    localized, name, parent, settings.project_root, source=path.resolve()
                )
                graph = graph.with_target(target)
            else:
                target = target_for_dockerfile(path, name, None, settings.project_root)
            source = path
            image = f"{settings.local_image}-test:{_slug(path)}"
        else:
            target = graph.get(subject)
            source = settings.resolve(target.dockerfile)
            image = f"{settings.local_image}:{target.name}"

        spec_files = default_spec_files(settings, target, source)
        if target.standalone and not spec_files and not spec:
            cookbooks = settings.resolve(settings.cookbooks_dir)
            template = cookbooks / "_template" / settings.spec_filename
            printer.fail(
                f"missing {settings.spec_filename}",
                f"No {settings.spec_filename} next to {source}; "
                f"copy {template} there and adapt it, or pass --spec",
            )
        else:
            spec_files += list(spec)
            extra = [SMOKE_SPEC] if smoke else []
            if not spec_files and not extra:
                printer.error("No spec files found and smoke checks disabled; nothing to validate")
                raise typer.Exit(code=1)

            if image_ref is None:
                built_image = image
                if _build(svc, graph, target.name, image, printer, secret):
                    _validate(svc, image, spec_files, extra, printer)
            elif svc.engine.image_exists(image_ref):
                _validate(svc, image_ref, spec_files, extra, printer)
            else:
                printer.fail("image", f"Pre-built image not found: {image_ref}")
    except UnknownTargetError as exc:
        printer.error(str(exc))
        raise typer.Exit(code=1)
    finally:
        if localized is not None:
            localized.unlink(missing_ok=True)
        if cleanup and built_image is not None and svc.engine.remove_image(built_image):
            printer.info(f"Removed test image {built_image}")

    printer.summary(f"Test {subject}")
    if not printer.ok:
        raise typer.Exit(code=1)


def _build(
    svc: services.Services,
    graph: StageGraph,
    target: str,
    image: str,
    printer: StatusPrinter,
    secret: bool,
) -> bool:
    orchestrator = svc.orchestrator(graph)
    try:
        result = orchestrator.build(
            target, image, secrets=svc.secrets(secret), only_if_stale=True
        )
    except BuildFailure as exc:
        printer.raw(exc.output)
        printer.fail(f"build {target}", str(exc))
        return False
    if result.reused:
        printer.info(f"{image} is up to date; skipping build")
    else:
        printer.success(f"Built {image} in {result.duration_seconds:.1f}s")
    return True


def _validate(
    svc: services.Services,
    image: str,
    spec_files: list[Path],
    extra: list[ValidationSpec],
    printer: StatusPrinter,
) -> None:
    runner = ValidationRunner(svc.validator, svc.settings.spec_conflict_policy)
    try:
        report = runner.validate(image, spec_files, extra)
    except (SpecCompositionError, SpecConflictError) as exc:
        printer.fail("spec", f"Invalid spec: {exc}")
        return
    except ValidatorError as exc:
        printer.fail("validator", str(exc))
        return

    printer.validation_report(report)
    printer.failures.extend(report.failed_keys)
    if report.ok:
        printer.success(f"All {report.total} assertions passed for {image}")
