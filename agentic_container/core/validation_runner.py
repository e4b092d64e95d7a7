"""Validation Runner: evaluates composed assertion specs inside an image.

Every declared assertion is reported.  One failing assertion never stops
the others, and an assertion the validator did not evaluate counts as
failed.
"""

from __future__ import annotations

import logging
import tempfile
import time
from collections.abc import Sequence
from pathlib import Path

from agentic_container.adapters import Validator
from agentic_container.adapters.goss import ValidatorError
from agentic_container.core.specs import (
    POLICY_OVERRIDE,
    SpecCompositionError,
    compose,
    merge_specs,
    write_spec,
)
from agentic_container.models import (
    Assertion,
    AssertionResult,
    CheckOutcome,
    PropertyResult,
    ValidationReport,
    ValidationSpec,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ValidationFailure",
    "ValidationRunner",
    "ValidatorError",
    "raise_for_failures",
]


class ValidationFailure(RuntimeError):
    """Raised when a report contains failed assertions."""

    def __init__(self, report: ValidationReport) -> None:
        self.report = report
        super().__init__(
            f"{len(report.failed)} of {report.total} assertions failed for {report.image}: "
            + ", ".join(report.failed_keys)
        )


def raise_for_failures(report: ValidationReport) -> ValidationReport:
    """Return *report* unchanged, or raise :class:`ValidationFailure`."""
    if report.failed or not report.passed:
        raise ValidationFailure(report)
    return report


def _match_key(resource_type: str, resource_id: str) -> tuple[str, str]:
    # goss reports "KernelParam" for the "kernel-param" section
    return resource_type.replace("-", "").lower(), resource_id


class ValidationRunner:
    """Composes specs, runs them through a :class:`Validator`, grades the result.

    Parameters
    ----------
    validator:
        Adapter that executes a rendered spec inside an image.
    conflict_policy:
        ``override`` (later files win, with a warning) or ``error``.
    """

    def __init__(self, validator: Validator, conflict_policy: str = POLICY_OVERRIDE) -> None:
        self._validator = validator
        self._policy = conflict_policy

    def compose(
        self, spec_files: Sequence[Path], extra_specs: Sequence[ValidationSpec] = ()
    ) -> ValidationSpec:
        composed = compose(spec_files, self._policy) if spec_files else None
        parts = ([composed] if composed is not None else []) + list(extra_specs)
        if not parts:
            raise SpecCompositionError("No spec files given")
        spec = merge_specs(parts, self._policy) if len(parts) > 1 else parts[0]
        if not spec.assertions:
            raise SpecCompositionError(f"Spec {spec.name!r} declares no assertions")
        return spec

    def validate(
        self,
        image_tag: str,
        spec_files: Sequence[Path],
        extra_specs: Sequence[ValidationSpec] = (),
    ) -> ValidationReport:
        """Validate *image_tag* against *spec_files* composed in order.

        Raises
        ------
        SpecCompositionError, SpecConflictError
            Before anything runs, when the specs cannot be composed.
        ValidatorError
            When the validator's output cannot be interpreted.
        """
        spec = self.compose(spec_files, extra_specs)
        started = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="agentic-specs-") as tmp:
            rendered = write_spec(spec, Path(tmp) / "goss.yaml")
            logger.info(
                "Validating %s against %s (%d assertions)", image_tag, spec.name, len(spec)
            )
            outcomes = self._validator.validate(image_tag, rendered)
        report = self.grade(image_tag, spec, outcomes)
        report = report.model_copy(
            update={"duration_seconds": round(time.monotonic() - started, 3)}
        )
        logger.info(
            "%s: %d passed, %d failed", image_tag, len(report.passed), len(report.failed)
        )
        return report

    @staticmethod
    def grade(
        image_tag: str, spec: ValidationSpec, outcomes: Sequence[CheckOutcome]
    ) -> ValidationReport:
        """Turn raw per-property outcomes into one result per declared assertion."""
        by_key: dict[tuple[str, str], list[CheckOutcome]] = {}
        for outcome in outcomes:
            by_key.setdefault(_match_key(outcome.resource_type, outcome.resource_id), []).append(
                outcome
            )

        passed: list[AssertionResult] = []
        failed: list[AssertionResult] = []
        for assertion in spec.assertions.values():
            evaluated = by_key.pop(_match_key(assertion.resource_type, assertion.resource_id), [])
            result = _grade_one(assertion, evaluated)
            (passed if result.passed else failed).append(result)

        for key in by_key:
            logger.debug("Ignoring undeclared validator result %s:%s", *key)

        return ValidationReport(
            image=image_tag,
            spec_names=spec.name.split("+"),
            passed=passed,
            failed=failed,
        )


def _grade_one(assertion: Assertion, outcomes: list[CheckOutcome]) -> AssertionResult:
    if not outcomes:
        return AssertionResult(
            key=assertion.key,
            resource_type=assertion.resource_type,
            resource_id=assertion.resource_id,
            passed=False,
            message="not evaluated by the validator",
        )
    properties = [
        PropertyResult(
            property=o.property,
            successful=o.successful,
            expected=o.expected,
            found=o.found,
            message=o.message,
        )
        for o in outcomes
    ]
    failures = [p for p in properties if not p.successful]
    return AssertionResult(
        key=assertion.key,
        resource_type=assertion.resource_type,
        resource_id=assertion.resource_id,
        passed=not failures,
        message="; ".join(p.message or f"{p.property} mismatch" for p in failures),
        properties=properties,
    )
