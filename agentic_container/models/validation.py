"""Assertion spec and validation report models."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Assertion(BaseModel):
    """One declared expectation: a goss resource and its attributes.

    ``resource_type`` is the goss section (``command``, ``file``, ``user``,
    ``group`` ...); ``attributes`` hold the expectations (``exit-status``,
    ``stdout``, ``exists``, ``mode``, ``owner``, ``groups`` ...).
    """

    model_config = ConfigDict(frozen=True)

    resource_type: str
    resource_id: str
    attributes: dict[str, Any] = {}
    source: str = ""  # spec name the assertion came from

    @property
    def key(self) -> str:
        return f"{self.resource_type}:{self.resource_id}"


class ValidationSpec(BaseModel):
    """A named collection of assertions, possibly including another spec."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path | None = None
    assertions: dict[str, Assertion] = {}  # keyed by Assertion.key
    includes: list[Path] = []

    def __len__(self) -> int:
        return len(self.assertions)


class PropertyResult(BaseModel):
    """A single property check reported by the validator."""

    model_config = ConfigDict(frozen=True)

    property: str
    successful: bool
    expected: Any = None
    found: Any = None
    message: str = ""


class AssertionResult(BaseModel):
    """Outcome of one assertion; it passes only if every property passed."""

    model_config = ConfigDict(frozen=True)

    key: str
    resource_type: str
    resource_id: str
    passed: bool
    message: str = ""
    properties: list[PropertyResult] = []


class ValidationReport(BaseModel):
    """Every assertion's outcome for one image and one composed spec."""

    model_config = ConfigDict(frozen=True)

    image: str
    spec_names: list[str] = []
    passed: list[AssertionResult] = []
    failed: list[AssertionResult] = []
    duration_seconds: float = 0.0
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def total(self) -> int:
        return len(self.passed) + len(self.failed)

    @property
    def ok(self) -> bool:
        return not self.failed and bool(self.passed)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def failed_keys(self) -> list[str]:
        return [r.key for r in self.failed]


class CheckOutcome(BaseModel):
    """One raw property result as emitted by the validator tool."""

    model_config = ConfigDict(frozen=True)

    resource_type: str
    resource_id: str
    property: str
    successful: bool
    expected: Any = None
    found: Any = None
    message: str = ""

    @property
    def key(self) -> str:
        return f"{self.resource_type}:{self.resource_id}"
