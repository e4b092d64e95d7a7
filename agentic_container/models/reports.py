"""Build and analysis report models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_MB = 1024 * 1024


class BuildResult(BaseModel):
    """Output of a successful build; a tag exists only once this is produced."""

    model_config = ConfigDict(frozen=True)

    target: str
    tag: str
    digest: str = ""
    duration_seconds: float = 0.0
    reused: bool = False  # True when a fresh image was kept instead of rebuilt
    built_parents: list[str] = []
    reused_parents: list[str] = []
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class LayerInfo(BaseModel):
    """A single image layer as reported by the analyzer."""

    model_config = ConfigDict(frozen=True)

    index: int = 0
    size_bytes: int = 0
    command: str = ""

    @property
    def size_mb(self) -> int:
        return self.size_bytes // _MB


class ImageAnalysis(BaseModel):
    """Size and efficiency metrics for one image."""

    model_config = ConfigDict(frozen=True)

    image: str
    size_bytes: int = 0
    efficiency: float = 0.0  # 0.0 - 1.0
    wasted_bytes: int = 0
    layers: list[LayerInfo] = []

    @property
    def size_mb(self) -> int:
        return self.size_bytes // _MB

    @property
    def wasted_mb(self) -> int:
        return self.wasted_bytes // _MB

    @property
    def waste_percent(self) -> float:
        if self.size_bytes <= 0:
            return 0.0
        return self.wasted_bytes * 100 / self.size_bytes

    def largest_layers(self, count: int = 5) -> list[LayerInfo]:
        return sorted(self.layers, key=lambda layer: layer.size_bytes, reverse=True)[:count]


class ThresholdCheck(BaseModel):
    """One numeric threshold comparison."""

    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    actual: float
    limit: float
    message: str


class SizeReport(BaseModel):
    """All threshold checks for an image, optionally against a baseline."""

    model_config = ConfigDict(frozen=True)

    analysis: ImageAnalysis
    baseline: ImageAnalysis | None = None
    checks: list[ThresholdCheck] = []
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def size_change_bytes(self) -> int | None:
        if self.baseline is None:
            return None
        return self.analysis.size_bytes - self.baseline.size_bytes


class CheckStatus(str, Enum):
    """Status of a configuration check line."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"
    INFO = "INFO"


class ConfigCheckResult(BaseModel):
    """One finding from a configuration checker."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: CheckStatus
    message: str
    count: int = 0
    samples: list[str] = []
