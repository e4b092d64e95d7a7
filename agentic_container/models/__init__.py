"""agentic-container data models — all Pydantic v2, all frozen (immutable)."""

from agentic_container.models.lifecycle import (
    PRLifecycleState,
    PRState,
    RegistryDeleteFailure,
    RegistryVersion,
    SweepResult,
)
from agentic_container.models.reports import (
    BuildResult,
    CheckStatus,
    ConfigCheckResult,
    ImageAnalysis,
    LayerInfo,
    SizeReport,
    ThresholdCheck,
)
from agentic_container.models.tags import (
    EPHEMERAL_TAG_PATTERN,
    BranchBuild,
    BuildContext,
    ImageTag,
    MainBranchBuild,
    ManualBuild,
    PullRequestBuild,
    TagAllocation,
)
from agentic_container.models.targets import BuildRequest, BuildTarget
from agentic_container.models.validation import (
    Assertion,
    AssertionResult,
    CheckOutcome,
    PropertyResult,
    ValidationReport,
    ValidationSpec,
)

__all__ = [
    # targets
    "BuildTarget",
    "BuildRequest",
    # tags
    "EPHEMERAL_TAG_PATTERN",
    "ImageTag",
    "BuildContext",
    "MainBranchBuild",
    "BranchBuild",
    "PullRequestBuild",
    "ManualBuild",
    "TagAllocation",
    # validation
    "Assertion",
    "ValidationSpec",
    "PropertyResult",
    "AssertionResult",
    "CheckOutcome",
    "ValidationReport",
    # lifecycle
    "PRState",
    "PRLifecycleState",
    "RegistryVersion",
    "RegistryDeleteFailure",
    "SweepResult",
    # reports
    "BuildResult",
    "LayerInfo",
    "ImageAnalysis",
    "ThresholdCheck",
    "SizeReport",
    "CheckStatus",
    "ConfigCheckResult",
]
