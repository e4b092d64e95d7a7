"""agentic-container: build orchestration for the agentic container images.

  - Deterministic image tags for main, branch, PR and manual builds
  - Dockerfile staleness detection for local iteration
  - Stage-graph aware builds with out-of-band build secrets
  - goss validation with composable, linear spec chains
  - Sweeping of ephemeral PR tags from the container registry
  - dive size checks and Renovate pattern checks
"""

__version__ = "0.1.0"
__description__ = "Build, validate and tag the agentic container images"

from agentic_container.config import BuildSettings
from agentic_container.cli.app import app as cli

__all__ = ["BuildSettings", "cli", "__version__"]
