"""goss adapter: runs a rendered gossfile inside an image and parses the JSON."""

from __future__ import annotations

import json
import logging
import shlex
from pathlib import Path
from typing import Any

from agentic_container.adapters import ContainerRunner
from agentic_container.models import CheckOutcome

logger = logging.getLogger(__name__)

CONTAINER_SPEC_PATH = "/tmp/goss.yaml"


class ValidatorError(RuntimeError):
    """Raised when the validator produced no usable result."""


def install_and_validate_script(goss_version: str) -> str:
    """Shell snippet that installs goss through mise if needed, then validates."""
    pinned = shlex.quote(f"goss@{goss_version}")
    return (
        "command -v goss >/dev/null 2>&1"
        " || mise use -g goss@latest >/dev/null 2>&1"
        f" || mise use -g {pinned} >/dev/null 2>&1; "
        f"goss -g {CONTAINER_SPEC_PATH} validate --format json --no-color"
    )


def parse_goss_json(output: str) -> list[CheckOutcome]:
    """Parse goss ``--format json`` output into per-property outcomes.

    Anything printed before the JSON document (pull progress, mise chatter)
    is skipped.  Raises :class:`ValidatorError` when no document is found.
    """
    start = output.find("{")
    if start < 0:
        raise ValidatorError(f"validator produced no JSON output:\n{output.strip()}")
    try:
        document, _ = json.JSONDecoder().raw_decode(output[start:])
    except json.JSONDecodeError as exc:
        raise ValidatorError(f"unparseable validator output: {exc}\n{output.strip()}") from exc
    if not isinstance(document, dict) or not isinstance(document.get("results"), list):
        raise ValidatorError("validator output has no 'results' list")

    outcomes: list[CheckOutcome] = []
    for item in document["results"]:
        outcomes.append(_outcome(item))
    return outcomes


def _outcome(item: dict[str, Any]) -> CheckOutcome:
    message = item.get("summary-line") or item.get("human") or ""
    if item.get("err"):
        message = f"{message} ({item['err']})" if message else str(item["err"])
    return CheckOutcome(
        resource_type=str(item.get("resource-type", "")).lower(),
        resource_id=str(item.get("resource-id", "")),
        property=str(item.get("property", "")),
        successful=bool(item.get("successful", False)),
        expected=item.get("expected"),
        found=item.get("found"),
        message=str(message).strip(),
    )


class GossValidator:
    """Runs goss as root in a throwaway container of the image under test.

    goss exits 1 when some checks fail; that is a normal result as long as
    the JSON document is present.
    """

    def __init__(
        self,
        runner: ContainerRunner,
        *,
        goss_version: str = "0.4.9",
        env: dict[str, str] | None = None,
    ) -> None:
        self._runner = runner
        self._goss_version = goss_version
        self._env = env or {}

    def validate(self, image: str, spec_file: Path) -> list[CheckOutcome]:
        status, output = self._runner.run(
            image,
            ["bash", "-c", install_and_validate_script(self._goss_version)],
            mounts=[(spec_file.resolve(), f"{CONTAINER_SPEC_PATH}:ro")],
            env=self._env,
            user="root",
        )
        logger.debug("goss exited with status %d for %s", status, image)
        if status not in (0, 1):
            try:
                return parse_goss_json(output)
            except ValidatorError:
                raise ValidatorError(
                    f"validator exited with status {status}:\n{output.strip()}"
                ) from None
        return parse_goss_json(output)
