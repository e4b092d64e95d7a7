"""Staleness Detector: does a local image predate its Dockerfile?

A timestamp-only heuristic for local iteration.  Files copied from the build
context are not considered; CI skips the check and relies on the engine's
layer cache instead.  Every doubtful case answers "rebuild".
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from agentic_container.adapters import ImageInspector
from agentic_container.models import ImageTag

logger = logging.getLogger(__name__)

_RFC3339 = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<zone>Z|[+-]\d{2}:?\d{2})?$"
)


class StalenessCheckAmbiguous(ValueError):
    """Raised when an image creation timestamp cannot be interpreted."""


def parse_image_created(raw: str) -> datetime:
    """Parse Docker's ``{{.Created}}`` value into an aware UTC datetime.

    Docker reports nanosecond fractions (``2025-01-01T00:00:00.123456789Z``);
    they are truncated to microseconds.  A missing zone is taken as UTC.
    """
    match = _RFC3339.match((raw or "").strip())
    if match is None:
        raise StalenessCheckAmbiguous(f"unrecognised image timestamp: {raw!r}")
    text = match.group("base").replace(" ", "T")
    fraction = match.group("fraction")
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    zone = match.group("zone")
    if zone is None or zone == "Z":
        text += "+00:00"
    else:
        text += zone if ":" in zone else f"{zone[:3]}:{zone[3:]}"
    try:
        return datetime.fromisoformat(text).astimezone(timezone.utc)
    except ValueError as exc:
        raise StalenessCheckAmbiguous(f"unrecognised image timestamp: {raw!r}") from exc


class StalenessDetector:
    """Decides whether an image must be rebuilt from its Dockerfile."""

    def __init__(self, inspector: ImageInspector) -> None:
        self._inspector = inspector

    def needs_rebuild(self, dockerfile_path: Path, image_tag: ImageTag | str) -> bool:
        """Return True when *image_tag* is absent or older than *dockerfile_path*.

        Equal timestamps count as fresh.  An unreadable Dockerfile or an
        unparseable creation time fails open (returns True).
        """
        reference = image_tag.reference if isinstance(image_tag, ImageTag) else image_tag

        raw_created = self._inspector.image_created(reference)
        if raw_created is None:
            logger.info("Image %s not found; build required", reference)
            return True

        try:
            modified = datetime.fromtimestamp(dockerfile_path.stat().st_mtime, tz=timezone.utc)
        except OSError as exc:
            logger.warning("Cannot stat %s (%s); assuming %s is stale", dockerfile_path, exc, reference)
            return True

        try:
            created = parse_image_created(raw_created)
        except StalenessCheckAmbiguous as exc:
            logger.warning("%s; assuming %s is stale", exc, reference)
            return True

        if modified > created:
            logger.info(
                "%s modified %s after image %s was created %s; rebuild required",
                dockerfile_path, modified.isoformat(), reference, created.isoformat(),
            )
            return True
        logger.debug("Image %s is up to date with %s", reference, dockerfile_path)
        return False
