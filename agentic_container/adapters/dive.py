"""dive adapter: layer and efficiency metrics for a local image."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from agentic_container.adapters._process import run_tool
from agentic_container.models import ImageAnalysis, LayerInfo

logger = logging.getLogger(__name__)


def parse_dive_json(image: str, document: dict[str, Any]) -> ImageAnalysis:
    """Convert dive's ``--json`` document into an :class:`ImageAnalysis`."""
    summary = document.get("image") or {}
    layers = [
        LayerInfo(
            index=int(layer.get("index", i)),
            size_bytes=int(layer.get("size") or 0),
            command=str(layer.get("command") or "").strip(),
        )
        for i, layer in enumerate(document.get("layers") or [])
    ]
    return ImageAnalysis(
        image=image,
        size_bytes=int(summary.get("sizeBytes") or 0),
        efficiency=float(summary.get("efficiency") or 0.0),
        wasted_bytes=int(summary.get("userSizeBytesWasted") or 0),
        layers=layers,
    )


class DiveAnalyzer:
    """Runs ``dive <image> --json <file>`` and parses the result."""

    def __init__(self, binary: str = "dive") -> None:
        self._binary = binary

    def analyze(self, image: str) -> ImageAnalysis:
        fd, name = tempfile.mkstemp(prefix="dive-", suffix=".json")
        os.close(fd)
        path = Path(name)
        try:
            env = dict(os.environ)
            env["CI"] = "true"
            run_tool([self._binary, image, "--json", str(path)], env=env)
            document = json.loads(path.read_text(encoding="utf-8"))
        finally:
            path.unlink(missing_ok=True)
        logger.debug("dive analysed %s (%d layers)", image, len(document.get("layers") or []))
        return parse_dive_json(image, document)
