"""Docker CLI adapter: builds, inspects, removes and runs images."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path

from agentic_container.adapters._process import ToolCommandError, run_tool
from agentic_container.models import BuildRequest

logger = logging.getLogger(__name__)


class DockerEngine:
    """Thin wrapper over the ``docker`` command-line client.

    Implements :class:`~agentic_container.adapters.BuildEngine` and
    :class:`~agentic_container.adapters.ContainerRunner`.

    Parameters
    ----------
    binary:
        The docker executable (``docker`` unless overridden in settings).
    stream_output:
        When True, ``docker build`` output goes straight to the terminal
        instead of being captured.  A failed streamed build carries no
        captured output; the user has already seen it.
    """

    def __init__(self, binary: str = "docker", *, stream_output: bool = False) -> None:
        self._binary = binary
        self._stream_output = stream_output

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build_command(self, request: BuildRequest) -> list[str]:
        """Return the argv for *request*; secret values are never part of it."""
        command = [self._binary, "build", "-f", str(request.dockerfile)]
        if request.target:
            command += ["--target", request.target]
        for secret_id, env_var in request.secret_env.items():
            command += ["--secret", f"id={secret_id},env={env_var}"]
        for key, value in request.build_args.items():
            command += ["--build-arg", f"{key}={value}"]
        for ref in request.cache_from:
            command += ["--cache-from", ref]
        for tag in request.tags:
            command += ["-t", tag]
        command.append(str(request.context))
        return command

    def build(self, request: BuildRequest, secret_values: Mapping[str, str]) -> None:
        env = dict(os.environ)
        env["DOCKER_BUILDKIT"] = "1"
        env.update(secret_values)
        run_tool(
            self.build_command(request),
            env=env,
            capture=not self._stream_output,
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def _inspect(self, reference: str, fmt: str) -> str | None:
        completed = run_tool(
            [self._binary, "image", "inspect", "--format", fmt, reference],
            check=False,
            merge_stderr=False,
        )
        if completed.returncode != 0:
            return None
        return completed.stdout.strip()

    def image_exists(self, reference: str) -> bool:
        return self._inspect(reference, "{{.Id}}") is not None

    def image_created(self, reference: str) -> str | None:
        return self._inspect(reference, "{{.Created}}")

    def image_digest(self, reference: str) -> str:
        digest = self._inspect(reference, "{{.Id}}")
        if digest is None:
            raise ToolCommandError(
                [self._binary, "image", "inspect", reference], 1, f"No such image: {reference}"
            )
        return digest

    def remove_image(self, reference: str) -> bool:
        completed = run_tool([self._binary, "rmi", reference], check=False)
        if completed.returncode != 0:
            logger.warning("Could not remove %s: %s", reference, completed.stdout.strip())
            return False
        return True

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def run_command(
        self,
        image: str,
        command: Sequence[str] = (),
        *,
        interactive: bool = False,
        mounts: Sequence[tuple[Path, str]] = (),
        env: Mapping[str, str] | None = None,
        user: str | None = None,
    ) -> list[str]:
        argv = [self._binary, "run", "--rm"]
        if interactive:
            argv.append("-it")
        if user:
            argv += ["--user", user]
        for host_path, container_path in mounts:
            argv += ["-v", f"{host_path}:{container_path}"]
        for key, value in (env or {}).items():
            argv += ["-e", f"{key}={value}"]
        argv.append(image)
        argv += list(command)
        return argv

    def run(
        self,
        image: str,
        command: Sequence[str] = (),
        *,
        interactive: bool = False,
        mounts: Sequence[tuple[Path, str]] = (),
        env: Mapping[str, str] | None = None,
        user: str | None = None,
        capture: bool = True,
    ) -> tuple[int, str]:
        argv = self.run_command(
            image, command, interactive=interactive, mounts=mounts, env=env, user=user
        )
        completed = run_tool(argv, check=False, capture=capture and not interactive)
        return completed.returncode, completed.stdout or ""
