"""Blocking subprocess helper shared by every tool adapter."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


class ToolCommandError(RuntimeError):
    """Raised when an external tool exits non-zero or cannot be started.

    ``output`` carries the tool's combined stdout/stderr verbatim so callers
    can surface it unchanged.
    """

    def __init__(self, command: Sequence[str], returncode: int, output: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"{shlex.join(self.command)} exited with status {returncode}"
            + (f":\n{output.rstrip()}" if output.strip() else "")
        )


def run_tool(
    command: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    capture: bool = True,
    merge_stderr: bool = True,
    cwd: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run *command* to completion and return the completed process.

    When *env* is given it is the complete environment of the child; values
    placed there never appear in argv.  With ``check=True`` a non-zero exit
    raises :class:`ToolCommandError`.  With ``capture=False`` the child
    inherits the terminal (interactive sessions, streamed build output).
    Pass ``merge_stderr=False`` when stdout must stay machine-readable.
    """
    logger.debug("Running: %s", shlex.join(command))
    try:
        completed = subprocess.run(
            list(command),
            env=dict(env) if env is not None else None,
            cwd=cwd,
            text=True,
            stdout=subprocess.PIPE if capture else None,
            stderr=(subprocess.STDOUT if merge_stderr else subprocess.PIPE) if capture else None,
            check=False,
        )
    except OSError as exc:
        raise ToolCommandError(command, 127, str(exc)) from exc

    if check and completed.returncode != 0:
        output = (completed.stdout or "") + (completed.stderr or "")
        raise ToolCommandError(command, completed.returncode, output)
    return completed
