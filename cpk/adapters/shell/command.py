"""
Tool adapter — run an external program from an argument vector.

Used for pkgadd, pkgrm, pkginfo, pkgmk, signify and the lifecycle
scripts. No shell interpolation: the Action's program and args are
passed to the OS as-is. stderr is merged into stdout; each line is
echoed as it arrives and kept for the receipt. There is no timeout,
a hung child blocks the run.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
import time
from collections.abc import Callable
from pathlib import Path

from cpk.adapters.base import Adapter, ExecutionContext
from cpk.core.models.action import Receipt

logger = logging.getLogger(__name__)


def _write_stdout(line: str) -> None:
    sys.stdout.write(line)
    sys.stdout.flush()


class ToolAdapter(Adapter):
    """Execute programs and capture their merged output."""

    def __init__(self, echo: Callable[[str], None] | None = None):
        self._echo = echo or _write_stdout

    @property
    def name(self) -> str:
        return "tool"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.program:
            return False, "Missing program to execute"

        cwd = context.working_dir
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        argv = action.argv
        cwd = context.working_dir

        logger.debug("Executing: %s (cwd=%s)", shlex.join(argv), cwd)
        start = time.monotonic()
        captured: list[str] = []

        try:
            with subprocess.Popen(
                argv,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            ) as proc:
                if proc.stdout:
                    for line in proc.stdout:
                        if action.stream:
                            self._echo(line)
                        if action.capture:
                            captured.append(line)
                return_code = proc.wait()
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                error=f"Error executing {argv[0]}: {e}",
                metadata={"argv": argv},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = "".join(captured)
        metadata = {"argv": argv, "return_code": return_code}

        if return_code == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=action.id,
                output=output,
                duration_ms=elapsed_ms,
                metadata=metadata,
            )

        logger.debug("%s exited with code %d", argv[0], return_code)
        return Receipt.failure(
            adapter=self.name,
            action_id=action.id,
            error=f"{argv[0]} exited with code {return_code}",
            output=output,
            duration_ms=elapsed_ms,
            metadata=metadata,
        )
