"""
shell.py

Responsibility: Run external commands (git, the build script) with captured output.

Output and command lines are passed through `redact()` before they reach an
exception message or a log record, so credentials embedded in remote URLs
never leak.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

_MASK = "***"


class CommandError(RuntimeError):
    def __init__(self, cmd: Sequence[str], returncode: int, output: str) -> None:
        self.cmd = tuple(cmd)
        self.returncode = returncode
        self.output = output
        super().__init__(f"Command failed (exit {returncode}): {' '.join(self.cmd)}\n\n{output}")


@dataclass(frozen=True)
class Runner:
    """
    Subprocess runner bound to a set of secrets to scrub from output.

    `env` entries are merged over the inherited environment.
    """

    secrets: tuple[str, ...] = ()
    env: dict[str, str] | None = None
    timeout: float | None = None

    def redact(self, text: str) -> str:
        for secret in self.secrets:
            if secret:
                text = text.replace(secret, _MASK)
        return text

    def run(self, cmd: Sequence[str], *, cwd: Path, check: bool = True) -> subprocess.CompletedProcess[str]:
        """
        Run `cmd` in `cwd`, merging stderr into stdout.

        With `check=True` a non-zero exit raises `CommandError` carrying the
        redacted output; otherwise the completed process is returned as-is.
        """
        shown = [self.redact(part) for part in cmd]
        logger.debug("$ %s", " ".join(shown))
        env = None
        if self.env:
            env = {**os.environ, **self.env}
        try:
            proc = subprocess.run(
                list(cmd),
                cwd=str(cwd),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise CommandError(shown, 127, f"Executable not found: {cmd[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(shown, -1, f"Timed out after {self.timeout}s") from e

        if check and proc.returncode != 0:
            raise CommandError(shown, proc.returncode, self.redact(proc.stdout or "").strip())
        return proc
