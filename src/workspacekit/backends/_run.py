# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Blocking subprocess execution with captured output.

The VCS backend shells out to ``git`` through :func:`run_command` and
inspects the returned :class:`CommandResult`. A non-zero exit is data,
not an exception; callers that need success call
:meth:`CommandResult.require_ok`, which turns a failure into a
:class:`~workspacekit.errors.WorkspaceKitError`.
"""

from __future__ import annotations

import subprocess  # noqa: S404 - running git is the purpose of this module
import time
from dataclasses import dataclass
from pathlib import Path

from workspacekit.errors import ErrorCode, WorkspaceKitError
from workspacekit.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60

# Characters of stderr kept in log events and error messages.
_STDERR_EXCERPT = 500


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one process run.

    Attributes:
        command: Program and arguments.
        return_code: Exit status.
        stdout: Decoded standard output.
        stderr: Decoded standard error.
        duration: Wall-clock time in milliseconds.
    """

    command: list[str]
    return_code: int
    stdout: str = ''
    stderr: str = ''
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        """Whether the process exited with status 0."""
        return self.return_code == 0

    @property
    def lines(self) -> list[str]:
        """Stdout split into lines, blank ones dropped."""
        return [line for line in self.stdout.splitlines() if line.strip()]

    def require_ok(self, code: ErrorCode, hint: str = '') -> CommandResult:
        """Return ``self`` or raise ``code`` when the process failed."""
        if self.ok:
            return self
        detail = self.stderr.strip()[:_STDERR_EXCERPT] or f'exit status {self.return_code}'
        raise WorkspaceKitError(code=code, message=f'{" ".join(self.command)} failed: {detail}', hint=hint)


def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
    check: bool = False,
) -> CommandResult:
    """Run ``cmd`` to completion and capture its output as text.

    Raises:
        subprocess.CalledProcessError: When ``check`` is set and the exit
            status is non-zero.
        subprocess.TimeoutExpired: When ``timeout`` seconds pass first.
    """
    started = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - argv built by backends
            cmd,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=check,
        )
    except subprocess.TimeoutExpired:
        logger.error('command_timed_out', argv=cmd, timeout=timeout)
        raise
    except subprocess.CalledProcessError as exc:
        logger.warning(
            'command_failed',
            argv=cmd,
            return_code=exc.returncode,
            stderr=(exc.stderr or '')[:_STDERR_EXCERPT],
        )
        raise

    result = CommandResult(
        command=list(cmd),
        return_code=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        duration=(time.monotonic() - started) * 1000,
    )
    if result.ok:
        logger.debug('command_finished', argv=cmd, cwd=str(cwd or '.'), duration_ms=round(result.duration, 1))
    else:
        logger.warning(
            'command_failed',
            argv=cmd,
            return_code=result.return_code,
            stderr=result.stderr[:_STDERR_EXCERPT],
        )
    return result


__all__ = [
    'CommandResult',
    'DEFAULT_TIMEOUT_SECONDS',
    'run_command',
]
