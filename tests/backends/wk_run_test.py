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

"""Tests for workspacekit.backends._run module."""

from __future__ import annotations

import dataclasses
import subprocess  # noqa: S404 - tests run harmless shell utilities
import sys
from pathlib import Path

import pytest
from workspacekit.backends._run import CommandResult, run_command
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import configure_logging

configure_logging(quiet=True)


class TestCommandResult:
    """Tests for CommandResult dataclass."""

    def test_ok(self) -> None:
        """Ok is True only for a zero exit code."""
        assert CommandResult(command=['echo'], return_code=0).ok
        assert not CommandResult(command=['false'], return_code=1).ok

    def test_lines(self) -> None:
        """Blank stdout lines are dropped."""
        result = CommandResult(command=['git'], return_code=0, stdout='a.ts\n\n  \nb.ts\n')
        assert result.lines == ['a.ts', 'b.ts']

    def test_require_ok_passes_through(self) -> None:
        """A successful result is returned unchanged."""
        result = CommandResult(command=['git', 'status'], return_code=0)
        assert result.require_ok(E.VCS_COMMAND_FAILED) is result

    def test_require_ok_raises(self) -> None:
        """A failure becomes a WorkspaceKitError with the command and stderr."""
        result = CommandResult(command=['git', 'log'], return_code=128, stderr='fatal: bad range\n')
        with pytest.raises(WorkspaceKitError) as exc_info:
            result.require_ok(E.VCS_COMMAND_FAILED, hint='check refs')
        assert exc_info.value.code is E.VCS_COMMAND_FAILED
        assert exc_info.value.info.message == 'git log failed: fatal: bad range'
        assert exc_info.value.hint == 'check refs'

    def test_require_ok_without_stderr(self) -> None:
        """Without stderr the exit status is reported."""
        with pytest.raises(WorkspaceKitError, match='exit status 2'):
            CommandResult(command=['git'], return_code=2).require_ok(E.VCS_COMMAND_FAILED)

    def test_frozen(self) -> None:
        """CommandResult is immutable."""
        result = CommandResult(command=['echo'], return_code=0)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.return_code = 1  # type: ignore[misc]


class TestRunCommand:
    """Tests for run_command()."""

    def test_successful_command(self) -> None:
        """Stdout of a successful command is captured."""
        result = run_command([sys.executable, '-c', 'print("hello")'])
        assert result.ok
        assert result.stdout.strip() == 'hello'
        assert result.duration >= 0

    def test_failed_command(self) -> None:
        """A non-zero exit is returned, not raised."""
        result = run_command([sys.executable, '-c', 'import sys; sys.stderr.write("boom"); sys.exit(3)'])
        assert result.return_code == 3
        assert result.stderr == 'boom'

    def test_check_raises_on_failure(self) -> None:
        """With check=True a failure raises CalledProcessError."""
        with pytest.raises(subprocess.CalledProcessError):
            run_command([sys.executable, '-c', 'raise SystemExit(1)'], check=True)

    def test_timeout(self) -> None:
        """A command exceeding the timeout raises TimeoutExpired."""
        with pytest.raises(subprocess.TimeoutExpired):
            run_command([sys.executable, '-c', 'import time; time.sleep(5)'], timeout=1)

    def test_cwd(self, tmp_path: Path) -> None:
        """The command runs in the given directory."""
        result = run_command([sys.executable, '-c', 'import os; print(os.getcwd())'], cwd=str(tmp_path))
        assert result.stdout.strip() == str(tmp_path)
