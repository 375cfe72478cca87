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

"""``git`` implementation of :class:`~workspacekit.backends.vcs.VCS`.

Each query runs one ``git`` process in a worker thread so the event
loop stays free. A failing process raises ``VCS_COMMAND_FAILED``.

Commands::

    files_changed_between    git diff --name-only <from> [<to>]
    commit_messages_between  git log --pretty=format:%s <from>..<to|HEAD> [-- <paths>]
    current_branch           git rev-parse --abbrev-ref HEAD
    head_sha                 git rev-parse HEAD
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from workspacekit.backends._run import CommandResult, run_command
from workspacekit.errors import E
from workspacekit.logging import get_logger

logger = get_logger(__name__)


class GitCLIBackend:
    """Answer VCS queries for the repository at ``repo_root``."""

    def __init__(self, repo_root: Path) -> None:
        """Remember the repository root; nothing is run yet."""
        self._root = repo_root

    def _git(self, *args: str) -> CommandResult:
        return run_command(['git', *args], cwd=self._root)

    async def _query(self, *args: str) -> CommandResult:
        result = await asyncio.to_thread(self._git, *args)
        return result.require_ok(
            E.VCS_COMMAND_FAILED,
            hint=f'Check that {self._root} is a git repository and the refs exist.',
        )

    async def files_changed_between(self, from_ref: str, to_ref: str | None = None) -> list[str]:
        """Repository-relative paths that differ between the refs; ``to_ref`` defaults to ``HEAD``."""
        files = (await self._query('diff', '--name-only', from_ref, to_ref or 'HEAD')).lines
        logger.debug('files_changed_between', from_ref=from_ref, to_ref=to_ref, count=len(files))
        return files

    async def commit_messages_between(
        self,
        from_ref: str,
        to_ref: str | None = None,
        *,
        paths: list[str] | None = None,
    ) -> list[str]:
        """Subjects of the commits in ``from_ref..to_ref``, newest first."""
        pathspec = ['--', *paths] if paths else []
        result = await self._query('log', '--pretty=format:%s', f'{from_ref}..{to_ref or "HEAD"}', *pathspec)
        return result.lines

    async def current_branch(self) -> str:
        """Checked-out branch, or ``HEAD`` when detached."""
        return (await self._query('rev-parse', '--abbrev-ref', 'HEAD')).stdout.strip()

    async def head_sha(self) -> str:
        """Full commit hash of ``HEAD``."""
        return (await self._query('rev-parse', 'HEAD')).stdout.strip()


__all__ = [
    'GitCLIBackend',
]
