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

"""The version-control queries workspacekit depends on.

Change detection needs the files and commit subjects between two refs;
snapshot versions need the branch and ``HEAD``. :class:`VCS` names
exactly those four queries, and :class:`GitCLIBackend` answers them
with ``git``. Tests pass a fake with the same methods.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from workspacekit.backends.vcs.git import GitCLIBackend as GitCLIBackend

__all__ = [
    'GitCLIBackend',
    'VCS',
]


@runtime_checkable
class VCS(Protocol):
    """Read-only version-control queries, all async."""

    async def files_changed_between(self, from_ref: str, to_ref: str | None = None) -> list[str]:
        """Paths changed from ``from_ref`` to ``to_ref`` (``HEAD`` when ``None``)."""
        ...

    async def commit_messages_between(
        self,
        from_ref: str,
        to_ref: str | None = None,
        *,
        paths: list[str] | None = None,
    ) -> list[str]:
        """Commit subjects after ``from_ref`` up to ``to_ref`` (``HEAD`` when ``None``).

        ``paths`` limits the log to commits touching them.
        """
        ...

    async def current_branch(self) -> str:
        """Name of the checked-out branch."""
        ...

    async def head_sha(self) -> str:
        """Full hash of ``HEAD``."""
        ...
