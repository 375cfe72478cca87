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

"""Fake VCS backend for tests.

:class:`FakeVCS` satisfies the :class:`~workspacekit.backends.vcs.VCS`
protocol. Constructor keyword arguments inject the state each test
needs; calls are recorded for assertions.
"""

from __future__ import annotations


class FakeVCS:
    """Configurable VCS test double."""

    def __init__(
        self,
        *,
        branch: str = 'main',
        sha: str = 'abc123def4567890abc123def4567890abc123de',
        diff_files: list[str] | None = None,
        messages: list[str] | None = None,
        messages_by_path: dict[str, list[str]] | None = None,
    ) -> None:
        """Initialize with configurable state.

        Args:
            branch: Value returned by ``current_branch()``.
            sha: Value returned by ``head_sha()``.
            diff_files: Files returned by ``files_changed_between()``.
            messages: Commit subjects returned when no path-scoped entry
                matches.
            messages_by_path: Path-scoped commit subjects for
                ``commit_messages_between(paths=...)``.
        """
        self._branch = branch
        self._sha = sha
        self._diff_files = list(diff_files or [])
        self._messages = list(messages or [])
        self._messages_by_path = dict(messages_by_path or {})
        self.calls: list[tuple[str, tuple[object, ...]]] = []

    async def files_changed_between(self, from_ref: str, to_ref: str | None = None) -> list[str]:
        """Return the configured diff."""
        self.calls.append(('files_changed_between', (from_ref, to_ref)))
        return list(self._diff_files)

    async def commit_messages_between(
        self,
        from_ref: str,
        to_ref: str | None = None,
        *,
        paths: list[str] | None = None,
    ) -> list[str]:
        """Return path-scoped messages when configured, else the flat list."""
        self.calls.append(('commit_messages_between', (from_ref, to_ref, tuple(paths or ()))))
        if paths and self._messages_by_path:
            result: list[str] = []
            for path in paths:
                result.extend(self._messages_by_path.get(path, []))
            return result
        return list(self._messages)

    async def current_branch(self) -> str:
        """Return the configured branch."""
        return self._branch

    async def head_sha(self) -> str:
        """Return the configured SHA."""
        return self._sha
