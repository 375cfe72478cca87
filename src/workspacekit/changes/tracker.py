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

"""Change tracking across a workspace.

The :class:`ChangeTracker` ties a :class:`~workspacekit.workspace.Workspace`
to a :class:`~workspacekit.changes.store.ChangeStore`: it validates that
recorded changes name real packages, groups them into changesets, walks
the release lifecycle per environment, and turns VCS diffs into
provisional changes.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ Plain-English                              │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Change                  │ A note: "package X got a fix".             │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Environment             │ A place you ship to, like "staging".       │
    │                         │ A change can be out in one, not the other. │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ ChangeScope             │ Which package a changed file belongs to,   │
    │                         │ or "root" / "monorepo" when none.          │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ dry_run                 │ Show what would be marked released, but    │
    │                         │ leave the store alone.                     │
    └─────────────────────────┴────────────────────────────────────────────┘

Scope mapping::

    packages/core/src/index.ts  → Package("@acme/core")
    README.md                   → Root
    scripts/release.sh          → Monorepo

Usage::

    from workspacekit.changes import Change, ChangeKind, ChangeTracker, MemoryChangeStore

    tracker = ChangeTracker(workspace, MemoryChangeStore(), vcs=GitCLIBackend(root))
    tracker.record_change(Change('@acme/core', ChangeKind.FIX, 'Handle empty input'))
    detected = await tracker.detect_changes_between('v1.0.0')
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from workspacekit.changes._types import Change, ChangeKind, ChangeScope, ChangeScopeKind, Changeset
from workspacekit.changes.conventional import infer_change_kind
from workspacekit.changes.store import ChangeStore
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import get_logger
from workspacekit.version import Version, VersionBump

if TYPE_CHECKING:
    from workspacekit.backends.vcs import VCS
    from workspacekit.workspace import Workspace

logger = get_logger(__name__)

PACKAGES_DIR = 'packages'


def describe_commits(messages: Sequence[str], file_count: int) -> str:
    """Summarize commit subjects into a one-line change description.

    >>> describe_commits(['fix: a', 'fix: b'], 3)
    'fix: a (and 1 more commits)'
    >>> describe_commits([], 3)
    'Changes detected (3 files)'
    """
    if not messages:
        return f'Changes detected ({file_count} files)'
    subject = messages[0].strip().splitlines()
    first = subject[0].strip() if subject else ''
    if not first:
        return f'Changes detected ({file_count} files)'
    if len(messages) == 1:
        return first
    return f'{first} (and {len(messages) - 1} more commits)'


class ChangeTracker:
    """Records, detects and releases changes for one workspace.

    Args:
        workspace: The discovered workspace.
        store: Persistence backend.
        vcs: Optional VCS backend, required by :meth:`detect_changes_between`.
        author: Author stamped on detected changes.
    """

    def __init__(
        self,
        workspace: Workspace,
        store: ChangeStore,
        vcs: VCS | None = None,
        author: str | None = None,
    ) -> None:
        """Bind the tracker to its collaborators."""
        self.workspace = workspace
        self.store = store
        self.vcs = vcs
        self.author = author
        self._scope_cache: dict[str, ChangeScope] = {}

    def _check_package(self, name: str) -> None:
        if self.workspace.get_package(name) is None:
            raise WorkspaceKitError(
                code=E.PACKAGE_INVALID,
                message=f"Package '{name}' not found in workspace",
                hint='Changes can only be recorded against discovered packages.',
            )

    def record_change(self, change: Change) -> None:
        """Record a single change.

        Raises:
            WorkspaceKitError: ``PACKAGE_INVALID`` if the package is unknown.
        """
        self._check_package(change.package)
        self.store.record_change(change)

    def create_changeset(
        self,
        summary: str,
        changes: list[Change],
        *,
        bump: VersionBump | None = None,
        environments: list[str] | None = None,
        branch: str = '',
    ) -> Changeset:
        """Group ``changes`` into a persisted changeset.

        Raises:
            WorkspaceKitError: ``PACKAGE_INVALID`` if any change names an
                unknown package; nothing is stored in that case.
        """
        for change in changes:
            self._check_package(change.package)
        changeset = Changeset.from_changes(
            changes,
            summary,
            bump=bump,
            environments=environments,
            branch=branch,
        )
        self.store.save_changeset(changeset)
        logger.info(
            'changeset_created',
            id=changeset.id,
            packages=changeset.packages,
            bump=changeset.bump.value,
        )
        return changeset

    def unreleased_changes(self) -> dict[str, list[Change]]:
        """Unreleased changes per package, for packages that have any."""
        result: dict[str, list[Change]] = {}
        for info in self.workspace.packages:
            changes = self.store.get_unreleased_changes(info.name)
            if changes:
                result[info.name] = changes
        return result

    def unreleased_changes_for_environment(self, environment: str) -> dict[str, list[Change]]:
        """Unreleased changes that still have to ship to ``environment``."""
        result: dict[str, list[Change]] = {}
        for package, changes in self.unreleased_changes().items():
            pending = [c for c in changes if c.is_unreleased_in(environment)]
            if pending:
                result[package] = pending
        return result

    def _release(
        self,
        package: str,
        version: Version,
        candidates: list[Change],
        environment: str | None,
        dry_run: bool,
    ) -> list[Change]:
        if not candidates:
            return []
        if dry_run:
            for change in candidates:
                change.mark_released(version, environment)
            logger.info(
                'release_preview',
                package=package,
                version=str(version),
                environment=environment,
                count=len(candidates),
            )
            return candidates
        updated = self.store.mark_released(package, version, [c.id for c in candidates], environment)
        logger.info(
            'changes_released',
            package=package,
            version=str(version),
            environment=environment,
            count=len(updated),
        )
        return updated

    def mark_released(self, package: str, version: Version, *, dry_run: bool = False) -> list[Change]:
        """Release every unreleased change of ``package`` at ``version``."""
        self._check_package(package)
        candidates = self.store.get_unreleased_changes(package)
        return self._release(package, version, candidates, None, dry_run)

    def mark_released_for_environment(
        self,
        package: str,
        version: Version,
        environment: str,
        *,
        dry_run: bool = False,
    ) -> list[Change]:
        """Release the changes of ``package`` still pending in ``environment``."""
        self._check_package(package)
        candidates = [c for c in self.store.get_unreleased_changes(package) if c.is_unreleased_in(environment)]
        return self._release(package, version, candidates, environment, dry_run)

    def mark_specific_changes_as_released(
        self,
        package: str,
        version: Version,
        change_ids: Sequence[str],
        *,
        dry_run: bool = False,
    ) -> list[Change]:
        """Release only the listed changes of ``package``."""
        self._check_package(package)
        wanted = set(change_ids)
        candidates = [c for c in self.store.get_unreleased_changes(package) if c.id in wanted]
        return self._release(package, version, candidates, None, dry_run)

    def clear_cache(self) -> None:
        """Forget memoized file scopes."""
        self._scope_cache.clear()

    def _relative(self, file_path: str) -> PurePosixPath | None:
        path = Path(file_path)
        if not path.is_absolute():
            return PurePosixPath(path.as_posix())
        try:
            return PurePosixPath(path.relative_to(self.workspace.root).as_posix())
        except ValueError:
            return None

    def map_file_to_scope(self, file_path: str) -> ChangeScope:
        """Classify a path (absolute, or relative to the root) by owning package."""
        cached = self._scope_cache.get(file_path)
        if cached is not None:
            return cached

        scope = self._compute_scope(file_path)
        self._scope_cache[file_path] = scope
        logger.debug('file_scope_mapped', path=file_path, scope=scope.kind.value, package=scope.package)
        return scope

    def _compute_scope(self, file_path: str) -> ChangeScope:
        relative = self._relative(file_path)
        if relative is None:
            return ChangeScope.monorepo()
        parts = relative.parts
        members = [info for info in self.workspace.packages if not info.is_root]

        if len(parts) > 2 and parts[0] == PACKAGES_DIR:
            wanted = f'{PACKAGES_DIR}/{parts[1]}'
            for info in members:
                if info.relative_path == wanted:
                    return ChangeScope.for_package(info.name)

        text = relative.as_posix()
        best = None
        for info in members:
            prefix = info.relative_path.rstrip('/') + '/'
            if text.startswith(prefix) and (best is None or len(info.relative_path) > len(best.relative_path)):
                best = info
        if best is not None:
            return ChangeScope.for_package(best.name)

        if len(parts) <= 1:
            return ChangeScope.root()
        return ChangeScope.monorepo()

    async def detect_changes_between(self, from_ref: str, to_ref: str | None = None) -> list[Change]:
        """Turn the files changed between two refs into one change per package.

        Changes are provisional: they are returned, not recorded. Files at
        the root or elsewhere outside a package are dropped.

        Raises:
            WorkspaceKitError: ``VCS_NOT_CONFIGURED`` without a VCS backend.
        """
        if self.vcs is None:
            raise WorkspaceKitError(
                code=E.VCS_NOT_CONFIGURED,
                message='Cannot detect changes without a VCS backend',
                hint='Pass a GitCLIBackend (or another VCS implementation) to ChangeTracker.',
            )

        files = await self.vcs.files_changed_between(from_ref, to_ref)
        logger.info('changed_files_found', from_ref=from_ref, to_ref=to_ref, count=len(files))
        if not files:
            return []

        self.clear_cache()
        by_package: dict[str, list[str]] = {}
        for path in files:
            scope = self.map_file_to_scope(path)
            if scope.kind is ChangeScopeKind.PACKAGE and scope.package is not None:
                by_package.setdefault(scope.package, []).append(path)

        changes: list[Change] = []
        for package, package_files in by_package.items():
            info = self.workspace.require_package(package)
            messages = await self.vcs.commit_messages_between(from_ref, to_ref, paths=[info.relative_path])
            kind = infer_change_kind(messages)
            changes.append(
                Change(
                    package=package,
                    kind=kind,
                    description=describe_commits(messages, len(package_files)),
                    breaking=kind is ChangeKind.BREAKING,
                    author=self.author,
                ),
            )
        logger.info('changes_detected', count=len(changes), packages=list(by_package))
        return changes

    def _cycle_lines(self) -> list[str]:
        cycles = self.workspace.graph.detect_circular_dependencies()
        if not cycles:
            return ['No circular dependencies detected.']
        lines = ['Circular dependency groups detected:']
        for index, cycle in enumerate(cycles, start=1):
            lines.append(f'  - cycle group {index} ({cycle.severity.value}): {cycle}')
        return lines

    def generate_changes_report(self, include_cycles: bool = False) -> str:
        """Render unreleased changes per package as plain text."""
        lines = ['Package Changes:']
        unreleased = self.unreleased_changes()
        if not unreleased:
            lines.append('  (no unreleased changes)')
        for package, changes in unreleased.items():
            lines.append(f'  {package}:')
            for change in changes:
                marker = ' [BREAKING]' if change.breaking else ''
                envs = f' ({", ".join(sorted(change.environments))})' if change.environments else ''
                lines.append(f'    - [{change.kind.value}] {change.description}{envs}{marker}')
        if include_cycles:
            lines.append('')
            lines.extend(self._cycle_lines())
        return '\n'.join(lines) + '\n'

    def visualize_dependency_graph(self, include_cycles: bool = False) -> str:
        """Render each package with its workspace dependencies as a text tree."""
        lines = ['Package Dependency Graph:']
        for info in self.workspace.sorted_packages():
            lines.append(f'  {info.name}@{info.version}')
            deps = self.workspace.dependencies_of(info.name)
            for index, dep in enumerate(deps):
                branch = '└──' if index == len(deps) - 1 else '├──'
                lines.append(f'    {branch} {dep}')
        if include_cycles:
            lines.append('')
            lines.extend(self._cycle_lines())
        return '\n'.join(lines) + '\n'


__all__ = [
    'ChangeTracker',
    'describe_commits',
]
