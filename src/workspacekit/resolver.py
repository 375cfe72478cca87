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

"""Turn a changeset into a full version resolution, and apply it.

Pipeline::

    Changeset ──→ pre-validate names ──→ strategy ──→ propagation ──→ cycles
                                          │              │
                      independent: bump each named      BFS over dependents,
                      package by changeset.bump         then spec rewrites
                      unified: max(current).bump for
                      every package

Strategies:

- **Independent**: each named package moves by ``changeset.bump`` from
  its own version. Dependents are reached by propagation.
- **Unified**: the workspace shares one version. The next version is the
  highest current version bumped once; named packages are recorded as
  direct updates and every other package as a unified update.

Applying a resolution renders every touched manifest in memory first,
then writes them. If any write fails, manifests already written are
restored from their backups and the in-memory packages stay untouched.

Usage::

    from workspacekit.changes import Changeset
    from workspacekit.resolver import VersionResolver, apply_resolution
    from workspacekit.version import VersionBump

    resolver = VersionResolver(workspace, config)
    resolution = resolver.resolve(Changeset(packages=['core'], bump=VersionBump.MINOR))
    result = await apply_resolution(workspace, resolution, dry_run=True)
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from workspacekit.backends._io import read_file, write_file
from workspacekit.changes import Changeset
from workspacekit.config import MonorepoConfig
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import get_logger, log_context
from workspacekit.package import PackageInfo, render_manifest
from workspacekit.propagation import DependencyPropagator
from workspacekit.resolution import PackageUpdate, UpdateReason, UpdateReasonKind, VersionResolution
from workspacekit.snapshot import SnapshotContext, SnapshotFormat
from workspacekit.version import VersioningStrategy
from workspacekit.workspace import Workspace

logger = get_logger(__name__)


def _require(packages: Mapping[str, PackageInfo], name: str) -> PackageInfo:
    info = packages.get(name)
    if info is None:
        raise WorkspaceKitError(
            code=E.PACKAGE_NOT_FOUND,
            message=f"Changeset names unknown package '{name}'",
            hint='Names come from the "name" field of each package.json.',
        )
    return info


def resolve_independent(
    changeset: Changeset,
    packages: Mapping[str, PackageInfo],
    *,
    snapshot: SnapshotContext | None = None,
    snapshot_format: SnapshotFormat | None = None,
) -> VersionResolution:
    """Bump each package named by ``changeset`` on its own version."""
    resolution = VersionResolution()
    for name in dict.fromkeys(changeset.packages):
        info = _require(packages, name)
        next_version = info.version.bump(changeset.bump, snapshot=snapshot, snapshot_format=snapshot_format)
        resolution.add(
            PackageUpdate(
                name=name,
                path=info.path,
                current_version=info.version,
                next_version=next_version,
                reason=UpdateReason.direct(),
            )
        )
    return resolution


def resolve_unified(
    changeset: Changeset,
    packages: Sequence[PackageInfo],
    *,
    snapshot: SnapshotContext | None = None,
    snapshot_format: SnapshotFormat | None = None,
) -> VersionResolution:
    """Move every package to one version: the highest current one, bumped.

    An empty changeset yields an empty resolution.
    """
    resolution = VersionResolution()
    named = list(dict.fromkeys(changeset.packages))
    if not named:
        return resolution

    by_name = {info.name: info for info in packages}
    for name in named:
        _require(by_name, name)
    highest = max(info.version for info in packages)
    unified = highest.bump(changeset.bump, snapshot=snapshot, snapshot_format=snapshot_format)

    for name in named:
        info = by_name[name]
        resolution.add(PackageUpdate(name, info.path, info.version, unified, UpdateReason.direct()))
    for info in packages:
        if info.name in resolution:
            continue
        resolution.add(PackageUpdate(info.name, info.path, info.version, unified, UpdateReason.unified()))

    logger.info('unified_version', highest=str(highest), next_version=str(unified), count=len(resolution))
    return resolution


class VersionResolver:
    """Resolve changesets against one workspace.

    Args:
        workspace: A discovered workspace.
        config: Session configuration; defaults apply when omitted.
    """

    def __init__(self, workspace: Workspace, config: MonorepoConfig | None = None) -> None:
        """Bind the resolver to a workspace and its configuration."""
        self.workspace = workspace
        self.config = config or MonorepoConfig(root=workspace.root)

    @property
    def strategy(self) -> VersioningStrategy:
        """The configured versioning strategy."""
        return self.config.strategy

    def resolve(self, changeset: Changeset, *, snapshot: SnapshotContext | None = None) -> VersionResolution:
        """Compute every update ``changeset`` implies.

        Args:
            changeset: Packages to bump and the bump to apply.
            snapshot: Checkout facts, required for ``SNAPSHOT`` bumps.

        Raises:
            WorkspaceKitError: ``PACKAGE_NOT_FOUND`` for an unknown package
                (before anything is computed), or a bump error.
        """
        packages = self.workspace.package_map()
        for name in changeset.packages:
            _require(packages, name)

        if not changeset.packages:
            logger.info('empty_changeset', id=changeset.id)
            return VersionResolution()

        fmt = SnapshotFormat(self.config.snapshot_format)
        with log_context(changeset=changeset.id, strategy=self.strategy.value):
            if self.strategy is VersioningStrategy.UNIFIED:
                resolution = resolve_unified(
                    changeset, self.workspace.packages, snapshot=snapshot, snapshot_format=fmt
                )
            else:
                resolution = resolve_independent(changeset, packages, snapshot=snapshot, snapshot_format=fmt)

            graph = self.workspace.graph
            DependencyPropagator(graph, packages, self.config.dependency).propagate(resolution)
            resolution.circular_dependencies = graph.detect_circular_dependencies()

            logger.info(
                'resolution_complete',
                bump=changeset.bump.value,
                updates=len(resolution),
                direct=len(resolution.direct_updates()),
                propagated=len(resolution.propagated_updates()),
                cycles=len(resolution.circular_dependencies),
            )
        return resolution


def resolve_versions(
    workspace: Workspace,
    changeset: Changeset,
    config: MonorepoConfig | None = None,
    *,
    snapshot: SnapshotContext | None = None,
) -> VersionResolution:
    """One-shot :meth:`VersionResolver.resolve`."""
    return VersionResolver(workspace, config).resolve(changeset, snapshot=snapshot)


@dataclass(frozen=True)
class ApplySummary:
    """Counts describing an applied (or previewed) resolution."""

    direct_updates: int = 0
    propagated_updates: int = 0
    unified_updates: int = 0
    dependency_updates: int = 0
    circular_dependencies: int = 0

    @classmethod
    def of(cls, resolution: VersionResolution) -> ApplySummary:
        """Summarize ``resolution``."""
        return cls(
            direct_updates=len(resolution.direct_updates()),
            propagated_updates=len(resolution.propagated_updates()),
            unified_updates=sum(1 for u in resolution.updates if u.reason.kind is UpdateReasonKind.UNIFIED),
            dependency_updates=resolution.dependency_update_count(),
            circular_dependencies=len(resolution.circular_dependencies),
        )


@dataclass
class ApplyResult:
    """Outcome of :func:`apply_resolution`.

    Attributes:
        resolution: The resolution that was applied.
        modified_files: Manifests written (or that would be written).
        dry_run: Whether nothing was actually written.
        summary: Update counts.
    """

    resolution: VersionResolution
    modified_files: list[Path] = field(default_factory=list)
    dry_run: bool = False
    summary: ApplySummary = field(default_factory=ApplySummary)


async def apply_resolution(
    workspace: Workspace,
    resolution: VersionResolution,
    *,
    dry_run: bool = False,
    fail_on_circular: bool = False,
) -> ApplyResult:
    """Write a resolution to the package manifests.

    Every touched manifest is written once. The packages held by
    ``workspace`` are updated only after all writes succeeded.

    Raises:
        WorkspaceKitError: ``GRAPH_CYCLE_DETECTED`` when ``fail_on_circular``
            is set and the resolution saw a cycle (nothing is written),
            ``PACKAGE_NOT_FOUND`` for an update naming an unknown package,
            or an I/O error after the written manifests were restored.
    """
    if fail_on_circular and resolution.circular_dependencies:
        cycles = ', '.join(str(c) for c in resolution.circular_dependencies)
        raise WorkspaceKitError(
            code=E.GRAPH_CYCLE_DETECTED,
            message=f'Refusing to apply a resolution with circular dependencies: {cycles}',
            hint='Break the cycle, or apply without fail_on_circular.',
        )

    staged: list[tuple[PackageUpdate, PackageInfo, str]] = []
    for update in resolution.updates:
        info = workspace.require_package(update.name)
        clone = copy.deepcopy(info)
        clone.apply_update(update)
        staged.append((update, info, render_manifest(clone)))

    summary = ApplySummary.of(resolution)
    paths = [info.manifest_path for _update, info, _text in staged]
    if dry_run:
        logger.info('apply_dry_run', files=len(paths), **_summary_fields(summary))
        return ApplyResult(resolution=resolution, modified_files=paths, dry_run=True, summary=summary)

    backups: list[tuple[Path, str]] = []
    try:
        for _update, info, text in staged:
            original = await read_file(info.manifest_path)
            backups.append((info.manifest_path, original))
            await write_file(info.manifest_path, text)
            logger.debug('manifest_written', path=str(info.manifest_path))
    except BaseException:
        logger.warning('apply_failed_restoring', touched=len(backups))
        for path, original in reversed(backups):
            await write_file(path, original)
        raise

    for update, info, _text in staged:
        info.apply_update(update)
    workspace.invalidate()

    logger.info('resolution_applied', files=len(paths), **_summary_fields(summary))
    return ApplyResult(resolution=resolution, modified_files=paths, dry_run=False, summary=summary)


def _summary_fields(summary: ApplySummary) -> dict[str, int]:
    return {
        'direct': summary.direct_updates,
        'propagated': summary.propagated_updates,
        'unified': summary.unified_updates,
        'dependency_updates': summary.dependency_updates,
        'cycles': summary.circular_dependencies,
    }


__all__ = [
    'ApplyResult',
    'ApplySummary',
    'VersionResolver',
    'apply_resolution',
    'resolve_independent',
    'resolve_unified',
    'resolve_versions',
]
