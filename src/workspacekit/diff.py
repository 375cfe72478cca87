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

"""Compare two states of a package manifest.

Used to preview what a resolution does to each package, and to flag
breaking dependency moves.

Breaking rules::

    package version   1.4.0 → 2.0.0         breaking (major moved)
    dependency spec   ^1.0.0 → ^2.0.0        breaking (major crossed)
    dependency spec   ^1.0.0 → ^1.1.0        not breaking
    dependency        removed                breaking
    dependency        added                  not breaking

Usage::

    from workspacekit.diff import diff_packages

    diff = diff_packages(before, after)
    if diff.breaking or diff.breaking_dependency_changes():
        print(diff)
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from workspacekit.errors import E, WorkspaceKitError
from workspacekit.package import DependencyType, PackageInfo
from workspacekit.resolution import VersionResolution
from workspacekit.version import Version, is_breaking_update, spec_base_version


class DependencyChangeKind(str, Enum):
    """How a dependency entry changed."""

    ADDED = 'added'
    REMOVED = 'removed'
    UPDATED = 'updated'


_SYMBOLS = {
    DependencyChangeKind.ADDED: '+',
    DependencyChangeKind.REMOVED: '-',
    DependencyChangeKind.UPDATED: '↑',
}


@dataclass(frozen=True)
class DependencyChange:
    """One dependency entry that differs between two manifests.

    Attributes:
        name: Dependency name.
        dep_type: Manifest section.
        kind: Added, removed or updated.
        old_spec: Spec before, ``None`` when added.
        new_spec: Spec after, ``None`` when removed.
        breaking: Whether consumers may break.
    """

    name: str
    dep_type: DependencyType
    kind: DependencyChangeKind
    old_spec: str | None = None
    new_spec: str | None = None
    breaking: bool = False

    def __str__(self) -> str:
        """Render as one diff line."""
        symbol = _SYMBOLS[self.kind]
        if self.kind is DependencyChangeKind.ADDED:
            return f'{symbol} {self.name} added ({self.new_spec})'
        if self.kind is DependencyChangeKind.REMOVED:
            return f'{symbol} {self.name} removed (was {self.old_spec})'
        flag = ' [BREAKING]' if self.breaking else ''
        return f'{symbol} {self.name} updated: {self.old_spec} → {self.new_spec}{flag}'


def is_breaking_spec_change(old_spec: str, new_spec: str) -> bool:
    """Whether moving a dependency from ``old_spec`` to ``new_spec`` crosses a major.

    >>> is_breaking_spec_change('^1.0.0', '^2.0.0')
    True
    >>> is_breaking_spec_change('^1.0.0', '1.1.0')
    False
    """
    new_base = spec_base_version(new_spec)
    if new_base is None:
        return False
    return is_breaking_update(old_spec, new_base)


@dataclass
class PackageDiff:
    """Differences between two states of one package."""

    name: str
    old_version: Version
    new_version: Version
    dependency_changes: list[DependencyChange] = field(default_factory=list)

    @property
    def breaking(self) -> bool:
        """Whether the package's own major version moved up."""
        return self.new_version.major > self.old_version.major

    @property
    def is_empty(self) -> bool:
        """Whether nothing changed."""
        return self.old_version == self.new_version and not self.dependency_changes

    def breaking_dependency_changes(self) -> list[DependencyChange]:
        """Dependency changes flagged as breaking."""
        return [c for c in self.dependency_changes if c.breaking]

    def __str__(self) -> str:
        """Render a short human-readable report."""
        lines = [f'Package: {self.name} ({self.old_version} → {self.new_version})']
        if self.breaking:
            lines.append('Breaking change: major version bump')
        if not self.dependency_changes:
            lines.append('No dependency changes')
        else:
            lines.append('Dependency changes:')
            lines.extend(f'  {change}' for change in self.dependency_changes)
        return '\n'.join(lines)


def diff_packages(old: PackageInfo, new: PackageInfo) -> PackageDiff:
    """Compare two states of the same package.

    Entries are compared per section, in section order and then by name.

    Raises:
        WorkspaceKitError: ``PACKAGE_INVALID`` if the names differ.
    """
    if old.name != new.name:
        raise WorkspaceKitError(
            code=E.PACKAGE_INVALID,
            message=f"Cannot diff different packages: '{old.name}' vs '{new.name}'",
        )

    changes: list[DependencyChange] = []
    for dep_type in DependencyType:
        before = old.raw_specs.get(dep_type, {})
        after = new.raw_specs.get(dep_type, {})
        for name in sorted(set(before) | set(after)):
            old_spec = before.get(name)
            new_spec = after.get(name)
            if old_spec == new_spec:
                continue
            if old_spec is None:
                changes.append(DependencyChange(name, dep_type, DependencyChangeKind.ADDED, new_spec=new_spec))
            elif new_spec is None:
                changes.append(
                    DependencyChange(name, dep_type, DependencyChangeKind.REMOVED, old_spec=old_spec, breaking=True)
                )
            else:
                changes.append(
                    DependencyChange(
                        name,
                        dep_type,
                        DependencyChangeKind.UPDATED,
                        old_spec=old_spec,
                        new_spec=new_spec,
                        breaking=is_breaking_spec_change(old_spec, new_spec),
                    )
                )
    return PackageDiff(name=old.name, old_version=old.version, new_version=new.version, dependency_changes=changes)


def diff_resolution(packages: Mapping[str, PackageInfo], resolution: VersionResolution) -> list[PackageDiff]:
    """Preview every package a resolution touches, without modifying ``packages``."""
    diffs: list[PackageDiff] = []
    for update in resolution.updates:
        info = packages.get(update.name)
        if info is None:
            raise WorkspaceKitError(
                code=E.PACKAGE_NOT_FOUND,
                message=f"Resolution updates unknown package '{update.name}'",
            )
        after = copy.deepcopy(info)
        after.apply_update(update)
        diffs.append(diff_packages(info, after))
    return diffs


__all__ = [
    'DependencyChange',
    'DependencyChangeKind',
    'PackageDiff',
    'diff_packages',
    'diff_resolution',
    'is_breaking_spec_change',
]
