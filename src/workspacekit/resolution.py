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

"""Result types of version resolution.

A :class:`VersionResolution` is the complete answer to "what changes if
these packages are bumped": one :class:`PackageUpdate` per package whose
version moves, each carrying the :class:`DependencyUpdate` rewrites its
manifest needs, plus any cycles seen on the way.

Update order::

    direct updates (changeset order)  →  propagated updates (BFS order)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from workspacekit.errors import E, WorkspaceKitError
from workspacekit.graph import Cycle
from workspacekit.package import DependencyType
from workspacekit.version import Version


class UpdateReasonKind(str, Enum):
    """Why a package is in a resolution."""

    DIRECT = 'direct'
    PROPAGATION = 'propagation'
    UNIFIED = 'unified'


@dataclass(frozen=True)
class UpdateReason:
    """Why a package is being updated.

    Attributes:
        kind: Direct change, propagation, or unified strategy.
        triggered_by: For propagation, the dependency whose update
            reached this package first.
        depth: For propagation, BFS distance from the direct changes.
    """

    kind: UpdateReasonKind
    triggered_by: str | None = None
    depth: int = 0

    @classmethod
    def direct(cls) -> UpdateReason:
        """The package was named in the changeset."""
        return cls(UpdateReasonKind.DIRECT)

    @classmethod
    def propagation(cls, triggered_by: str, depth: int) -> UpdateReason:
        """The package depends on ``triggered_by``, which changed."""
        return cls(UpdateReasonKind.PROPAGATION, triggered_by=triggered_by, depth=depth)

    @classmethod
    def unified(cls) -> UpdateReason:
        """The unified strategy moved every package to one version."""
        return cls(UpdateReasonKind.UNIFIED)

    def __str__(self) -> str:
        """Render for reports."""
        if self.kind is UpdateReasonKind.PROPAGATION:
            return f'propagation from {self.triggered_by} (depth {self.depth})'
        return self.kind.value


@dataclass(frozen=True)
class DependencyUpdate:
    """One ``name → spec`` rewrite in a manifest section."""

    name: str
    dep_type: DependencyType
    old_spec: str
    new_spec: str


@dataclass
class PackageUpdate:
    """A version change for one package."""

    name: str
    path: Path
    current_version: Version
    next_version: Version
    reason: UpdateReason
    dependency_updates: list[DependencyUpdate] = field(default_factory=list)

    @property
    def is_version_change(self) -> bool:
        """Whether the version actually moves."""
        return self.current_version != self.next_version


CircularDependency = Cycle


@dataclass
class VersionResolution:
    """Every package update produced for one changeset."""

    updates: list[PackageUpdate] = field(default_factory=list)
    circular_dependencies: list[CircularDependency] = field(default_factory=list)

    def __len__(self) -> int:
        """Return the number of package updates."""
        return len(self.updates)

    def __contains__(self, name: object) -> bool:
        """Return True if ``name`` has an update."""
        return any(u.name == name for u in self.updates)

    @property
    def is_empty(self) -> bool:
        """Whether nothing changes."""
        return not self.updates

    @property
    def names(self) -> list[str]:
        """Updated package names in resolution order."""
        return [u.name for u in self.updates]

    def get(self, name: str) -> PackageUpdate | None:
        """Return the update for ``name``."""
        for update in self.updates:
            if update.name == name:
                return update
        return None

    def add(self, update: PackageUpdate) -> None:
        """Append an update.

        Raises:
            WorkspaceKitError: ``RESOLUTION_DUPLICATE_UPDATE`` if the
                package already has one.
        """
        if update.name in self:
            raise WorkspaceKitError(
                code=E.RESOLUTION_DUPLICATE_UPDATE,
                message=f"Package '{update.name}' already has an update in this resolution",
            )
        self.updates.append(update)

    def direct_updates(self) -> list[PackageUpdate]:
        """Updates caused by the changeset itself."""
        return [u for u in self.updates if u.reason.kind is UpdateReasonKind.DIRECT]

    def propagated_updates(self) -> list[PackageUpdate]:
        """Updates caused by dependency propagation."""
        return [u for u in self.updates if u.reason.kind is UpdateReasonKind.PROPAGATION]

    def dependency_update_count(self) -> int:
        """Total number of manifest spec rewrites."""
        return sum(len(u.dependency_updates) for u in self.updates)


__all__ = [
    'CircularDependency',
    'DependencyUpdate',
    'PackageUpdate',
    'UpdateReason',
    'UpdateReasonKind',
    'VersionResolution',
]
