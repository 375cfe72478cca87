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

"""Value types for recorded changes.

This module has no I/O and no logging: a :class:`Change` is a note that
something happened to one package, a :class:`Changeset` groups notes with
the bump they call for, and a :class:`ChangeScope` says where in the
repository a path lies.

Release lifecycle of a change::

    recorded ──→ released in "staging" ──→ released in "production"
       │              (release_version set,       │
       │               environment stamped)       │
       └── unreleased everywhere                  └── released everywhere it targets

A change is *unreleased in environment E* when E is not in
``released_in_environments`` and the change either targets no specific
environment or lists E.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from workspacekit.errors import E, WorkspaceKitError
from workspacekit.version import Version, VersionBump, parse_bump


class ChangeKind(str, Enum):
    """What sort of change was made."""

    FEATURE = 'feature'
    FIX = 'fix'
    BREAKING = 'breaking'
    PERF = 'perf'
    REFACTOR = 'refactor'
    DOCS = 'docs'
    TEST = 'test'
    CHORE = 'chore'
    REVERT = 'revert'
    BUILD = 'build'
    CI = 'ci'
    STYLE = 'style'

    @property
    def suggested_bump(self) -> VersionBump:
        """The bump this kind of change usually calls for."""
        if self is ChangeKind.BREAKING:
            return VersionBump.MAJOR
        if self is ChangeKind.FEATURE:
            return VersionBump.MINOR
        if self in (ChangeKind.FIX, ChangeKind.PERF, ChangeKind.REVERT):
            return VersionBump.PATCH
        return VersionBump.NONE


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Change:
    """A recorded change to one package.

    Attributes:
        package: Name of the changed package.
        kind: Category of the change.
        description: One-line summary.
        breaking: Whether consumers must adapt.
        environments: Environments the change targets; empty means all.
        release_version: Version the change was (last) released in.
        released_in_environments: Environments it has been released to.
        timestamp: When the change was recorded (UTC).
        author: Who made the change.
        id: Unique id (uuid4 hex).
    """

    package: str
    kind: ChangeKind = ChangeKind.CHORE
    description: str = ''
    breaking: bool = False
    environments: set[str] = field(default_factory=set)
    release_version: Version | None = None
    released_in_environments: set[str] = field(default_factory=set)
    timestamp: datetime = field(default_factory=_now)
    author: str | None = None
    id: str = field(default_factory=_new_id)

    def __post_init__(self) -> None:
        """A breaking kind always sets the breaking flag."""
        if self.kind is ChangeKind.BREAKING:
            self.breaking = True

    def is_unreleased_in(self, environment: str) -> bool:
        """Whether the change still has to ship to ``environment``."""
        if environment in self.released_in_environments:
            return False
        if self.release_version is not None and not self.released_in_environments:
            # Released without naming an environment: released everywhere.
            return False
        return not self.environments or environment in self.environments

    @property
    def is_released(self) -> bool:
        """Whether the change has shipped everywhere it targets."""
        if self.release_version is None:
            return False
        if not self.released_in_environments:
            return True
        return bool(self.environments) and self.environments <= self.released_in_environments

    def mark_released(self, version: Version, environment: str | None = None) -> None:
        """Stamp a release, optionally for a single environment."""
        self.release_version = version
        if environment is not None:
            self.released_in_environments.add(environment)
        else:
            self.released_in_environments |= self.environments

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON values
        """Serialize to JSON-compatible values."""
        return {
            'id': self.id,
            'package': self.package,
            'kind': self.kind.value,
            'description': self.description,
            'breaking': self.breaking,
            'environments': sorted(self.environments),
            'release_version': str(self.release_version) if self.release_version is not None else None,
            'released_in_environments': sorted(self.released_in_environments),
            'timestamp': self.timestamp.isoformat(),
            'author': self.author,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Change:  # noqa: ANN401 - JSON values
        """Rebuild a change from :meth:`to_dict` output.

        Raises:
            WorkspaceKitError: ``STORE_ERROR`` if required fields are
                missing or malformed.
        """
        try:
            release = data.get('release_version')
            return cls(
                id=str(data['id']),
                package=str(data['package']),
                kind=ChangeKind(data.get('kind', ChangeKind.CHORE.value)),
                description=str(data.get('description', '')),
                breaking=bool(data.get('breaking', False)),
                environments=set(data.get('environments') or ()),
                release_version=Version.parse(release) if release else None,
                released_in_environments=set(data.get('released_in_environments') or ()),
                timestamp=_parse_timestamp(data['timestamp']) if data.get('timestamp') else _now(),
                author=data.get('author'),
            )
        except (KeyError, TypeError, ValueError, WorkspaceKitError) as exc:
            raise WorkspaceKitError(
                code=E.STORE_ERROR,
                message=f'Malformed change record: {exc}',
            ) from exc


@dataclass
class Changeset:
    """A group of changes released together with one bump.

    Attributes:
        summary: Human-readable summary.
        packages: Packages the changeset bumps.
        bump: The bump to apply to ``packages``.
        environments: Environments the changeset targets; empty means all.
        changes: The recorded changes it contains.
        created_at: Creation time (UTC).
        branch: Branch the changeset was created on.
        id: Unique id (uuid4 hex).
    """

    summary: str = ''
    packages: list[str] = field(default_factory=list)
    bump: VersionBump = VersionBump.PATCH
    environments: list[str] = field(default_factory=list)
    changes: list[Change] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)
    branch: str = ''
    id: str = field(default_factory=_new_id)

    @classmethod
    def from_changes(
        cls,
        changes: list[Change],
        summary: str = '',
        *,
        bump: VersionBump | None = None,
        environments: list[str] | None = None,
        branch: str = '',
    ) -> Changeset:
        """Build a changeset whose packages and bump come from ``changes``.

        Without an explicit ``bump`` the strongest suggested bump of the
        changes is used, falling back to patch.
        """
        packages: dict[str, None] = {}
        for change in changes:
            packages.setdefault(change.package, None)
        if bump is None:
            bump = strongest_bump([c.kind.suggested_bump for c in changes]) or VersionBump.PATCH
        return cls(
            summary=summary,
            packages=list(packages),
            bump=bump,
            environments=list(environments or []),
            changes=list(changes),
            branch=branch,
        )

    def applies_to(self, environment: str) -> bool:
        """Whether the changeset targets ``environment``."""
        return not self.environments or environment in self.environments

    def to_dict(self) -> dict[str, Any]:  # noqa: ANN401 - JSON values
        """Serialize to JSON-compatible values."""
        return {
            'id': self.id,
            'summary': self.summary,
            'packages': list(self.packages),
            'bump': self.bump.value,
            'environments': list(self.environments),
            'changes': [c.to_dict() for c in self.changes],
            'created_at': self.created_at.isoformat(),
            'branch': self.branch,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Changeset:  # noqa: ANN401 - JSON values
        """Rebuild a changeset from :meth:`to_dict` output."""
        try:
            return cls(
                id=str(data['id']),
                summary=str(data.get('summary', '')),
                packages=[str(p) for p in data.get('packages', [])],
                bump=parse_bump(str(data.get('bump', VersionBump.PATCH.value))),
                environments=[str(e) for e in data.get('environments', [])],
                changes=[Change.from_dict(c) for c in data.get('changes', [])],
                created_at=_parse_timestamp(data['created_at']) if data.get('created_at') else _now(),
                branch=str(data.get('branch', '')),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise WorkspaceKitError(
                code=E.STORE_ERROR,
                message=f'Malformed changeset record: {exc}',
            ) from exc


_BUMP_ORDER: tuple[VersionBump, ...] = (
    VersionBump.MAJOR,
    VersionBump.MINOR,
    VersionBump.PATCH,
    VersionBump.SNAPSHOT,
    VersionBump.NONE,
)


def strongest_bump(bumps: list[VersionBump]) -> VersionBump | None:
    """Return the highest-precedence bump, ignoring ``NONE``.

    >>> strongest_bump([VersionBump.PATCH, VersionBump.MINOR])
    <VersionBump.MINOR: 'minor'>
    """
    real = [b for b in bumps if b is not VersionBump.NONE]
    if not real:
        return None
    return min(real, key=_BUMP_ORDER.index)


class ChangeScopeKind(str, Enum):
    """Where a changed path lies."""

    PACKAGE = 'package'
    ROOT = 'root'
    MONOREPO = 'monorepo'


@dataclass(frozen=True)
class ChangeScope:
    """Classification of a path relative to the workspace."""

    kind: ChangeScopeKind
    package: str | None = None

    @classmethod
    def for_package(cls, name: str) -> ChangeScope:
        """Inside the directory of package ``name``."""
        return cls(ChangeScopeKind.PACKAGE, name)

    @classmethod
    def root(cls) -> ChangeScope:
        """Directly in the workspace root."""
        return cls(ChangeScopeKind.ROOT)

    @classmethod
    def monorepo(cls) -> ChangeScope:
        """Somewhere else in the repository."""
        return cls(ChangeScopeKind.MONOREPO)


__all__ = [
    'Change',
    'ChangeKind',
    'ChangeScope',
    'ChangeScopeKind',
    'Changeset',
    'strongest_bump',
]
