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

"""Semantic versions, bump kinds, and range-spec rewriting.

Parsing and precedence are delegated to
`semantic_version <https://python-semanticversion.readthedocs.io/>`_;
this module adds the bump arithmetic workspacekit needs on top.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Version                 │ Three numbers plus optional tags, like    │
    │                         │ 1.4.2-beta.1. Sorts the way npm does.     │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ VersionBump             │ Which number to turn up: major, minor,    │
    │                         │ patch. Snapshot tags a throwaway build;   │
    │                         │ none leaves the version alone.            │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ preserve_range_operator │ "^1.2.0" + 1.3.0 → "^1.3.0". Keeps the    │
    │                         │ caret/tilde the author chose.             │
    └─────────────────────────┴────────────────────────────────────────────┘

Bump rules::

    1.2.3         major → 2.0.0    minor → 1.3.0    patch → 1.2.4
    1.2.3-rc.1    major → 2.0.0    minor → 1.3.0    patch → 1.2.3

Usage::

    from workspacekit.version import Version, VersionBump, preserve_range_operator

    v = Version.parse('1.2.3')
    assert str(v.bump(VersionBump.MINOR)) == '1.3.0'
    assert preserve_range_operator('~1.2.0', Version.parse('1.3.0')) == '~1.3.0'
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import semantic_version

from workspacekit.errors import E, WorkspaceKitError

if TYPE_CHECKING:
    from workspacekit.snapshot import SnapshotContext, SnapshotFormat

# Checked in order: two-character operators before their one-character prefixes.
RANGE_OPERATORS: tuple[str, ...] = ('^', '~', '>=', '>', '<=', '<', '=')

# Workspace shorthands that always resolve to the local version.
_WORKSPACE_SHORTHANDS = frozenset({'*', '^', '~'})


class VersionBump(str, Enum):
    """Kinds of version increment."""

    MAJOR = 'major'
    MINOR = 'minor'
    PATCH = 'patch'
    SNAPSHOT = 'snapshot'
    NONE = 'none'


class VersioningStrategy(str, Enum):
    """How versions relate across the packages of a workspace.

    ``INDEPENDENT`` versions each package on its own; ``UNIFIED`` keeps
    every package on one shared version.
    """

    INDEPENDENT = 'independent'
    UNIFIED = 'unified'


def parse_bump(text: str) -> VersionBump:
    """Parse a bump kind from a string (case-insensitive).

    Raises:
        WorkspaceKitError: ``VERSION_INVALID_BUMP`` for unknown kinds.
    """
    try:
        return VersionBump(text.strip().lower())
    except ValueError:
        raise WorkspaceKitError(
            code=E.VERSION_INVALID_BUMP,
            message=f"Invalid bump type '{text}'",
            hint=f'Use one of: {", ".join(b.value for b in VersionBump)}.',
        ) from None


@functools.total_ordering
@dataclass(frozen=True)
class Version:
    """An immutable semantic version.

    Build metadata takes no part in equality or ordering, as semver
    requires.

    Attributes:
        major: Major component.
        minor: Minor component.
        patch: Patch component.
        prerelease: Dot-separated prerelease identifiers.
        build: Dot-separated build metadata identifiers.
    """

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a strict semver string.

        Raises:
            WorkspaceKitError: ``VERSION_INVALID`` if ``text`` is not semver.
        """
        if not isinstance(text, str):
            raise WorkspaceKitError(
                code=E.VERSION_INVALID,
                message=f'Expected a version string, got {type(text).__name__}',
            )
        try:
            parsed = semantic_version.Version(text.strip())
        except ValueError as exc:
            raise WorkspaceKitError(
                code=E.VERSION_INVALID,
                message=f"Invalid version '{text}': {exc}",
                hint='Versions must look like MAJOR.MINOR.PATCH, e.g. 1.2.3 or 2.0.0-rc.1.',
            ) from exc
        return cls(
            major=parsed.major,
            minor=parsed.minor,
            patch=parsed.patch,
            prerelease=tuple(parsed.prerelease),
            build=tuple(parsed.build),
        )

    @property
    def is_prerelease(self) -> bool:
        """Whether the version carries prerelease identifiers."""
        return bool(self.prerelease)

    @property
    def base(self) -> Version:
        """The ``MAJOR.MINOR.PATCH`` core without prerelease or build."""
        return Version(self.major, self.minor, self.patch)

    def to_semantic_version(self) -> semantic_version.Version:
        """Return the equivalent :class:`semantic_version.Version`."""
        return semantic_version.Version(
            major=self.major,
            minor=self.minor,
            patch=self.patch,
            prerelease=self.prerelease,
            build=self.build,
        )

    def bump(
        self,
        kind: VersionBump,
        *,
        snapshot: SnapshotContext | None = None,
        snapshot_format: SnapshotFormat | None = None,
    ) -> Version:
        """Return the version produced by applying ``kind``.

        Args:
            kind: The bump to apply.
            snapshot: Branch, commit and timestamp for ``SNAPSHOT`` bumps.
            snapshot_format: Template for ``SNAPSHOT`` bumps. Defaults to
                ``{version}-snapshot.{sha}``.

        Raises:
            WorkspaceKitError: ``VERSION_BUMP_FAILED`` when a snapshot bump
                has no context or expands to something that is not semver.
        """
        if kind is VersionBump.MAJOR:
            return Version(self.major + 1, 0, 0)
        if kind is VersionBump.MINOR:
            return Version(self.major, self.minor + 1, 0)
        if kind is VersionBump.PATCH:
            if self.prerelease:
                return Version(self.major, self.minor, self.patch)
            return Version(self.major, self.minor, self.patch + 1)
        if kind is VersionBump.NONE:
            return self
        if kind is VersionBump.SNAPSHOT:
            return self._snapshot(snapshot, snapshot_format)
        raise WorkspaceKitError(
            code=E.VERSION_BUMP_FAILED,
            message=f'Cannot bump {self} with {kind!r}',
        )

    def _snapshot(
        self,
        context: SnapshotContext | None,
        template: SnapshotFormat | None,
    ) -> Version:
        # Imported here: snapshot imports this module at load time.
        from workspacekit.snapshot import DEFAULT_SNAPSHOT_FORMAT, SnapshotFormat

        if context is None:
            raise WorkspaceKitError(
                code=E.VERSION_BUMP_FAILED,
                message=f'Snapshot bump of {self} requires a commit and branch',
                hint='Resolve a SnapshotContext from the VCS first.',
            )
        fmt = template or SnapshotFormat(DEFAULT_SNAPSHOT_FORMAT)
        rendered = fmt.render(self.base, context)
        try:
            return Version.parse(rendered)
        except WorkspaceKitError as exc:
            raise WorkspaceKitError(
                code=E.VERSION_BUMP_FAILED,
                message=f"Snapshot format '{fmt.template}' produced '{rendered}', which is not semver",
                hint="Put variables after a '-' so they land in the prerelease part.",
            ) from exc

    def __str__(self) -> str:
        """Render as a semver string."""
        text = f'{self.major}.{self.minor}.{self.patch}'
        if self.prerelease:
            text += '-' + '.'.join(self.prerelease)
        if self.build:
            text += '+' + '.'.join(self.build)
        return text

    def __lt__(self, other: object) -> bool:
        """Compare by semver precedence."""
        if not isinstance(other, Version):
            return NotImplemented
        return self.to_semantic_version() < other.to_semantic_version()


def _split_workspace(spec: str) -> tuple[str, str]:
    """Split ``workspace:[<alias>@]<constraint>`` into its prefix and constraint."""
    tail = spec[len('workspace:') :]
    alias, sep, constraint = tail.rpartition('@')
    if sep and alias:
        return f'workspace:{alias}@', constraint
    return 'workspace:', tail


def preserve_range_operator(old_spec: str, new_version: Version) -> str:
    """Rewrite a range spec to point at ``new_version``, keeping its operator.

    ``workspace:`` specs keep their protocol and alias; the ``*``, ``^``
    and ``~`` shorthands already track the local version and come back
    unchanged.

    >>> preserve_range_operator('^1.0.0', Version.parse('1.1.0'))
    '^1.1.0'
    >>> preserve_range_operator('1.0.0', Version.parse('2.0.0'))
    '2.0.0'
    >>> preserve_range_operator('workspace:core@~1.0.0', Version.parse('1.0.1'))
    'workspace:core@~1.0.1'
    """
    trimmed = old_spec.strip()
    if trimmed.startswith('workspace:'):
        prefix, tail = _split_workspace(trimmed)
        if tail in _WORKSPACE_SHORTHANDS:
            return old_spec
        return prefix + preserve_range_operator(tail, new_version)

    for operator in RANGE_OPERATORS:
        if trimmed.startswith(operator):
            return f'{operator}{new_version}'
    return str(new_version)


def spec_base_version(spec: str) -> Version | None:
    """Return the version a simple range spec is anchored on.

    Strips a ``workspace:`` prefix (and alias) and one leading range
    operator, then parses the rest. Returns ``None`` for compound or
    non-version specs such as ``>=1 <2`` or ``latest``.
    """
    trimmed = spec.strip()
    if trimmed.startswith('workspace:'):
        _prefix, trimmed = _split_workspace(trimmed)
    for operator in RANGE_OPERATORS:
        if trimmed.startswith(operator):
            trimmed = trimmed[len(operator) :]
            break
    try:
        return Version.parse(trimmed.strip())
    except WorkspaceKitError:
        return None


def is_breaking_update(old_spec: str, new_version: Version) -> bool:
    """Return True if moving from ``old_spec`` to ``new_version`` crosses a major.

    >>> is_breaking_update('^1.0.0', Version.parse('2.0.0'))
    True
    >>> is_breaking_update('^1.0.0', Version.parse('1.1.0'))
    False
    """
    base = spec_base_version(old_spec)
    if base is None:
        return False
    return new_version.major > base.major


__all__ = [
    'RANGE_OPERATORS',
    'Version',
    'VersionBump',
    'VersioningStrategy',
    'is_breaking_update',
    'parse_bump',
    'preserve_range_operator',
    'spec_base_version',
]
