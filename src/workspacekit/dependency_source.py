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

"""Typed model of package.json dependency values.

Every value in a ``dependencies``-style section of a package.json is a
string whose prefix selects a *protocol*. :func:`parse_dependency_source`
turns the string into one of the frozen dataclasses below; ``str()`` on
the result gives the string back.

Protocol classification::

    Spec string                        Variant                Network?  Local?
    ─────────────────────────────────  ─────────────────────  ────────  ──────
    ^1.2.0                             RegistrySource         yes       no
    @scope/name@^1.0.0                 ScopedSource           yes       no
    npm:other-name@^2.0.0              NpmSource              yes       no
    jsr:@std/path@^1.0.0               JsrSource              yes       no
    workspace:*  workspace:^1.0.0      WorkspaceSource        no        yes
    workspace:../core                  WorkspacePathSource    no        yes
    workspace:core-alias@*             WorkspaceAliasSource   no        yes
    file:../core                       FileSource             no        yes
    link:../core                       LinkSource             no        yes
    portal:../core                     PortalSource           no        yes
    git+https://host/repo.git#v1.0.0   GitSource              yes       no
    github:user/repo#main  user/repo   GitHubSource           yes       no
    https://host/pkg-1.0.0.tgz         UrlSource              yes       no

Workspace-family sources are only meaningful inside a monorepo; parsing
one in a :attr:`ProjectContext.SINGLE` context is an error.

Usage::

    from workspacekit.dependency_source import ProjectContext, parse_dependency_source

    source = parse_dependency_source('core', 'workspace:^', ProjectContext.MONOREPO)
    assert source.protocol() is DependencyProtocol.WORKSPACE
    assert str(source) == 'workspace:^'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Union
from urllib.parse import urlsplit

import semantic_version

from workspacekit.errors import E, WorkspaceKitError
from workspacekit.version import Version

if TYPE_CHECKING:
    from collections.abc import Iterator


class ProjectContext(str, Enum):
    """Whether specs are being read inside a monorepo or a single package."""

    SINGLE = 'single'
    MONOREPO = 'monorepo'


class DependencyProtocol(str, Enum):
    """The protocol a dependency spec resolves through."""

    REGISTRY = 'registry'
    SCOPED = 'scoped'
    NPM = 'npm'
    JSR = 'jsr'
    WORKSPACE = 'workspace'
    FILE = 'file'
    LINK = 'link'
    PORTAL = 'portal'
    GIT = 'git'
    GITHUB = 'github'
    URL = 'url'


_NETWORK_PROTOCOLS = frozenset({
    DependencyProtocol.REGISTRY,
    DependencyProtocol.SCOPED,
    DependencyProtocol.NPM,
    DependencyProtocol.JSR,
    DependencyProtocol.GIT,
    DependencyProtocol.GITHUB,
    DependencyProtocol.URL,
})

_FILESYSTEM_PROTOCOLS = frozenset({
    DependencyProtocol.WORKSPACE,
    DependencyProtocol.FILE,
    DependencyProtocol.LINK,
    DependencyProtocol.PORTAL,
})

# Local protocols whose target is a path rather than a version.
LOCAL_PROTOCOL_PREFIXES: tuple[str, ...] = ('file:', 'link:', 'portal:')

_COMMIT_RE = re.compile(r'^[0-9a-fA-F]{40}$')
_GIT_PLUS_RE = re.compile(r'^git\+(?P<repo>.+?)(?:#(?P<ref>.+))?$')
_GIT_URL_RE = re.compile(r'^(?P<repo>(?:ssh://|git@|git://).+?)(?:#(?P<ref>.+))?$')
_GITHUB_RE = re.compile(r'^(?P<prefix>github:)?(?P<user>[A-Za-z0-9][\w.-]*)/(?P<repo>[\w.-]+)(?:#(?P<ref>.+))?$')
_GITHUB_HTTPS_RE = re.compile(
    r'^https://(?:(?P<token>[^@/]+)@)?github\.com/(?P<user>[\w.-]+)/(?P<repo>[\w.-]+?)(?P<git>\.git)?(?:#(?P<ref>.+))?$'
)
_DIST_TAG_RE = re.compile(r'^[A-Za-z][\w.-]*$')
_RANGE_START = ('^', '~', '>', '<', '=')
_TARBALL_SUFFIXES = ('.tgz', '.tar.gz')


def _invalid(spec: str, reason: str) -> WorkspaceKitError:
    return WorkspaceKitError(
        code=E.DEPENDENCY_INVALID_SOURCE,
        message=f"Invalid dependency spec '{spec}': {reason}",
        hint='See https://docs.npmjs.com/cli/configuring-npm/package-json#dependencies for valid forms.',
    )


def _clause_targets(clause: object) -> Iterator[semantic_version.Version]:
    target = getattr(clause, 'target', None)
    if target is not None:
        yield target
    for child in getattr(clause, 'clauses', ()):
        yield from _clause_targets(child)


@dataclass(frozen=True)
class VersionReq:
    """An npm version requirement such as ``^1.2.0`` or ``>=1 <2``.

    Dist-tags (``latest``, ``next``) are accepted and never match a
    concrete version. Whitespace runs are normalized to one space.

    Attributes:
        raw: The normalized requirement text.
        is_dist_tag: Whether ``raw`` is a dist-tag rather than a range.
    """

    raw: str
    is_dist_tag: bool = False

    @classmethod
    def parse(cls, text: str) -> VersionReq:
        """Parse and validate a requirement.

        Raises:
            WorkspaceKitError: ``DEPENDENCY_INVALID_SOURCE`` if the text is
                neither an npm range nor a dist-tag.
        """
        normalized = ' '.join(text.split())
        try:
            semantic_version.NpmSpec(normalized or '*')
        except ValueError as exc:
            if _DIST_TAG_RE.match(normalized):
                return cls(normalized, is_dist_tag=True)
            raise _invalid(text, f'not a valid version range ({exc})') from exc
        return cls(normalized)

    def to_npm_spec(self) -> semantic_version.NpmSpec | None:
        """Return the range as an :class:`semantic_version.NpmSpec`, or None for tags."""
        if self.is_dist_tag:
            return None
        return semantic_version.NpmSpec(self.raw or '*')

    def matches(self, version: Version) -> bool:
        """Return True if ``version`` satisfies the requirement."""
        spec = self.to_npm_spec()
        if spec is None:
            return False
        return spec.match(version.to_semantic_version())

    def boundary_versions(self) -> list[semantic_version.Version]:
        """Comparator targets of the range once ``^``, ``~`` and x-ranges are desugared.

        ``^1.2.0`` yields ``1.2.0`` and ``2.0.0-0``; ``*`` and dist-tags
        yield nothing.
        """
        spec = self.to_npm_spec()
        return [] if spec is None else list(_clause_targets(spec.clause))

    def __str__(self) -> str:
        """Render the requirement."""
        return self.raw


class GitReferenceKind(str, Enum):
    """Kinds of git ref a dependency can pin to."""

    BRANCH = 'branch'
    TAG = 'tag'
    COMMIT = 'commit'
    SEMVER = 'semver'


@dataclass(frozen=True)
class GitReference:
    """A ``#ref`` suffix on a git dependency."""

    kind: GitReferenceKind
    value: str
    prefixed: bool = field(default=True, compare=False)

    @classmethod
    def parse(cls, text: str) -> GitReference:
        """Classify a ref.

        ``semver:<req>`` and bare ranges such as ``^1.2.0`` are semver refs,
        a 40-hex string is a commit, ``v<version>`` is a tag, anything else
        is a branch.
        """
        if text.startswith('semver:'):
            req = VersionReq.parse(text[len('semver:') :])
            return cls(GitReferenceKind.SEMVER, str(req))
        if text.startswith(_RANGE_START):
            try:
                semantic_version.NpmSpec(text)
            except ValueError:
                pass
            else:
                return cls(GitReferenceKind.SEMVER, text, prefixed=False)
        if _COMMIT_RE.match(text):
            return cls(GitReferenceKind.COMMIT, text)
        if text.startswith('v'):
            try:
                Version.parse(text[1:])
            except WorkspaceKitError:
                pass
            else:
                return cls(GitReferenceKind.TAG, text)
        return cls(GitReferenceKind.BRANCH, text)

    def __str__(self) -> str:
        """Render as it appears after ``#``."""
        if self.kind is GitReferenceKind.SEMVER and self.prefixed:
            return f'semver:{self.value}'
        return self.value


DEFAULT_GIT_REFERENCE = GitReference(GitReferenceKind.BRANCH, 'main')


class WorkspaceConstraintKind(str, Enum):
    """The part after ``workspace:``."""

    ANY = '*'
    COMPATIBLE = '^'
    PATCH = '~'
    RANGE = 'range'


@dataclass(frozen=True)
class WorkspaceConstraint:
    """``*``, ``^``, ``~`` or an explicit range after ``workspace:``."""

    kind: WorkspaceConstraintKind
    req: VersionReq | None = None

    @classmethod
    def parse(cls, text: str) -> WorkspaceConstraint:
        """Parse a workspace constraint."""
        if text in ('*', '^', '~'):
            return cls(WorkspaceConstraintKind(text))
        return cls(WorkspaceConstraintKind.RANGE, VersionReq.parse(text))

    def __str__(self) -> str:
        """Render the constraint."""
        if self.kind is WorkspaceConstraintKind.RANGE:
            return str(self.req)
        return self.kind.value


class _SourceMixin:
    """Queries shared by every source variant."""

    PROTOCOL: DependencyProtocol

    def protocol(self) -> DependencyProtocol:
        """Return the protocol this source resolves through."""
        return self.PROTOCOL

    def requires_network(self) -> bool:
        """Return True if resolving the source needs network access."""
        return self.PROTOCOL in _NETWORK_PROTOCOLS

    def is_filesystem_based(self) -> bool:
        """Return True if the source points at a local directory."""
        return self.PROTOCOL in _FILESYSTEM_PROTOCOLS

    def is_workspace(self) -> bool:
        """Return True for ``workspace:`` sources."""
        return self.PROTOCOL is DependencyProtocol.WORKSPACE

    def is_supported_in_context(self, context: ProjectContext) -> bool:
        """Return True if the source is legal in ``context``."""
        if self.PROTOCOL is DependencyProtocol.WORKSPACE:
            return context is ProjectContext.MONOREPO
        return True


@dataclass(frozen=True)
class RegistrySource(_SourceMixin):
    """A plain npm registry range."""

    PROTOCOL = DependencyProtocol.REGISTRY

    name: str
    req: VersionReq

    def __str__(self) -> str:
        """Render the spec."""
        return str(self.req)


@dataclass(frozen=True)
class ScopedSource(_SourceMixin):
    """A registry package under an ``@scope``.

    ``qualified`` records whether the spec itself spelled out
    ``@scope/name@`` or only the range (with the name in the key).
    """

    PROTOCOL = DependencyProtocol.SCOPED

    scope: str
    name: str
    req: VersionReq
    qualified: bool = False

    @property
    def full_name(self) -> str:
        """``@scope/name``."""
        return f'@{self.scope}/{self.name}'

    def __str__(self) -> str:
        """Render the spec."""
        if self.qualified:
            return f'{self.full_name}@{self.req}'
        return str(self.req)


@dataclass(frozen=True)
class NpmSource(_SourceMixin):
    """An ``npm:`` alias to another registry package."""

    PROTOCOL = DependencyProtocol.NPM

    name: str
    req: VersionReq

    def __str__(self) -> str:
        """Render the spec."""
        return f'npm:{self.name}@{self.req}'


@dataclass(frozen=True)
class JsrSource(_SourceMixin):
    """A ``jsr:`` package (always scoped)."""

    PROTOCOL = DependencyProtocol.JSR

    scope: str
    name: str
    req: VersionReq

    def __str__(self) -> str:
        """Render the spec."""
        return f'jsr:@{self.scope}/{self.name}@{self.req}'


@dataclass(frozen=True)
class WorkspaceSource(_SourceMixin):
    """``workspace:<constraint>``."""

    PROTOCOL = DependencyProtocol.WORKSPACE

    name: str
    constraint: WorkspaceConstraint

    def __str__(self) -> str:
        """Render the spec."""
        return f'workspace:{self.constraint}'


@dataclass(frozen=True)
class WorkspacePathSource(_SourceMixin):
    """``workspace:<relative path>``."""

    PROTOCOL = DependencyProtocol.WORKSPACE

    name: str
    path: str

    def __str__(self) -> str:
        """Render the spec."""
        return f'workspace:{self.path}'


@dataclass(frozen=True)
class WorkspaceAliasSource(_SourceMixin):
    """``workspace:<alias>@<constraint>``."""

    PROTOCOL = DependencyProtocol.WORKSPACE

    name: str
    alias: str
    constraint: WorkspaceConstraint

    def __str__(self) -> str:
        """Render the spec."""
        return f'workspace:{self.alias}@{self.constraint}'


@dataclass(frozen=True)
class FileSource(_SourceMixin):
    """``file:<path>``."""

    PROTOCOL = DependencyProtocol.FILE

    name: str
    path: str

    def __str__(self) -> str:
        """Render the spec."""
        return f'file:{self.path}'


@dataclass(frozen=True)
class LinkSource(_SourceMixin):
    """``link:<path>`` (symlinked, never installed)."""

    PROTOCOL = DependencyProtocol.LINK

    name: str
    path: str

    def __str__(self) -> str:
        """Render the spec."""
        return f'link:{self.path}'


@dataclass(frozen=True)
class PortalSource(_SourceMixin):
    """``portal:<path>`` (yarn berry; link that keeps its own deps)."""

    PROTOCOL = DependencyProtocol.PORTAL

    name: str
    path: str

    def __str__(self) -> str:
        """Render the spec."""
        return f'portal:{self.path}'


@dataclass(frozen=True)
class GitSource(_SourceMixin):
    """A git URL, optionally pinned with ``#ref``.

    ``plus`` records a ``git+`` prefix so rendering round-trips.
    """

    PROTOCOL = DependencyProtocol.GIT

    name: str
    repo: str
    reference: GitReference | None = None
    plus: bool = True

    @property
    def effective_reference(self) -> GitReference:
        """The pinned ref, or the ``main`` branch."""
        return self.reference or DEFAULT_GIT_REFERENCE

    def __str__(self) -> str:
        """Render the spec."""
        text = f'git+{self.repo}' if self.plus else self.repo
        if self.reference is not None:
            text += f'#{self.reference}'
        return text


@dataclass(frozen=True)
class GitHubSource(_SourceMixin):
    """A GitHub repository, public (shorthand) or private (token URL).

    Attributes:
        prefixed: Whether the spec used the explicit ``github:`` prefix.
        https: Whether the spec was an ``https://github.com/`` URL.
        token: Access token for private repositories (https form only).
        git_suffix: Whether the https form ended in ``.git``.
    """

    PROTOCOL = DependencyProtocol.GITHUB

    name: str
    user: str
    repo: str
    reference: str | None = None
    token: str | None = None
    prefixed: bool = False
    https: bool = False
    git_suffix: bool = False

    @property
    def is_private(self) -> bool:
        """Whether the source carries an access token."""
        return self.token is not None

    def __str__(self) -> str:
        """Render the spec."""
        if self.https:
            auth = f'{self.token}@' if self.token is not None else ''
            text = f'https://{auth}github.com/{self.user}/{self.repo}'
            if self.git_suffix:
                text += '.git'
        else:
            text = f'{"github:" if self.prefixed else ""}{self.user}/{self.repo}'
        if self.reference is not None:
            text += f'#{self.reference}'
        return text


@dataclass(frozen=True)
class UrlSource(_SourceMixin):
    """A direct tarball URL."""

    PROTOCOL = DependencyProtocol.URL

    name: str
    url: str

    def __str__(self) -> str:
        """Render the spec."""
        return self.url


DependencySource = Union[
    RegistrySource,
    ScopedSource,
    NpmSource,
    JsrSource,
    WorkspaceSource,
    WorkspacePathSource,
    WorkspaceAliasSource,
    FileSource,
    LinkSource,
    PortalSource,
    GitSource,
    GitHubSource,
    UrlSource,
]


def split_package_version(spec: str) -> tuple[str, str]:
    """Split ``name@req`` (or ``@scope/name@req``) on its last ``@``.

    Raises:
        WorkspaceKitError: ``DEPENDENCY_INVALID_SOURCE`` if there is no
            version separator.
    """
    at = spec.rfind('@')
    if at <= 0:
        raise _invalid(spec, "missing '@' between package name and version")
    name, req = spec[:at], spec[at + 1 :]
    if name.startswith('@') and '/' not in name:
        raise _invalid(spec, 'scoped package name needs the form @scope/name')
    return name, req


def _split_scope(full_name: str, spec: str) -> tuple[str, str]:
    scope, _, name = full_name[1:].partition('/')
    if not scope or not name or '/' in name:
        raise _invalid(spec, f"'{full_name}' is not a valid @scope/name")
    return scope, name


def is_workspace_protocol(spec: str) -> bool:
    """Return True for ``workspace:`` specs."""
    return spec.strip().startswith('workspace:')


def is_local_protocol(spec: str) -> bool:
    """Return True for ``file:``, ``link:`` and ``portal:`` specs."""
    return spec.strip().startswith(LOCAL_PROTOCOL_PREFIXES)


def _parse_workspace(name: str, spec: str, tail: str) -> DependencySource:
    if not tail:
        raise _invalid(spec, 'empty workspace constraint')
    if tail.startswith(('../', './')):
        return WorkspacePathSource(name=name, path=tail)
    if '@' in tail:
        alias, constraint = split_package_version(tail)
        return WorkspaceAliasSource(name=name, alias=alias, constraint=WorkspaceConstraint.parse(constraint))
    return WorkspaceSource(name=name, constraint=WorkspaceConstraint.parse(tail))


def parse_dependency_source(
    name: str,
    spec: str,
    context: ProjectContext = ProjectContext.MONOREPO,
) -> DependencySource:
    """Parse the spec string of dependency ``name``.

    Prefixes are tried in this order: ``workspace:``, ``jsr:``, ``npm:``,
    git URLs, GitHub forms, local paths (``file:``, ``link:``,
    ``portal:``), http(s) URLs, inline ``@scope/name@req``, and finally a
    plain registry range.

    Args:
        name: The dependency's key in the manifest.
        spec: The raw value.
        context: Whether workspace protocols are allowed.

    Raises:
        WorkspaceKitError: ``DEPENDENCY_UNSUPPORTED_PROTOCOL`` for
            ``workspace:`` outside a monorepo, ``DEPENDENCY_INVALID_SOURCE``
            for malformed specs.
    """
    if not isinstance(spec, str):
        raise _invalid(str(spec), f'expected a string, got {type(spec).__name__}')
    text = spec.strip()

    if text.startswith('workspace:'):
        if context is not ProjectContext.MONOREPO:
            raise WorkspaceKitError(
                code=E.DEPENDENCY_UNSUPPORTED_PROTOCOL,
                message=f"Dependency '{name}' uses '{spec}', but workspace: is not supported in a single repository",
                hint='Replace the workspace: spec with a registry version range.',
            )
        return _parse_workspace(name, spec, text[len('workspace:') :])

    if text.startswith('jsr:'):
        full_name, req = split_package_version(text[len('jsr:') :])
        if not full_name.startswith('@'):
            raise _invalid(spec, 'jsr packages must be scoped (@scope/name)')
        scope, pkg = _split_scope(full_name, spec)
        return JsrSource(scope=scope, name=pkg, req=VersionReq.parse(req))

    if text.startswith('npm:'):
        target, req = split_package_version(text[len('npm:') :])
        return NpmSource(name=target, req=VersionReq.parse(req))

    m = _GIT_PLUS_RE.match(text)
    if m:
        ref = m.group('ref')
        return GitSource(
            name=name,
            repo=m.group('repo'),
            reference=GitReference.parse(ref) if ref else None,
        )
    m = _GIT_URL_RE.match(text)
    if m:
        ref = m.group('ref')
        return GitSource(
            name=name,
            repo=m.group('repo'),
            reference=GitReference.parse(ref) if ref else None,
            plus=False,
        )

    m = _GITHUB_HTTPS_RE.match(text)
    if m:
        return GitHubSource(
            name=name,
            user=m.group('user'),
            repo=m.group('repo'),
            reference=m.group('ref'),
            token=m.group('token'),
            https=True,
            git_suffix=bool(m.group('git')),
        )
    m = _GITHUB_RE.match(text)
    if m and not text.startswith(LOCAL_PROTOCOL_PREFIXES):
        return GitHubSource(
            name=name,
            user=m.group('user'),
            repo=m.group('repo'),
            reference=m.group('ref'),
            prefixed=bool(m.group('prefix')),
        )
    if text.startswith('github:'):
        raise _invalid(spec, 'expected github:user/repo[#ref]')

    if text.startswith('file:'):
        return FileSource(name=name, path=text[len('file:') :])
    if text.startswith('link:'):
        return LinkSource(name=name, path=text[len('link:') :])
    if text.startswith('portal:'):
        return PortalSource(name=name, path=text[len('portal:') :])

    if text.startswith(('http://', 'https://')):
        if not urlsplit(text).path.endswith(_TARBALL_SUFFIXES):
            raise _invalid(spec, 'URL dependencies must point at a .tgz or .tar.gz tarball')
        return UrlSource(name=name, url=text)

    if text.startswith('@'):
        full_name, req = split_package_version(text)
        scope, pkg = _split_scope(full_name, spec)
        return ScopedSource(scope=scope, name=pkg, req=VersionReq.parse(req), qualified=True)

    req = VersionReq.parse(text)
    if name.startswith('@'):
        scope, pkg = _split_scope(name, spec)
        return ScopedSource(scope=scope, name=pkg, req=req)
    return RegistrySource(name=name, req=req)


__all__ = [
    'DEFAULT_GIT_REFERENCE',
    'DependencyProtocol',
    'DependencySource',
    'FileSource',
    'GitHubSource',
    'GitReference',
    'GitReferenceKind',
    'GitSource',
    'JsrSource',
    'LOCAL_PROTOCOL_PREFIXES',
    'LinkSource',
    'NpmSource',
    'PortalSource',
    'ProjectContext',
    'RegistrySource',
    'ScopedSource',
    'UrlSource',
    'VersionReq',
    'WorkspaceAliasSource',
    'WorkspaceConstraint',
    'WorkspaceConstraintKind',
    'WorkspacePathSource',
    'WorkspaceSource',
    'is_local_protocol',
    'is_workspace_protocol',
    'parse_dependency_source',
    'split_package_version',
]
