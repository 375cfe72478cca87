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

"""Snapshot version templates.

Snapshot versions tag throwaway builds of a branch, e.g. for preview
deployments. They are produced by ``VersionBump.SNAPSHOT`` from a format
template and a :class:`SnapshotContext` describing the checkout.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ Plain-English                               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Snapshot version        │ A version like ``1.2.3-snapshot.abc123d``   │
    │                         │ that names one exact commit.                │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ SnapshotFormat          │ The template, e.g.                          │
    │                         │ ``{version}-{branch}.{sha}``.               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ SnapshotContext         │ The facts filled into the template: branch, │
    │                         │ commit, and a unix timestamp.               │
    └─────────────────────────┴─────────────────────────────────────────────┘

Template variables::

    {version}     base version, required          1.2.3
    {sha}         short commit hash (7 chars)      abc123d
    {commit}      same as {sha}                    abc123d
    {branch}      sanitized branch name            feat-oauth
    {timestamp}   unix seconds                     1760000000

Usage::

    from workspacekit.snapshot import SnapshotContext, SnapshotFormat
    from workspacekit.version import Version

    fmt = SnapshotFormat('{version}-{branch}.{sha}')
    ctx = SnapshotContext(branch='feat/OAuth', commit='abc123def456')
    fmt.render(Version.parse('1.2.3'), ctx)  # '1.2.3-feat-oauth.abc123d'
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field

from workspacekit.backends.vcs import VCS
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import get_logger
from workspacekit.version import Version

logger = get_logger(__name__)

DEFAULT_SNAPSHOT_FORMAT = '{version}-snapshot.{sha}'

SHORT_HASH_LENGTH = 7

SUPPORTED_VARIABLES: frozenset[str] = frozenset({'version', 'sha', 'commit', 'branch', 'timestamp'})

_VARIABLE_RE = re.compile(r'\{([^{}]*)\}')
_BRANCH_INVALID_RE = re.compile(r'[^a-zA-Z0-9.\-_]')
_MULTIPLE_HYPHENS_RE = re.compile(r'-+')


def sanitize_branch(branch: str) -> str:
    """Make a branch name safe for use inside a semver prerelease.

    >>> sanitize_branch('Feature/OAuth--Login!')
    'feature-oauth-login'
    """
    result = branch.replace('/', '-').lower()
    result = _BRANCH_INVALID_RE.sub('', result)
    result = _MULTIPLE_HYPHENS_RE.sub('-', result)
    return result.strip('-')


def short_hash(commit: str) -> str:
    """Return the first seven characters of a commit hash."""
    return commit[:SHORT_HASH_LENGTH]


@dataclass(frozen=True)
class SnapshotContext:
    """Checkout facts used to fill a snapshot template.

    Attributes:
        branch: Current branch name, unsanitized.
        commit: Full (or short) commit hash.
        timestamp: Unix seconds; defaults to now.
    """

    branch: str
    commit: str
    timestamp: int = field(default_factory=lambda: int(time.time()))


@dataclass(frozen=True)
class SnapshotFormat:
    """A validated snapshot template.

    Raises:
        WorkspaceKitError: ``VERSION_SNAPSHOT_FORMAT`` if the template is
            empty, lacks ``{version}``, or names an unknown variable.
    """

    template: str = DEFAULT_SNAPSHOT_FORMAT

    def __post_init__(self) -> None:
        """Validate the template eagerly."""
        if not self.template:
            raise WorkspaceKitError(
                code=E.VERSION_SNAPSHOT_FORMAT,
                message='Snapshot format cannot be empty',
                hint=f"Try '{DEFAULT_SNAPSHOT_FORMAT}'.",
            )
        names = _VARIABLE_RE.findall(self.template)
        unknown = sorted(set(names) - SUPPORTED_VARIABLES)
        if unknown:
            raise WorkspaceKitError(
                code=E.VERSION_SNAPSHOT_FORMAT,
                message=f"Unsupported variable(s) {unknown} in snapshot format '{self.template}'",
                hint=f'Supported: {", ".join(sorted(SUPPORTED_VARIABLES))}.',
            )
        if 'version' not in names:
            raise WorkspaceKitError(
                code=E.VERSION_SNAPSHOT_FORMAT,
                message=f"Snapshot format '{self.template}' must contain {{version}}",
            )

    @property
    def variables(self) -> list[str]:
        """Variable names in template order."""
        return _VARIABLE_RE.findall(self.template)

    def render(self, version: Version, context: SnapshotContext) -> str:
        """Expand the template for ``version`` at ``context``."""
        values = {
            'version': str(version),
            'sha': short_hash(context.commit),
            'commit': short_hash(context.commit),
            'branch': sanitize_branch(context.branch),
            'timestamp': str(context.timestamp),
        }
        return _VARIABLE_RE.sub(lambda m: values[m.group(1)], self.template)


async def resolve_snapshot_context(vcs: VCS) -> SnapshotContext:
    """Read the current branch and HEAD commit from ``vcs``."""
    branch = await vcs.current_branch()
    sha = await vcs.head_sha()
    context = SnapshotContext(branch=branch, commit=sha)
    logger.info('snapshot_context_resolved', branch=branch, sha=short_hash(sha))
    return context


__all__ = [
    'DEFAULT_SNAPSHOT_FORMAT',
    'SUPPORTED_VARIABLES',
    'SnapshotContext',
    'SnapshotFormat',
    'resolve_snapshot_context',
    'sanitize_branch',
    'short_hash',
]
