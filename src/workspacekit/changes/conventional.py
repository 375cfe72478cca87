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

"""Conventional Commits parsing for change detection.

Pure implementation: depends only on ``re`` and :mod:`._types`.
No I/O, no logging, no side effects.

Commit type to change kind::

    feat      → FEATURE       docs      → DOCS
    fix       → FIX           test      → TEST
    perf      → PERF          ci        → CI
    refactor  → REFACTOR      build     → BUILD
    style     → STYLE         revert    → REVERT
    anything else → CHORE

``type!:`` or ``BREAKING CHANGE`` anywhere in the message → BREAKING.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from workspacekit.changes._types import ChangeKind

# Regex for Conventional Commits: type(scope)!: description
CC_PATTERN: re.Pattern[str] = re.compile(
    r'^(?P<type>[a-zA-Z]+)'
    r'(?:\((?P<scope>[^)]*)\))?'
    r'(?P<breaking>!)?'
    r':\s*'
    r'(?P<description>.+)$',
)

# GitHub's default revert format: Revert "feat: add X"
REVERT_PATTERN: re.Pattern[str] = re.compile(r'^[Rr]evert\s+"(?P<inner>.+)"')

_KIND_BY_TYPE: dict[str, ChangeKind] = {
    'feat': ChangeKind.FEATURE,
    'feature': ChangeKind.FEATURE,
    'fix': ChangeKind.FIX,
    'perf': ChangeKind.PERF,
    'docs': ChangeKind.DOCS,
    'doc': ChangeKind.DOCS,
    'test': ChangeKind.TEST,
    'tests': ChangeKind.TEST,
    'ci': ChangeKind.CI,
    'build': ChangeKind.BUILD,
    'refactor': ChangeKind.REFACTOR,
    'style': ChangeKind.STYLE,
    'revert': ChangeKind.REVERT,
    'chore': ChangeKind.CHORE,
}

# Highest priority first.
KIND_PRIORITY: tuple[ChangeKind, ...] = (
    ChangeKind.BREAKING,
    ChangeKind.FEATURE,
    ChangeKind.FIX,
    ChangeKind.PERF,
    ChangeKind.DOCS,
    ChangeKind.TEST,
    ChangeKind.CI,
    ChangeKind.BUILD,
    ChangeKind.REFACTOR,
    ChangeKind.STYLE,
    ChangeKind.REVERT,
    ChangeKind.CHORE,
)


@dataclass(frozen=True)
class ParsedCommit:
    """A commit subject split into its Conventional Commit parts.

    Attributes:
        type: The commit type, lowercased (``"feat"``, ``"fix"``...).
        description: Text after the colon.
        scope: The optional scope.
        breaking: ``!`` marker or a ``BREAKING CHANGE`` footer.
        raw: The original message.
    """

    type: str
    description: str
    scope: str = ''
    breaking: bool = False
    raw: str = ''

    @property
    def kind(self) -> ChangeKind:
        """The change kind this commit implies."""
        if self.breaking:
            return ChangeKind.BREAKING
        return _KIND_BY_TYPE.get(self.type, ChangeKind.CHORE)


class ConventionalCommitParser:
    """Parser for `Conventional Commits <https://www.conventionalcommits.org/>`_.

    Parses messages in the format ``type(scope)!: description``, plus
    GitHub's ``Revert "..."`` subjects.
    """

    def parse(self, message: str) -> ParsedCommit | None:
        """Parse a commit message, or return None if it is not conventional."""
        stripped = message.strip()
        breaking_footer = 'BREAKING CHANGE' in message or 'BREAKING-CHANGE' in message

        revert_match = REVERT_PATTERN.match(stripped)
        if revert_match:
            return ParsedCommit(type='revert', description=revert_match.group('inner'), raw=message)

        match = CC_PATTERN.match(stripped.splitlines()[0] if stripped else '')
        if not match:
            if breaking_footer:
                return ParsedCommit(type='', description=stripped, breaking=True, raw=message)
            return None

        return ParsedCommit(
            type=match.group('type').lower(),
            scope=match.group('scope') or '',
            breaking=bool(match.group('breaking')) or breaking_footer,
            description=match.group('description'),
            raw=message,
        )


def infer_change_kind(messages: Iterable[str], parser: ConventionalCommitParser | None = None) -> ChangeKind:
    """Return the most significant change kind across ``messages``.

    Messages that are not Conventional Commits contribute nothing; with
    no recognised message at all the result is ``CHORE``.
    """
    parser = parser or ConventionalCommitParser()
    found: set[ChangeKind] = set()
    for message in messages:
        parsed = parser.parse(message)
        if parsed is not None:
            found.add(parsed.kind)
    for kind in KIND_PRIORITY:
        if kind in found:
            return kind
    return ChangeKind.CHORE


__all__ = [
    'CC_PATTERN',
    'ConventionalCommitParser',
    'KIND_PRIORITY',
    'ParsedCommit',
    'REVERT_PATTERN',
    'infer_change_kind',
]
