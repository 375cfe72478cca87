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

"""Read ``.changeset/*.md`` files and turn them into changesets.

A changeset file names packages and bump levels in a frontmatter block,
followed by a markdown summary::

    ---
    "@acme/core": minor
    "@acme/cli": patch
    ---

    Add streaming support to the core library.

When several files name one package, the strongest bump wins. Once a
release has been cut, :func:`consume_changeset_files` deletes the files
so they are not applied twice.

Usage::

    from workspacekit.changesets import CHANGESET_DIRNAME, changesets_from_files, read_changeset_files

    files = read_changeset_files(root / CHANGESET_DIRNAME)
    for changeset in changesets_from_files(files):
        resolution = resolver.resolve(changeset)
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from workspacekit.changes import Changeset, strongest_bump
from workspacekit.logging import get_logger
from workspacekit.version import VersionBump

logger = get_logger(__name__)

CHANGESET_DIRNAME = '.changeset'

_SKIPPED_NAMES = frozenset({'README.md'})

_DOCUMENT_RE = re.compile(r'\A---[ \t]*\n(?P<head>.*?)^---[ \t]*$\n?(?P<body>.*)\Z', re.DOTALL | re.MULTILINE)
_ENTRY_RE = re.compile(r'^(?P<q>["\']?)(?P<name>[^"\':]+)(?P=q)\s*:\s*(?P<level>major|minor|patch)$')


@dataclass(frozen=True)
class ChangesetFile:
    """One parsed changeset file.

    Attributes:
        path: Location of the file.
        bumps: Bump per package, in frontmatter order.
        summary: Markdown body, stripped.
    """

    path: Path
    bumps: dict[str, VersionBump] = field(default_factory=dict)
    summary: str = ''


def _stronger(current: VersionBump | None, candidate: VersionBump) -> VersionBump:
    if current is None:
        return candidate
    return strongest_bump([current, candidate]) or current


def parse_changeset_text(text: str, path: Path) -> ChangesetFile | None:
    """Parse changeset markdown.

    Returns ``None`` when the text has no closed frontmatter block or
    the block names no package. Malformed entries are logged and skipped.
    """
    match = _DOCUMENT_RE.match(text.strip() + '\n')
    if match is None:
        logger.debug('changeset_without_frontmatter', path=str(path))
        return None

    bumps: dict[str, VersionBump] = {}
    for raw in match.group('head').splitlines():
        entry = raw.strip()
        if not entry:
            continue
        parsed = _ENTRY_RE.match(entry)
        if parsed is None:
            logger.warning('changeset_entry_ignored', path=str(path), entry=entry)
            continue
        name = parsed.group('name').strip()
        bumps[name] = _stronger(bumps.get(name), VersionBump(parsed.group('level')))

    if not bumps:
        logger.debug('changeset_without_packages', path=str(path))
        return None
    return ChangesetFile(path=path, bumps=bumps, summary=match.group('body').strip())


def parse_changeset_file(path: Path) -> ChangesetFile | None:
    """Parse one file; an unreadable file is logged and skipped."""
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as exc:
        logger.warning('changeset_unreadable', path=str(path), error=str(exc))
        return None
    return parse_changeset_text(text, path)


def read_changeset_files(changeset_dir: Path) -> list[ChangesetFile]:
    """Parse every changeset in ``changeset_dir``, sorted by file name.

    ``README.md`` and hidden files are not changesets.
    """
    if not changeset_dir.is_dir():
        return []
    candidates = [
        p for p in sorted(changeset_dir.glob('*.md')) if p.name not in _SKIPPED_NAMES and not p.name.startswith('.')
    ]
    files = [cs for cs in map(parse_changeset_file, candidates) if cs is not None]
    logger.info('changesets_read', path=str(changeset_dir), count=len(files), skipped=len(candidates) - len(files))
    return files


def merge_bumps(files: Iterable[ChangesetFile]) -> dict[str, VersionBump]:
    """Bump per package across ``files``; the strongest wins."""
    merged: dict[str, VersionBump] = {}
    for cs in files:
        for name, bump in cs.bumps.items():
            merged[name] = _stronger(merged.get(name), bump)
    return merged


def changesets_from_files(files: list[ChangesetFile]) -> list[Changeset]:
    """One :class:`Changeset` per bump level, major first.

    Every changeset carries the joined summaries of all files.
    """
    merged = merge_bumps(files)
    summary = '\n\n'.join(cs.summary for cs in files if cs.summary)
    by_level: dict[VersionBump, list[str]] = {}
    for name, bump in merged.items():
        by_level.setdefault(bump, []).append(name)
    return [
        Changeset(summary=summary, packages=by_level[level], bump=level)
        for level in (VersionBump.MAJOR, VersionBump.MINOR, VersionBump.PATCH)
        if level in by_level
    ]


def changeset_summaries(files: Iterable[ChangesetFile]) -> dict[str, list[str]]:
    """Summaries per package, for the files that have one."""
    result: dict[str, list[str]] = {}
    for cs in files:
        if cs.summary:
            for name in cs.bumps:
                result.setdefault(name, []).append(cs.summary)
    return result


def consume_changeset_files(files: Iterable[ChangesetFile], *, dry_run: bool = False) -> list[Path]:
    """Delete consumed changeset files.

    Returns:
        The paths removed, or with ``dry_run`` the paths that would be.
        Files already gone are skipped.
    """
    removed: list[Path] = []
    for cs in files:
        if not dry_run:
            try:
                cs.path.unlink()
            except FileNotFoundError:
                logger.warning('changeset_already_removed', path=str(cs.path))
                continue
        removed.append(cs.path)
    logger.info('changesets_consumed', count=len(removed), dry_run=dry_run)
    return removed


__all__ = [
    'CHANGESET_DIRNAME',
    'ChangesetFile',
    'changeset_summaries',
    'changesets_from_files',
    'consume_changeset_files',
    'merge_bumps',
    'parse_changeset_file',
    'parse_changeset_text',
    'read_changeset_files',
]
