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

"""Change store backends.

The :class:`ChangeStore` protocol is the persistence boundary of the
change tracker. Implementations:

- :class:`MemoryChangeStore`: process-local, for tests and one-shot runs.
- :class:`FileChangeStore`: JSON files under a directory, written
  atomically.

File layout::

    .changes/
    ├── changes.json                                  # every recorded change
    └── changesets/
        └── 20260301120000-feat-oauth-3f2a9c1d.json   # one file per changeset
            <created_at>-<branch>-<id prefix>

Callers always receive copies; mutating a returned :class:`Change` does
not touch the store.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from workspacekit.changes._types import Change, Changeset
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import get_logger
from workspacekit.snapshot import sanitize_branch
from workspacekit.version import Version

logger = get_logger(__name__)

CHANGES_FILENAME = 'changes.json'
CHANGESETS_DIRNAME = 'changesets'


@runtime_checkable
class ChangeStore(Protocol):
    """Protocol for change persistence backends."""

    def record_change(self, change: Change) -> None:
        """Store a new change (or replace one with the same id)."""
        ...

    def get_unreleased_changes(self, package: str) -> list[Change]:
        """Changes of ``package`` that have not shipped everywhere they target."""
        ...

    def get_released_changes(self, package: str) -> list[Change]:
        """Changes of ``package`` that have shipped at least once."""
        ...

    def mark_released(
        self,
        package: str,
        version: Version,
        change_ids: list[str],
        environment: str | None = None,
    ) -> list[Change]:
        """Stamp the given changes of ``package`` as released.

        Returns:
            The changes that were updated.
        """
        ...

    def save_changeset(self, changeset: Changeset) -> None:
        """Store a changeset and record the changes it carries."""
        ...

    def get_changeset(self, changeset_id: str) -> Changeset:
        """Return the changeset with ``changeset_id``.

        Raises:
            WorkspaceKitError: ``STORE_CHANGESET_NOT_FOUND``.
        """
        ...

    def list_changesets(self) -> list[Changeset]:
        """Every stored changeset, oldest first."""
        ...

    def all_changes(self, package: str | None = None) -> list[Change]:
        """Every change, optionally limited to one package."""
        ...


class MemoryChangeStore:
    """In-memory :class:`ChangeStore`."""

    def __init__(self) -> None:
        """Create an empty store."""
        self._changes: dict[str, Change] = {}
        self._changesets: dict[str, Changeset] = {}

    def _persist_changes(self) -> None:
        """Hook for durable subclasses."""

    def _persist_changeset(self, changeset: Changeset) -> None:
        """Hook for durable subclasses."""

    def _refresh(self, changeset: Changeset) -> Changeset:
        result = copy.deepcopy(changeset)
        result.changes = [copy.deepcopy(self._changes.get(c.id, c)) for c in changeset.changes]
        return result

    def record_change(self, change: Change) -> None:
        """Store a change."""
        self._changes[change.id] = copy.deepcopy(change)
        self._persist_changes()
        logger.debug('change_recorded', id=change.id, package=change.package, kind=change.kind.value)

    def get_unreleased_changes(self, package: str) -> list[Change]:
        """Unreleased changes of ``package`` in recording order."""
        return [copy.deepcopy(c) for c in self._changes.values() if c.package == package and not c.is_released]

    def get_released_changes(self, package: str) -> list[Change]:
        """Released changes of ``package`` in recording order."""
        return [
            copy.deepcopy(c)
            for c in self._changes.values()
            if c.package == package and c.release_version is not None
        ]

    def mark_released(
        self,
        package: str,
        version: Version,
        change_ids: list[str],
        environment: str | None = None,
    ) -> list[Change]:
        """Stamp changes as released; ids of other packages are ignored."""
        wanted = set(change_ids)
        updated: list[Change] = []
        for change in self._changes.values():
            if change.id not in wanted or change.package != package:
                continue
            if environment is None and change.is_released:
                continue
            if environment is not None and environment in change.released_in_environments:
                continue
            change.mark_released(version, environment)
            updated.append(copy.deepcopy(change))
        if updated:
            self._persist_changes()
            for changeset in self._changesets.values():
                if any(c.id in wanted for c in changeset.changes):
                    self._persist_changeset(changeset)
        logger.debug(
            'changes_marked_released',
            package=package,
            version=str(version),
            environment=environment,
            count=len(updated),
        )
        return updated

    def save_changeset(self, changeset: Changeset) -> None:
        """Store a changeset and its changes."""
        stored = copy.deepcopy(changeset)
        for change in stored.changes:
            self._changes.setdefault(change.id, copy.deepcopy(change))
        self._changesets[stored.id] = stored
        self._persist_changes()
        self._persist_changeset(stored)
        logger.debug('changeset_saved', id=stored.id, changes=len(stored.changes))

    def get_changeset(self, changeset_id: str) -> Changeset:
        """Return a changeset with its changes' current release state."""
        changeset = self._changesets.get(changeset_id)
        if changeset is None:
            raise WorkspaceKitError(
                code=E.STORE_CHANGESET_NOT_FOUND,
                message=f"Changeset '{changeset_id}' not found",
            )
        return self._refresh(changeset)

    def list_changesets(self) -> list[Changeset]:
        """Every changeset, oldest first."""
        ordered = sorted(self._changesets.values(), key=lambda cs: cs.created_at)
        return [self._refresh(cs) for cs in ordered]

    def all_changes(self, package: str | None = None) -> list[Change]:
        """Every change, optionally for one package."""
        return [copy.deepcopy(c) for c in self._changes.values() if package is None or c.package == package]


def _atomic_write_json(path: Path, data: Any) -> None:  # noqa: ANN401 - JSON payload
    """Write JSON via ``tempfile`` + ``os.replace`` so readers never see half a file."""
    content = json.dumps(data, indent=2, ensure_ascii=False) + '\n'
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix='.workspacekit-', suffix='.tmp')
    closed = False
    try:
        os.write(fd, content.encode('utf-8'))
        os.close(fd)
        closed = True
        os.replace(tmp_path, path)
    except BaseException:
        if not closed:
            os.close(fd)
        Path(tmp_path).unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> Any:  # noqa: ANN401 - JSON payload
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as exc:
        raise WorkspaceKitError(
            code=E.STORE_ERROR,
            message=f'Failed to read {path}: {exc}',
            hint='Fix or delete the file; the change store rewrites it on the next save.',
        ) from exc


def changeset_filename(changeset: Changeset) -> str:
    """``<created_at>-<branch>-<id prefix>.json``."""
    stamp = changeset.created_at.strftime('%Y%m%d%H%M%S')
    branch = sanitize_branch(changeset.branch) or 'detached'
    return f'{stamp}-{branch}-{changeset.id[:8]}.json'


class FileChangeStore(MemoryChangeStore):
    """:class:`ChangeStore` persisted as JSON under ``directory``.

    Existing files are loaded on construction.

    Args:
        directory: Store directory, created if missing.
    """

    def __init__(self, directory: Path) -> None:
        """Load any existing store under ``directory``."""
        super().__init__()
        self.directory = directory
        self._filenames: dict[str, str] = {}
        self._load()

    @property
    def changes_path(self) -> Path:
        """Path of ``changes.json``."""
        return self.directory / CHANGES_FILENAME

    @property
    def changesets_dir(self) -> Path:
        """Directory holding one file per changeset."""
        return self.directory / CHANGESETS_DIRNAME

    def _load(self) -> None:
        if self.changes_path.is_file():
            data = _read_json(self.changes_path)
            if not isinstance(data, list):
                raise WorkspaceKitError(
                    code=E.STORE_ERROR,
                    message=f'{self.changes_path} must contain a JSON array',
                )
            for item in data:
                change = Change.from_dict(item)
                self._changes[change.id] = change
        if self.changesets_dir.is_dir():
            for path in sorted(self.changesets_dir.glob('*.json')):
                changeset = Changeset.from_dict(_read_json(path))
                self._changesets[changeset.id] = changeset
                self._filenames[changeset.id] = path.name
                for change in changeset.changes:
                    self._changes.setdefault(change.id, copy.deepcopy(change))
        logger.debug(
            'change_store_loaded',
            path=str(self.directory),
            changes=len(self._changes),
            changesets=len(self._changesets),
        )

    def _ensure_dirs(self) -> None:
        try:
            self.changesets_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WorkspaceKitError(
                code=E.STORE_ERROR,
                message=f'Cannot create change store at {self.directory}: {exc}',
            ) from exc

    def _persist_changes(self) -> None:
        self._ensure_dirs()
        try:
            _atomic_write_json(self.changes_path, [c.to_dict() for c in self._changes.values()])
        except OSError as exc:
            raise WorkspaceKitError(
                code=E.STORE_ERROR,
                message=f'Failed to write {self.changes_path}: {exc}',
            ) from exc

    def _persist_changeset(self, changeset: Changeset) -> None:
        self._ensure_dirs()
        name = self._filenames.setdefault(changeset.id, changeset_filename(changeset))
        path = self.changesets_dir / name
        try:
            _atomic_write_json(path, self._refresh(changeset).to_dict())
        except OSError as exc:
            raise WorkspaceKitError(
                code=E.STORE_ERROR,
                message=f'Failed to write {path}: {exc}',
            ) from exc
        logger.debug('changeset_written', path=str(path))


__all__ = [
    'CHANGESETS_DIRNAME',
    'CHANGES_FILENAME',
    'ChangeStore',
    'FileChangeStore',
    'MemoryChangeStore',
    'changeset_filename',
]
