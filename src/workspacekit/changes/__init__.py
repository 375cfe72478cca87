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

"""Change tracking: recorded changes, changesets, stores and the tracker.

- :class:`Change` / :class:`Changeset`: value types with a per-environment
  release lifecycle.
- :class:`ChangeStore`: persistence protocol, with
  :class:`MemoryChangeStore` and :class:`FileChangeStore`.
- :class:`ChangeTracker`: validates, groups, releases and detects changes.
- :func:`infer_change_kind`: Conventional Commits to :class:`ChangeKind`.

Usage::

    from workspacekit.changes import Change, ChangeKind, ChangeTracker, FileChangeStore

    store = FileChangeStore(config.store_path)
    tracker = ChangeTracker(workspace, store)
    tracker.create_changeset('Add OAuth', [Change('@acme/auth', ChangeKind.FEATURE, 'OAuth login')])
"""

from workspacekit.changes._types import (
    Change,
    ChangeKind,
    ChangeScope,
    ChangeScopeKind,
    Changeset,
    strongest_bump,
)
from workspacekit.changes.conventional import ConventionalCommitParser, ParsedCommit, infer_change_kind
from workspacekit.changes.store import ChangeStore, FileChangeStore, MemoryChangeStore
from workspacekit.changes.tracker import ChangeTracker

__all__ = [
    'Change',
    'ChangeKind',
    'ChangeScope',
    'ChangeScopeKind',
    'ChangeStore',
    'ChangeTracker',
    'Changeset',
    'ConventionalCommitParser',
    'FileChangeStore',
    'MemoryChangeStore',
    'ParsedCommit',
    'infer_change_kind',
    'strongest_bump',
]
