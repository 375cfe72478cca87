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

"""Workspace-aware version resolution for JavaScript/TypeScript monorepos.

Discover the ``package.json`` manifests of a workspace, build their
dependency graph, and turn a changeset into every version bump and
dependency-spec rewrite it implies.

Usage::

    from workspacekit import Changeset, VersionBump, VersionResolver, Workspace, load_config

    config = load_config(root)
    workspace = Workspace.from_config(config)
    await workspace.discover_packages()
    resolution = VersionResolver(workspace, config).resolve(
        Changeset(packages=['@acme/core'], bump=VersionBump.MINOR),
    )
"""

from workspacekit.changes import Change, ChangeKind, ChangeTracker, Changeset, FileChangeStore, MemoryChangeStore
from workspacekit.config import DependencyConfig, MonorepoConfig, load_config
from workspacekit.errors import E, ErrorCode, WorkspaceKitError
from workspacekit.resolution import PackageUpdate, VersionResolution
from workspacekit.resolver import VersionResolver, apply_resolution, resolve_versions
from workspacekit.version import Version, VersionBump, VersioningStrategy
from workspacekit.workspace import Workspace

__version__ = '0.1.0'

__all__ = [
    'Change',
    'ChangeKind',
    'ChangeTracker',
    'Changeset',
    'DependencyConfig',
    'E',
    'ErrorCode',
    'FileChangeStore',
    'MemoryChangeStore',
    'MonorepoConfig',
    'PackageUpdate',
    'Version',
    'VersionBump',
    'VersionResolution',
    'VersionResolver',
    'VersioningStrategy',
    'Workspace',
    'WorkspaceKitError',
    '__version__',
    'apply_resolution',
    'load_config',
    'resolve_versions',
]
