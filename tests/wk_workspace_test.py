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

"""Tests for workspacekit.workspace module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from workspacekit.config import MonorepoConfig
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import configure_logging
from workspacekit.version import Version
from workspacekit.workspace import DiscoveryOptions, ValidationOptions, Workspace

from tests._fakes import make_package, make_workspace, manifest, write_workspace

configure_logging(quiet=True)

DIAMOND = [
    manifest('core'),
    manifest('a', dependencies={'core': '^1.0.0'}),
    manifest('b', dependencies={'core': '^1.0.0'}),
    manifest('app', dependencies={'a': '^1.0.0', 'b': '^1.0.0'}),
]


async def _discover(root: Path, **kwargs: object) -> Workspace:
    ws = Workspace(root, **kwargs)  # type: ignore[arg-type]
    await ws.discover_packages()
    return ws


class TestDiscovery:
    """Tests for discover_packages()."""

    @pytest.mark.asyncio()
    async def test_finds_packages(self, tmp_path: Path) -> None:
        """Every manifest matching the include glob is loaded, sorted by path."""
        write_workspace(tmp_path, DIAMOND)
        ws = await _discover(tmp_path)
        assert [p.name for p in ws.packages] == ['a', 'app', 'b', 'core']
        assert ws.require_package('app').relative_path == 'packages/app'

    @pytest.mark.asyncio()
    async def test_root_manifest(self, tmp_path: Path) -> None:
        """A named root manifest is kept when an include glob matches it."""
        write_workspace(tmp_path, [manifest('core')])
        (tmp_path / 'package.json').write_text(json.dumps(manifest('monorepo', '0.0.0', private=True)))
        ws = await _discover(tmp_path, include=['package.json', 'packages/*/package.json'])
        root = ws.require_package('monorepo')
        assert root.is_root
        assert [p.name for p in ws.sorted_packages()] == ['core']

    @pytest.mark.asyncio()
    async def test_unnamed_root_skipped(self, tmp_path: Path) -> None:
        """A root manifest without a name is not a package."""
        write_workspace(tmp_path, [manifest('core')])
        (tmp_path / 'package.json').write_text(json.dumps({'private': True, 'workspaces': ['packages/*']}))
        ws = await _discover(tmp_path, include=['package.json', 'packages/*/package.json'])
        assert [p.name for p in ws.packages] == ['core']

    @pytest.mark.asyncio()
    async def test_options(self, tmp_path: Path) -> None:
        """Private packages and extra excludes can be filtered out."""
        write_workspace(tmp_path, [manifest('core'), manifest('internal', private=True), manifest('scratch')])
        ws = Workspace(tmp_path)
        found = await ws.discover_packages_with_options(
            DiscoveryOptions(extra_exclude=['packages/scratch/*'], include_private=False)
        )
        assert [p.name for p in found] == ['core']

    @pytest.mark.asyncio()
    async def test_exclude_and_node_modules(self, tmp_path: Path) -> None:
        """Configured excludes and node_modules are never loaded."""
        write_workspace(tmp_path, [manifest('core'), manifest('legacy')])
        nested = tmp_path / 'packages' / 'core' / 'node_modules' / 'dep'
        nested.mkdir(parents=True)
        (nested / 'package.json').write_text(json.dumps(manifest('dep')))
        ws = await _discover(tmp_path, include=['packages/**/package.json'], exclude=['packages/legacy/*'])
        assert [p.name for p in ws.packages] == ['core']

    @pytest.mark.asyncio()
    async def test_duplicate_names(self, tmp_path: Path) -> None:
        """Two manifests with one name are rejected."""
        for dirname in ('one', 'two'):
            pkg = tmp_path / 'packages' / dirname
            pkg.mkdir(parents=True)
            (pkg / 'package.json').write_text(json.dumps(manifest('same')))
        with pytest.raises(WorkspaceKitError) as exc_info:
            await _discover(tmp_path)
        assert exc_info.value.code is E.WORKSPACE_DUPLICATE_PACKAGE

    @pytest.mark.asyncio()
    async def test_missing_root(self, tmp_path: Path) -> None:
        """A root that is not a directory is reported."""
        with pytest.raises(WorkspaceKitError) as exc_info:
            await _discover(tmp_path / 'nope')
        assert exc_info.value.code is E.WORKSPACE_NOT_FOUND

    @pytest.mark.asyncio()
    async def test_invalid_manifest(self, tmp_path: Path) -> None:
        """Broken JSON fails discovery."""
        pkg = tmp_path / 'packages' / 'broken'
        pkg.mkdir(parents=True)
        (pkg / 'package.json').write_text('{')
        with pytest.raises(WorkspaceKitError) as exc_info:
            await _discover(tmp_path)
        assert exc_info.value.code is E.PACKAGE_INVALID_MANIFEST

    @pytest.mark.asyncio()
    async def test_from_config(self, tmp_path: Path) -> None:
        """A workspace can be created from a loaded config."""
        write_workspace(tmp_path, [manifest('core')])
        ws = Workspace.from_config(MonorepoConfig(root=tmp_path, include=['packages/*/package.json']))
        await ws.discover_packages()
        assert ws.get_package('core') is not None


class TestQueries:
    """Tests for graph-backed queries."""

    def test_sorted_packages(self, tmp_path: Path) -> None:
        """Dependencies come before dependents."""
        ws = make_workspace(tmp_path, [make_package(tmp_path, m['name'], **_deps(m)) for m in reversed(DIAMOND)])
        names = [p.name for p in ws.sorted_packages()]
        assert names[0] == 'core'
        assert names[-1] == 'app'

    def test_sorted_packages_cycle_fallback(self, tmp_path: Path) -> None:
        """With a cycle the discovery order is used."""
        ws = make_workspace(
            tmp_path,
            [
                make_package(tmp_path, 'y', dependencies={'x': '^1.0.0'}),
                make_package(tmp_path, 'x', dependencies={'y': '^1.0.0'}),
            ],
        )
        assert [p.name for p in ws.sorted_packages()] == ['y', 'x']

    def test_affected_packages_closed_under_dependents(self, tmp_path: Path) -> None:
        """The affected set contains the seeds and every transitive dependent."""
        ws = make_workspace(tmp_path, [make_package(tmp_path, m['name'], **_deps(m)) for m in DIAMOND])
        affected = ws.affected_packages(['a'])
        assert set(affected) == {'a', 'app'}
        for name in affected:
            assert set(ws.dependents_of(name)) <= set(affected)
        assert set(ws.affected_packages(['core'])) == {'core', 'a', 'b', 'app'}
        assert ws.affected_packages(['app']) == ['app']

    def test_affected_packages_unknown(self, tmp_path: Path) -> None:
        """Unknown seeds are rejected."""
        ws = make_workspace(tmp_path, [make_package(tmp_path, 'core')])
        with pytest.raises(WorkspaceKitError) as exc_info:
            ws.affected_packages(['corr'])
        assert exc_info.value.code is E.PACKAGE_NOT_FOUND
        assert "'core'" in exc_info.value.hint

    def test_dependencies_of(self, tmp_path: Path) -> None:
        """Only workspace dependencies are listed."""
        ws = make_workspace(
            tmp_path,
            [make_package(tmp_path, 'core'), make_package(tmp_path, 'app', dependencies={'core': '1.0.0', 'x': '1'})],
        )
        assert ws.dependencies_of('app') == ['core']
        assert ws.dependents_of('core') == ['app']

    def test_validate_with_options(self, tmp_path: Path) -> None:
        """Disabled checks contribute nothing."""
        ws = make_workspace(
            tmp_path,
            [
                make_package(tmp_path, 'x', dependencies={'y': '^1.0.0'}),
                make_package(tmp_path, 'y', dependencies={'x': '^1.0.0'}),
            ],
        )
        assert ws.validate_with_options().cycles
        assert ws.validate_with_options(ValidationOptions(check_cycles=False)).is_valid

    def test_graph_cached_until_invalidated(self, tmp_path: Path) -> None:
        """The graph is rebuilt only after invalidate()."""
        ws = make_workspace(tmp_path, [make_package(tmp_path, 'core')])
        first = ws.graph
        assert ws.graph is first
        ws.invalidate()
        assert ws.graph is not first


class TestWriteChanges:
    """Tests for write_changes()."""

    @pytest.mark.asyncio()
    async def test_writes_every_manifest(self, tmp_path: Path) -> None:
        """Edited packages are written back to disk."""
        write_workspace(tmp_path, [manifest('core'), manifest('app', dependencies={'core': '^1.0.0'})])
        ws = await _discover(tmp_path)
        ws.require_package('core').set_version(Version.parse('1.1.0'))
        written = await ws.write_changes()
        assert len(written) == 2
        data = json.loads((tmp_path / 'packages' / 'core' / 'package.json').read_text())
        assert data['version'] == '1.1.0'


def _deps(data: dict[str, object]) -> dict[str, object]:
    return {'dependencies': data['dependencies']} if 'dependencies' in data else {}
