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

"""Tests for workspacekit.package module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.package import (
    DependencyType,
    load_package_info,
    package_info_from_manifest,
    read_manifest,
    render_manifest,
    write_package_info,
)
from workspacekit.resolution import DependencyUpdate, PackageUpdate, UpdateReason
from workspacekit.version import Version

from tests._fakes import make_package, manifest


class TestDependencyType:
    """Tests for DependencyType."""

    def test_sections(self) -> None:
        """Each type maps to its package.json key."""
        assert DependencyType.REGULAR.section == 'dependencies'
        assert DependencyType.DEV.section == 'devDependencies'
        assert DependencyType.PEER.section == 'peerDependencies'
        assert DependencyType.OPTIONAL.section == 'optionalDependencies'


class TestFromManifest:
    """Tests for package_info_from_manifest()."""

    def test_basic_fields(self, tmp_path: Path) -> None:
        """Name, version, paths and sections are read."""
        info = make_package(
            tmp_path,
            '@acme/core',
            '1.2.3',
            dependencies={'lodash': '^4.17.0'},
            dev_dependencies={'vitest': '^1.0.0'},
        )
        assert info.name == '@acme/core'
        assert info.version == Version.parse('1.2.3')
        assert info.relative_path == 'packages/core'
        assert not info.is_root
        assert info.get_spec('lodash', DependencyType.REGULAR) == '^4.17.0'
        assert info.get_spec('vitest', DependencyType.DEV) == '^1.0.0'
        assert info.get_spec('vitest', DependencyType.REGULAR) is None

    def test_root_package(self, tmp_path: Path) -> None:
        """A manifest at the root has relative path '.'."""
        info = package_info_from_manifest(manifest('root'), tmp_path / 'package.json', tmp_path)
        assert info.relative_path == '.'
        assert info.is_root

    def test_private(self, tmp_path: Path) -> None:
        """The private flag is recorded."""
        assert make_package(tmp_path, 'p', private=True).private
        assert not make_package(tmp_path, 'q').private

    def test_missing_name(self, tmp_path: Path) -> None:
        """A manifest without a name is invalid."""
        with pytest.raises(WorkspaceKitError) as exc_info:
            package_info_from_manifest({'version': '1.0.0'}, tmp_path / 'package.json', tmp_path)
        assert exc_info.value.code is E.PACKAGE_INVALID_MANIFEST

    def test_missing_version(self, tmp_path: Path) -> None:
        """A manifest without a version is rejected."""
        with pytest.raises(WorkspaceKitError) as exc_info:
            package_info_from_manifest({'name': 'x'}, tmp_path / 'package.json', tmp_path)
        assert exc_info.value.code is E.VERSION_INVALID

    def test_section_not_object(self, tmp_path: Path) -> None:
        """A dependency section must be an object."""
        data = {'name': 'x', 'version': '1.0.0', 'dependencies': ['a']}
        with pytest.raises(WorkspaceKitError) as exc_info:
            package_info_from_manifest(data, tmp_path / 'package.json', tmp_path)
        assert exc_info.value.code is E.PACKAGE_INVALID_MANIFEST

    def test_unparseable_dependency_is_recorded(self, tmp_path: Path) -> None:
        """A bad spec is kept raw and reported, not raised."""
        info = make_package(tmp_path, 'x', dependencies={'good': '^1.0.0', 'bad': '!!!'})
        assert set(info.raw_specs[DependencyType.REGULAR]) == {'good', 'bad'}
        assert set(info.dependencies[DependencyType.REGULAR]) == {'good'}
        assert len(info.parse_errors) == 1
        assert info.parse_errors[0].name == 'bad'


class TestQueries:
    """Tests for PackageInfo queries."""

    def test_all_dependencies_order(self, tmp_path: Path) -> None:
        """Sections are walked regular, dev, peer, optional."""
        info = make_package(
            tmp_path,
            'x',
            optional_dependencies={'o': '1.0.0'},
            peer_dependencies={'p': '1.0.0'},
            dev_dependencies={'d': '1.0.0'},
            dependencies={'r': '1.0.0'},
        )
        assert [n for n, _s, _t in info.all_dependencies()] == ['r', 'd', 'p', 'o']

    def test_dependency_names_unique(self, tmp_path: Path) -> None:
        """A name in two sections is listed once."""
        info = make_package(tmp_path, 'x', dependencies={'a': '1.0.0'}, peer_dependencies={'a': '^1.0.0'})
        assert info.dependency_names() == ['a']


class TestMutation:
    """Tests for in-place edits."""

    def test_set_dependency_spec(self, tmp_path: Path) -> None:
        """The manifest value, raw spec and parsed source all change."""
        info = make_package(tmp_path, 'x', dependencies={'a': '^1.0.0', 'b': '^2.0.0'})
        info.set_dependency_spec('a', DependencyType.REGULAR, '^1.1.0')
        assert info.raw_manifest['dependencies'] == {'a': '^1.1.0', 'b': '^2.0.0'}
        assert info.get_spec('a', DependencyType.REGULAR) == '^1.1.0'
        assert str(info.dependencies[DependencyType.REGULAR]['a']) == '^1.1.0'

    def test_set_dependency_spec_unknown(self, tmp_path: Path) -> None:
        """Rewriting an entry that does not exist is an error."""
        info = make_package(tmp_path, 'x')
        with pytest.raises(WorkspaceKitError) as exc_info:
            info.set_dependency_spec('a', DependencyType.REGULAR, '1.0.0')
        assert exc_info.value.code is E.PACKAGE_INVALID

    def test_apply_update(self, tmp_path: Path) -> None:
        """Version and dependency rewrites land in the manifest."""
        info = make_package(tmp_path, 'x', dependencies={'a': '^1.0.0'})
        update = PackageUpdate(
            name='x',
            path=info.path,
            current_version=info.version,
            next_version=Version.parse('1.0.1'),
            reason=UpdateReason.propagation('a', 1),
            dependency_updates=[DependencyUpdate('a', DependencyType.REGULAR, '^1.0.0', '^1.1.0')],
        )
        info.apply_update(update)
        assert info.raw_manifest['version'] == '1.0.1'
        assert info.raw_manifest['dependencies']['a'] == '^1.1.0'

    def test_apply_update_wrong_package(self, tmp_path: Path) -> None:
        """An update for another package is refused."""
        info = make_package(tmp_path, 'x')
        update = PackageUpdate('y', info.path, info.version, Version.parse('2.0.0'), UpdateReason.direct())
        with pytest.raises(WorkspaceKitError):
            info.apply_update(update)

    def test_render_keeps_key_order(self, tmp_path: Path) -> None:
        """Rendering keeps unknown keys and their order."""
        info = make_package(tmp_path, 'x', scripts={'build': 'tsc'}, dependencies={'a': '1.0.0'})
        info.set_version(Version.parse('2.0.0'))
        text = render_manifest(info)
        assert text.endswith('}\n')
        assert list(json.loads(text)) == ['name', 'version', 'scripts', 'dependencies']
        assert json.loads(text)['version'] == '2.0.0'


class TestDiskIO:
    """Tests for load_package_info() and write_package_info()."""

    @pytest.mark.asyncio()
    async def test_load_and_write(self, tmp_path: Path) -> None:
        """A manifest survives a load, edit and write."""
        pkg_dir = tmp_path / 'packages' / 'core'
        pkg_dir.mkdir(parents=True)
        path = pkg_dir / 'package.json'
        path.write_text(json.dumps(manifest('core', '1.0.0', dependencies={'a': '^1.0.0'})))

        info = await load_package_info(path, tmp_path)
        assert info.relative_path == 'packages/core'
        info.set_version(Version.parse('1.1.0'))
        await write_package_info(info)

        data = json.loads(path.read_text())
        assert data['version'] == '1.1.0'
        assert data['dependencies'] == {'a': '^1.0.0'}

    @pytest.mark.asyncio()
    async def test_invalid_json(self, tmp_path: Path) -> None:
        """Malformed JSON raises PACKAGE_INVALID_MANIFEST."""
        path = tmp_path / 'package.json'
        path.write_text('{not json')
        with pytest.raises(WorkspaceKitError) as exc_info:
            await load_package_info(path, tmp_path)
        assert exc_info.value.code is E.PACKAGE_INVALID_MANIFEST

    @pytest.mark.asyncio()
    async def test_missing_file(self, tmp_path: Path) -> None:
        """A missing manifest raises IO_READ_FAILED."""
        with pytest.raises(WorkspaceKitError) as exc_info:
            await load_package_info(tmp_path / 'package.json', tmp_path)
        assert exc_info.value.code is E.IO_READ_FAILED

    @pytest.mark.asyncio()
    async def test_read_manifest_rejects_non_object(self, tmp_path: Path) -> None:
        """A JSON array is not a manifest."""
        path = tmp_path / 'package.json'
        path.write_text('[]')
        with pytest.raises(WorkspaceKitError) as exc_info:
            await read_manifest(path)
        assert exc_info.value.code is E.PACKAGE_INVALID_MANIFEST
