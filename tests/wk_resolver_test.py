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

"""Tests for workspacekit.resolver module."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from workspacekit import resolver as resolver_mod
from workspacekit.changes import Changeset
from workspacekit.config import DependencyConfig, MonorepoConfig
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import configure_logging
from workspacekit.resolution import UpdateReasonKind
from workspacekit.resolver import (
    ApplySummary,
    VersionResolver,
    apply_resolution,
    resolve_independent,
    resolve_versions,
)
from workspacekit.snapshot import SnapshotContext
from workspacekit.version import Version, VersionBump, VersioningStrategy
from workspacekit.workspace import Workspace

from tests._fakes import make_package, make_workspace, manifest, write_workspace

configure_logging(quiet=True)

DIAMOND = [
    manifest('core'),
    manifest('a', dependencies={'core': '^1.0.0'}),
    manifest('b', dependencies={'core': '^1.0.0'}),
    manifest('app', dependencies={'a': '^1.0.0', 'b': '^1.0.0'}),
]


async def _disk_workspace(root: Path, manifests: list[dict[str, object]]) -> Workspace:
    write_workspace(root, manifests)  # type: ignore[arg-type]
    ws = Workspace(root)
    await ws.discover_packages()
    return ws


def _read(root: Path, name: str) -> dict[str, object]:
    return json.loads((root / 'packages' / name / 'package.json').read_text())


def _unified(root: Path) -> MonorepoConfig:
    return MonorepoConfig(root=root, strategy=VersioningStrategy.UNIFIED)


# ---------------------------------------------------------------------------
# Independent strategy
# ---------------------------------------------------------------------------


class TestIndependent:
    """Tests for the independent strategy."""

    @pytest.mark.asyncio()
    async def test_diamond(self, tmp_path: Path) -> None:
        """A minor core bump yields one direct and three propagated updates."""
        ws = await _disk_workspace(tmp_path, DIAMOND)
        resolution = VersionResolver(ws).resolve(Changeset(packages=['core'], bump=VersionBump.MINOR))
        versions = {u.name: str(u.next_version) for u in resolution.updates}
        assert versions == {'core': '1.1.0', 'a': '1.0.1', 'b': '1.0.1', 'app': '1.0.1'}
        assert [u.name for u in resolution.direct_updates()] == ['core']
        assert len(resolution.propagated_updates()) == 3
        assert resolution.circular_dependencies == []

    def test_names_deduplicated(self, tmp_path: Path) -> None:
        """A package named twice is bumped once."""
        core = make_package(tmp_path, 'core')
        resolution = resolve_independent(
            Changeset(packages=['core', 'core'], bump=VersionBump.PATCH),
            {'core': core},
        )
        assert resolution.names == ['core']

    def test_unknown_package(self, tmp_path: Path) -> None:
        """Unknown names fail before anything is computed."""
        ws = make_workspace(tmp_path, [make_package(tmp_path, 'core')])
        with pytest.raises(WorkspaceKitError) as exc_info:
            VersionResolver(ws).resolve(Changeset(packages=['core', 'nope'], bump=VersionBump.PATCH))
        assert exc_info.value.code is E.PACKAGE_NOT_FOUND

    def test_workspace_protocol_skipped(self, tmp_path: Path) -> None:
        """A workspace:* consumer of a major bump is left alone."""
        ws = make_workspace(
            tmp_path,
            [
                make_package(tmp_path, 'lib', '1.2.3'),
                make_package(tmp_path, 'consumer', dependencies={'lib': 'workspace:*'}),
            ],
        )
        resolution = VersionResolver(ws).resolve(Changeset(packages=['lib'], bump=VersionBump.MAJOR))
        assert [(u.name, str(u.next_version)) for u in resolution.updates] == [('lib', '2.0.0')]
        assert resolution.updates[0].reason.kind is UpdateReasonKind.DIRECT

    def test_cycle_reported_not_raised(self, tmp_path: Path) -> None:
        """A cycle is listed on the resolution and each member bumped once."""
        ws = make_workspace(
            tmp_path,
            [
                make_package(tmp_path, 'x', dependencies={'y': '^1.0.0'}),
                make_package(tmp_path, 'y', dependencies={'x': '^1.0.0'}),
            ],
        )
        resolution = VersionResolver(ws).resolve(Changeset(packages=['x'], bump=VersionBump.PATCH))
        assert [(u.name, str(u.next_version)) for u in resolution.updates] == [('x', '1.0.1'), ('y', '1.0.1')]
        assert [c.packages for c in resolution.circular_dependencies] == [['x', 'y']]

    def test_snapshot(self, tmp_path: Path) -> None:
        """Snapshot bumps use the configured template."""
        ws = make_workspace(tmp_path, [make_package(tmp_path, 'core', '1.2.0')])
        config = MonorepoConfig(root=tmp_path, snapshot_format='{version}-{branch}.{sha}')
        ctx = SnapshotContext(branch='feat/x', commit='abc123def456', timestamp=0)
        resolution = resolve_versions(
            ws,
            Changeset(packages=['core'], bump=VersionBump.SNAPSHOT),
            config,
            snapshot=ctx,
        )
        assert str(resolution.updates[0].next_version) == '1.2.0-feat-x.abc123d'

    def test_propagation_config_is_used(self, tmp_path: Path) -> None:
        """The resolver hands its dependency config to the propagator."""
        ws = make_workspace(
            tmp_path,
            [make_package(tmp_path, 'core'), make_package(tmp_path, 'app', dependencies={'core': '^1.0.0'})],
        )
        config = MonorepoConfig(root=tmp_path, dependency=DependencyConfig(propagation_bump=VersionBump.MINOR))
        resolution = VersionResolver(ws, config).resolve(Changeset(packages=['core'], bump=VersionBump.MAJOR))
        assert str(resolution.get('app').next_version) == '1.1.0'  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Unified strategy
# ---------------------------------------------------------------------------


class TestUnified:
    """Tests for the unified strategy."""

    def test_highest_version_bumped_once(self, tmp_path: Path) -> None:
        """Every package lands on max(current).bump()."""
        ws = make_workspace(
            tmp_path,
            [
                make_package(tmp_path, 'a', '1.0.0'),
                make_package(tmp_path, 'b', '2.1.3'),
                make_package(tmp_path, 'c', '0.9.0'),
            ],
        )
        resolver = VersionResolver(ws, _unified(tmp_path))
        assert resolver.strategy is VersioningStrategy.UNIFIED
        resolution = resolver.resolve(Changeset(packages=['a'], bump=VersionBump.MINOR))
        assert [(u.name, str(u.next_version), u.reason.kind) for u in resolution.updates] == [
            ('a', '2.2.0', UpdateReasonKind.DIRECT),
            ('b', '2.2.0', UpdateReasonKind.UNIFIED),
            ('c', '2.2.0', UpdateReasonKind.UNIFIED),
        ]
        assert len({u.next_version for u in resolution.updates}) == 1

    def test_specs_rewritten(self, tmp_path: Path) -> None:
        """Internal specs follow the shared version."""
        ws = make_workspace(
            tmp_path,
            [
                make_package(tmp_path, 'a', '1.0.0'),
                make_package(tmp_path, 'b', '1.0.0', dependencies={'a': '^1.0.0'}),
            ],
        )
        resolution = VersionResolver(ws, _unified(tmp_path)).resolve(
            Changeset(packages=['a'], bump=VersionBump.MAJOR),
        )
        (rewrite,) = resolution.get('b').dependency_updates  # type: ignore[union-attr]
        assert (rewrite.old_spec, rewrite.new_spec) == ('^1.0.0', '^2.0.0')
        assert not resolution.propagated_updates()


# ---------------------------------------------------------------------------
# Empty changesets
# ---------------------------------------------------------------------------


class TestEmptyChangeset:
    """An empty changeset changes nothing."""

    @pytest.mark.parametrize('strategy', list(VersioningStrategy))
    def test_empty(self, tmp_path: Path, strategy: VersioningStrategy) -> None:
        """Both strategies return an empty resolution."""
        ws = make_workspace(tmp_path, [make_package(tmp_path, 'core')])
        config = MonorepoConfig(root=tmp_path, strategy=strategy)
        assert VersionResolver(ws, config).resolve(Changeset()).is_empty

    @pytest.mark.asyncio()
    async def test_apply_then_rediscover(self, tmp_path: Path) -> None:
        """After applying a resolution, an empty changeset is still a no-op."""
        ws = await _disk_workspace(tmp_path, DIAMOND)
        resolution = VersionResolver(ws).resolve(Changeset(packages=['core'], bump=VersionBump.MINOR))
        await apply_resolution(ws, resolution)

        again = Workspace(tmp_path)
        await again.discover_packages()
        assert again.require_package('core').version == Version.parse('1.1.0')
        assert VersionResolver(again).resolve(Changeset()).is_empty


# ---------------------------------------------------------------------------
# Applying
# ---------------------------------------------------------------------------


class TestApplyResolution:
    """Tests for apply_resolution()."""

    @pytest.mark.asyncio()
    async def test_dry_run_writes_nothing(self, tmp_path: Path) -> None:
        """A dry run reports the files but leaves disk and memory alone."""
        ws = await _disk_workspace(tmp_path, DIAMOND)
        before = (tmp_path / 'packages' / 'core' / 'package.json').read_text()
        resolution = VersionResolver(ws).resolve(Changeset(packages=['core'], bump=VersionBump.MINOR))
        result = await apply_resolution(ws, resolution, dry_run=True)
        assert result.dry_run
        assert len(result.modified_files) == 4
        assert (tmp_path / 'packages' / 'core' / 'package.json').read_text() == before
        assert ws.require_package('core').version == Version.parse('1.0.0')
        assert result.summary == ApplySummary(direct_updates=1, propagated_updates=3, dependency_updates=4)

    @pytest.mark.asyncio()
    async def test_writes_versions_and_specs(self, tmp_path: Path) -> None:
        """Manifests and in-memory packages carry the new versions."""
        ws = await _disk_workspace(tmp_path, DIAMOND)
        resolution = VersionResolver(ws).resolve(Changeset(packages=['core'], bump=VersionBump.MINOR))
        result = await apply_resolution(ws, resolution)
        assert not result.dry_run
        assert _read(tmp_path, 'core')['version'] == '1.1.0'
        assert _read(tmp_path, 'a') == {'name': 'a', 'version': '1.0.1', 'dependencies': {'core': '^1.1.0'}}
        assert _read(tmp_path, 'app')['dependencies'] == {'a': '^1.0.1', 'b': '^1.0.1'}
        assert ws.require_package('app').version == Version.parse('1.0.1')

    @pytest.mark.asyncio()
    async def test_fail_on_circular(self, tmp_path: Path) -> None:
        """With fail_on_circular a cyclic resolution is refused before writing."""
        ws = await _disk_workspace(
            tmp_path,
            [manifest('x', dependencies={'y': '^1.0.0'}), manifest('y', dependencies={'x': '^1.0.0'})],
        )
        resolution = VersionResolver(ws).resolve(Changeset(packages=['x'], bump=VersionBump.PATCH))
        with pytest.raises(WorkspaceKitError) as exc_info:
            await apply_resolution(ws, resolution, fail_on_circular=True)
        assert exc_info.value.code is E.GRAPH_CYCLE_DETECTED
        assert _read(tmp_path, 'x')['version'] == '1.0.0'

        applied = await apply_resolution(ws, resolution)
        assert applied.summary.circular_dependencies == 1

    @pytest.mark.asyncio()
    async def test_failed_write_restores_manifests(self, tmp_path: Path) -> None:
        """A write that dies halfway leaves every manifest as it was."""
        ws = await _disk_workspace(tmp_path, DIAMOND)
        resolution = VersionResolver(ws).resolve(Changeset(packages=['core'], bump=VersionBump.MINOR))
        originals = {p.name: p.manifest_path.read_text() for p in ws.packages}
        real_write = resolver_mod.write_file
        calls: list[Path] = []

        async def flaky(path: Path, content: str) -> None:
            calls.append(path)
            if len(calls) == 2:
                path.write_text(content[:10])
                raise WorkspaceKitError(E.IO_WRITE_FAILED, 'disk full')
            await real_write(path, content)

        with patch.object(resolver_mod, 'write_file', flaky):
            with pytest.raises(WorkspaceKitError) as exc_info:
                await apply_resolution(ws, resolution)
        assert exc_info.value.code is E.IO_WRITE_FAILED
        for info in ws.packages:
            assert info.manifest_path.read_text() == originals[info.name], f'{info.name} not restored'
            assert info.version == Version.parse('1.0.0')

    @pytest.mark.asyncio()
    async def test_unknown_package(self, tmp_path: Path) -> None:
        """A resolution for another workspace is rejected."""
        ws = await _disk_workspace(tmp_path, [manifest('core')])
        other = make_workspace(tmp_path, [make_package(tmp_path, 'other')])
        resolution = VersionResolver(other).resolve(Changeset(packages=['other'], bump=VersionBump.PATCH))
        with pytest.raises(WorkspaceKitError) as exc_info:
            await apply_resolution(ws, resolution, dry_run=True)
        assert exc_info.value.code is E.PACKAGE_NOT_FOUND
