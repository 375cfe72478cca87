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

"""Workspace discovery and package queries.

A :class:`Workspace` owns the list of :class:`PackageInfo` values for one
monorepo root. Discovery globs for ``package.json`` files, parses them
concurrently, and swaps the result in only once every manifest parsed,
so a failed or cancelled discovery leaves the previous state intact.

Discovery pipeline::

    include globs ──→ drop node_modules ──→ drop excludes ──→ parse (gather)
         │                                                       │
    "packages/*/package.json"                      merged in glob order,
                                                   duplicate names fatal

Usage::

    from workspacekit.config import load_config
    from workspacekit.workspace import Workspace

    ws = Workspace.from_config(load_config(root))
    await ws.discover_packages_with_options()
    for name in ws.affected_packages(['core']):
        print(name)
"""

from __future__ import annotations

import asyncio
import fnmatch
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from workspacekit.config import MonorepoConfig, PackageManager
from workspacekit.dependency_source import ProjectContext
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.graph import DependencyGraph, ValidationReport, build_graph
from workspacekit.logging import get_logger
from workspacekit.package import PackageInfo, package_info_from_manifest, read_manifest, write_package_info

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscoveryOptions:
    """Knobs for one discovery run.

    Attributes:
        extra_exclude: Exclude globs applied on top of the workspace's.
        include_private: Keep packages marked ``"private": true``.
        include_root: Keep the root ``package.json`` if an include glob
            matches it and it has a name.
    """

    extra_exclude: list[str] = field(default_factory=list)
    include_private: bool = True
    include_root: bool = True


@dataclass(frozen=True)
class ValidationOptions:
    """Which graph checks to run.

    Attributes:
        check_cycles: Report dependency cycles.
        check_missing: Report dependencies on unknown packages.
        check_conflicts: Report unsatisfiable version requirements.
        treat_unresolved_as_external: Only report a missing dependency
            when it uses a workspace-family protocol; anything else is
            assumed to come from the registry.
    """

    check_cycles: bool = True
    check_missing: bool = True
    check_conflicts: bool = True
    treat_unresolved_as_external: bool = True


def _excluded(relative: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(relative, pattern) for pattern in patterns)


class Workspace:
    """The packages of one monorepo root.

    Args:
        root: Workspace root directory.
        include: Manifest globs relative to ``root``.
        exclude: Globs matched against manifest paths relative to ``root``.
        package_manager: Package manager hint.
        context: Dependency parsing context.
    """

    def __init__(
        self,
        root: Path,
        include: Sequence[str] = ('packages/*/package.json',),
        exclude: Sequence[str] = (),
        package_manager: PackageManager | None = None,
        context: ProjectContext = ProjectContext.MONOREPO,
    ) -> None:
        """Create an empty workspace; call a discovery method to populate it."""
        self.root = root
        self.include = list(include)
        self.exclude = list(exclude)
        self.package_manager = package_manager
        self.context = context
        self._packages: list[PackageInfo] = []
        self._by_name: dict[str, PackageInfo] = {}
        self._graph: DependencyGraph | None = None

    @classmethod
    def from_config(cls, config: MonorepoConfig) -> Workspace:
        """Create a workspace from a loaded :class:`MonorepoConfig`."""
        return cls(
            root=config.root,
            include=config.include,
            exclude=config.exclude,
            package_manager=config.package_manager,
            context=config.context,
        )

    @classmethod
    def from_packages(cls, root: Path, packages: Sequence[PackageInfo]) -> Workspace:
        """Create a workspace around already-parsed packages."""
        ws = cls(root)
        ws._install(list(packages))
        return ws

    @property
    def packages(self) -> list[PackageInfo]:
        """Packages in discovery order."""
        return list(self._packages)

    @property
    def graph(self) -> DependencyGraph:
        """Dependency graph of the current packages, built on first use."""
        if self._graph is None:
            self._graph = build_graph(self._packages)
        return self._graph

    def package_map(self) -> dict[str, PackageInfo]:
        """Packages by name."""
        return dict(self._by_name)

    def _install(self, packages: list[PackageInfo]) -> None:
        by_name: dict[str, PackageInfo] = {}
        for info in packages:
            if info.name in by_name:
                raise WorkspaceKitError(
                    code=E.WORKSPACE_DUPLICATE_PACKAGE,
                    message=(
                        f"Duplicate package name '{info.name}' in {by_name[info.name].relative_path} "
                        f'and {info.relative_path}'
                    ),
                    hint='Each package in the workspace must have a unique name.',
                )
            by_name[info.name] = info
        self._packages = packages
        self._by_name = by_name
        self._graph = None

    def _manifest_paths(self, options: DiscoveryOptions) -> list[Path]:
        exclude = [*self.exclude, *options.extra_exclude]
        seen: set[Path] = set()
        paths: list[Path] = []
        for pattern in self.include:
            pattern = pattern[2:] if pattern.startswith('./') else pattern
            for candidate in sorted(self.root.glob(pattern)):
                if not candidate.is_file():
                    continue
                relative = candidate.relative_to(self.root).as_posix()
                if 'node_modules' in candidate.relative_to(self.root).parts:
                    continue
                if _excluded(relative, exclude):
                    logger.debug('manifest_excluded', path=relative)
                    continue
                if candidate in seen:
                    continue
                seen.add(candidate)
                paths.append(candidate)
        return paths

    async def _load(self, manifest_path: Path, options: DiscoveryOptions) -> PackageInfo | None:
        data = await read_manifest(manifest_path)
        is_root = manifest_path.parent == self.root
        if is_root and (not options.include_root or not data.get('name')):
            logger.debug('skipped_root_manifest', path=str(manifest_path))
            return None
        info = package_info_from_manifest(data, manifest_path, self.root, self.context)
        if info.private and not options.include_private:
            logger.debug('skipped_private_package', name=info.name)
            return None
        return info

    async def discover_packages_with_options(self, options: DiscoveryOptions | None = None) -> list[PackageInfo]:
        """Find and parse every package matching the include globs.

        Raises:
            WorkspaceKitError: ``WORKSPACE_NOT_FOUND`` if the root does not
                exist, ``WORKSPACE_DUPLICATE_PACKAGE`` for a repeated name,
                or any manifest parse error.
        """
        options = options or DiscoveryOptions()
        if not self.root.is_dir():
            raise WorkspaceKitError(
                code=E.WORKSPACE_NOT_FOUND,
                message=f'Workspace root {self.root} is not a directory',
            )
        paths = self._manifest_paths(options)
        loaded = await asyncio.gather(*(self._load(path, options) for path in paths))
        packages = [info for info in loaded if info is not None]
        self._install(packages)

        parse_errors = sum(len(p.parse_errors) for p in packages)
        if parse_errors:
            logger.warning('dependency_parse_errors', count=parse_errors)
        logger.info('discovered_packages', count=len(packages), root=str(self.root))
        return self.packages

    async def discover_packages(self) -> list[PackageInfo]:
        """Discover with default options."""
        return await self.discover_packages_with_options()

    def get_package(self, name: str) -> PackageInfo | None:
        """Return the package called ``name``, or None."""
        return self._by_name.get(name)

    def require_package(self, name: str) -> PackageInfo:
        """Return the package called ``name``.

        Raises:
            WorkspaceKitError: ``PACKAGE_NOT_FOUND``.
        """
        info = self._by_name.get(name)
        if info is None:
            suggestion = ''
            if self._by_name:
                close = sorted(self._by_name, key=lambda n: (n.lower() != name.lower(), n))[:1]
                suggestion = f" Known packages include '{close[0]}'."
            raise WorkspaceKitError(
                code=E.PACKAGE_NOT_FOUND,
                message=f"Package '{name}' is not part of the workspace",
                hint=f'Names come from the "name" field of each package.json.{suggestion}',
            )
        return info

    def sorted_packages(self) -> list[PackageInfo]:
        """Non-root packages with dependencies before dependents.

        Falls back to discovery order if the graph has a cycle.
        """
        try:
            order = self.graph.toposort()
        except WorkspaceKitError as exc:
            if exc.code is not E.GRAPH_CYCLE_DETECTED:
                raise
            logger.warning('toposort_fallback_to_discovery_order', reason=exc.info.message)
            order = [p.name for p in self._packages]
        return [self._by_name[name] for name in order if not self._by_name[name].is_root]

    def affected_packages(self, changed: Sequence[str]) -> list[str]:
        """``changed`` plus every package that transitively depends on one of them.

        Returned in BFS order starting from ``changed``.
        """
        for name in changed:
            self.require_package(name)
        return self.graph.dependents_closure(changed)

    def dependents_of(self, name: str) -> list[str]:
        """Packages that directly depend on ``name``."""
        return self.graph.get_dependents(name)

    def dependencies_of(self, name: str) -> list[str]:
        """Workspace packages ``name`` directly depends on."""
        return self.graph.get_dependencies(name)

    def validate_with_options(self, options: ValidationOptions | None = None) -> ValidationReport:
        """Run the selected graph checks."""
        options = options or ValidationOptions()
        graph = self.graph
        report = ValidationReport(
            cycles=graph.detect_circular_dependencies() if options.check_cycles else [],
            missing=(
                graph.find_missing_dependencies(workspace_only=options.treat_unresolved_as_external)
                if options.check_missing
                else []
            ),
            conflicts=graph.find_version_conflicts_for_package() if options.check_conflicts else [],
        )
        logger.info(
            'workspace_validated',
            cycles=len(report.cycles),
            missing=len(report.missing),
            conflicts=len(report.conflicts),
        )
        return report

    def invalidate(self) -> None:
        """Drop the cached graph after packages were edited in place."""
        self._graph = None

    async def write_changes(self) -> list[Path]:
        """Write every package back to its manifest.

        Returns:
            The manifest paths written.
        """
        for info in self._packages:
            await write_package_info(info)
        self._graph = None
        logger.info('manifests_written', count=len(self._packages))
        return [info.manifest_path for info in self._packages]


__all__ = [
    'DiscoveryOptions',
    'ValidationOptions',
    'Workspace',
]
