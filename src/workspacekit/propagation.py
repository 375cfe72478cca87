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

"""Carry version bumps from changed packages to their dependents.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Propagation             │ core got a new version, so everything     │
    │                         │ that depends on core gets a small bump    │
    │                         │ too, then everything that depends on      │
    │                         │ those, and so on.                          │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Level                   │ One step outward from the direct changes. │
    │                         │ Walking stops after ``max_depth`` levels.  │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Spec rewrite            │ ``"core": "^1.0.0"`` becomes               │
    │                         │ ``"core": "^1.1.0"``: same operator, new  │
    │                         │ version.                                   │
    └─────────────────────────┴────────────────────────────────────────────┘

Walk (breadth-first, each package bumped at most once)::

    level 0        level 1          level 2
    ┌──────┐      ┌──────┐         ┌──────┐
    │ core │ ───→ │  a   │ ──────→ │ app  │   triggered_by = a
    │minor │  ┌─→ │patch │    ┌──→ │patch │   (first edge wins)
    └──────┘  │   └──────┘    │    └──────┘
              │   ┌──────┐    │
              └─→ │  b   │ ───┘   b → app is ignored: app is
                  │patch │        already processed
                  └──────┘

An edge carries the bump only if its section is enabled in
:class:`~workspacekit.config.DependencyConfig` and its spec does not use
a protocol configured to be skipped (``workspace:``, ``file:``,
``link:``, ``portal:``). Optional dependencies never propagate.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from workspacekit.errors import E, WorkspaceKitError
from workspacekit.graph import DependencyGraph, dependency_target
from workspacekit.logging import get_logger
from workspacekit.package import DependencyType, PackageInfo
from workspacekit.resolution import DependencyUpdate, PackageUpdate, UpdateReason, VersionResolution
from workspacekit.version import Version, VersionBump, parse_bump, preserve_range_operator

if TYPE_CHECKING:
    from collections.abc import Iterator

    from workspacekit.config import DependencyConfig

logger = get_logger(__name__)

_PROPAGATION_BUMPS = frozenset({VersionBump.MAJOR, VersionBump.MINOR, VersionBump.PATCH, VersionBump.NONE})


def parse_propagation_bump(text: str) -> VersionBump:
    """Parse the ``propagation_bump`` setting.

    Raises:
        WorkspaceKitError: ``VERSION_INVALID_BUMP`` for anything other
            than major, minor, patch or none.
    """
    bump = parse_bump(text)
    if bump not in _PROPAGATION_BUMPS:
        raise WorkspaceKitError(
            code=E.VERSION_INVALID_BUMP,
            message=f"Invalid propagation bump '{text}'",
            hint='Use one of: major, minor, patch, none.',
        )
    return bump


class DependencyPropagator:
    """Extend a resolution with the updates its direct changes imply.

    Args:
        graph: Dependency graph of the workspace.
        packages: Workspace packages by name.
        config: Propagation rules.
    """

    def __init__(
        self,
        graph: DependencyGraph,
        packages: Mapping[str, PackageInfo],
        config: DependencyConfig,
    ) -> None:
        """Initialize with the graph, the package map and the rules."""
        self._graph = graph
        self._packages = packages
        self._config = config

    def _package(self, name: str) -> PackageInfo:
        info = self._packages.get(name)
        if info is None:
            raise WorkspaceKitError(
                code=E.PACKAGE_NOT_FOUND,
                message=f"Package '{name}' is in the dependency graph but not in the workspace",
            )
        return info

    def _declarations(self, info: PackageInfo) -> Iterator[tuple[str, str, str, DependencyType]]:
        """Yield ``(target, name, spec, dep_type)``; ``target`` matches the graph's edge target."""
        for name, spec, dep_type in info.all_dependencies():
            source = info.dependencies.get(dep_type, {}).get(name)
            yield dependency_target(name, source), name, spec, dep_type

    def should_propagate(self, info: PackageInfo, changed: str) -> bool:
        """Whether a change to ``changed`` should bump ``info``.

        True as soon as one declaration of ``changed`` in ``info`` sits in
        an enabled section and uses a protocol that is not skipped.
        """
        for target, _name, spec, dep_type in self._declarations(info):
            if target != changed:
                continue
            if not self._config.propagates(dep_type):
                continue
            if self._config.skips_spec(spec):
                continue
            return True
        return False

    def propagate(self, resolution: VersionResolution) -> VersionResolution:
        """Add propagated updates and dependency rewrites to ``resolution``.

        The resolution is modified in place and returned.
        """
        bump = self._config.propagation_bump
        updated: dict[str, Version] = {u.name: u.next_version for u in resolution.updates}
        processed: set[str] = set(updated)
        current = list(updated)
        depth = 0

        while current and depth < self._config.max_depth:
            following: list[str] = []
            for changed in current:
                for dependent in self._graph.get_dependents(changed):
                    if dependent in processed:
                        continue
                    info = self._package(dependent)
                    if not self.should_propagate(info, changed):
                        logger.debug('propagation_skipped', package=dependent, dependency=changed)
                        continue
                    next_version = info.version.bump(bump)
                    resolution.add(
                        PackageUpdate(
                            name=dependent,
                            path=info.path,
                            current_version=info.version,
                            next_version=next_version,
                            reason=UpdateReason.propagation(changed, depth + 1),
                        )
                    )
                    if next_version != info.version:
                        updated[dependent] = next_version
                    processed.add(dependent)
                    following.append(dependent)
                    logger.debug(
                        'propagated',
                        package=dependent,
                        triggered_by=changed,
                        depth=depth + 1,
                        next_version=str(next_version),
                    )
            current = following
            depth += 1

        if current:
            logger.info('propagation_depth_limit_reached', max_depth=self._config.max_depth, pending=current)

        self.update_dependency_specs(resolution, updated)
        logger.info(
            'propagation_complete',
            updates=len(resolution.updates),
            propagated=len(resolution.propagated_updates()),
            dependency_updates=resolution.dependency_update_count(),
        )
        return resolution

    def update_dependency_specs(self, resolution: VersionResolution, updated: Mapping[str, Version]) -> None:
        """Fill in the spec rewrites of every update in ``resolution``.

        Every declaration of an updated package is rewritten with its range
        operator kept, unless its protocol is skipped. Specs that already
        track the local version (``workspace:*``, ``workspace:^``) come out
        unchanged and produce no rewrite.
        """
        for update in resolution.updates:
            info = self._package(update.name)
            already = {(d.name, d.dep_type) for d in update.dependency_updates}
            for target, dep_name, old_spec, dep_type in self._declarations(info):
                if target not in updated or (dep_name, dep_type) in already:
                    continue
                if self._config.skips_spec(old_spec):
                    continue
                new_spec = preserve_range_operator(old_spec, updated[target])
                if new_spec != old_spec:
                    update.dependency_updates.append(DependencyUpdate(dep_name, dep_type, old_spec, new_spec))


__all__ = [
    'DependencyPropagator',
    'parse_propagation_bump',
]
