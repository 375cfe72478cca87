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

"""Dependency graph over workspace packages.

Nodes live in an arena and are addressed by integer id; edges and the
name index refer to ids, never to :class:`PackageInfo` objects, so the
workspace, the graph and the change tracker all agree on what "the same
package" is.

Key Concepts (ELI5)::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                            │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Resolved node           │ A package that lives in this workspace.     │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Placeholder node        │ A name something depends on that is not in │
    │                         │ the workspace (react, lodash...). Marked   │
    │                         │ ``external``.                               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Edge                    │ "A depends on B", tagged with the manifest │
    │                         │ section and the spec string.               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Cycle                   │ A group of packages that (transitively)    │
    │                         │ depend on each other. Reported, not        │
    │                         │ raised.                                     │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Version conflict        │ Two packages ask for the same dependency   │
    │                         │ with ranges no single version satisfies.   │
    └─────────────────────────┴─────────────────────────────────────────────┘

Edge direction::

    app ──(regular, ^1.0.0)──→ core
     │                          ↑
     └──(dev, workspace:*)──→ testing ──(peer, ^1.0.0)──┘

    get_dependents('core') == ['app', 'testing']

Cycle severity is taken from the strongest edge inside the cycle::

    PRODUCTION (dependencies) > DEV > PEER > OPTIONAL

Usage::

    from workspacekit.graph import build_graph

    graph = build_graph(workspace.packages)
    for cycle in graph.detect_circular_dependencies():
        print(cycle.severity.value, ' → '.join(cycle.packages))
    order = graph.toposort()
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

import semantic_version

from workspacekit.dependency_source import (
    DependencySource,
    JsrSource,
    NpmSource,
    RegistrySource,
    ScopedSource,
    VersionReq,
    WorkspaceAliasSource,
    WorkspaceConstraintKind,
    WorkspaceSource,
)
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import get_logger
from workspacekit.package import DependencyType, PackageInfo
from workspacekit.version import Version

logger = get_logger(__name__)


class CycleSeverity(str, Enum):
    """How much a cycle matters, by the strongest edge it contains."""

    PRODUCTION = 'production'
    DEV = 'dev'
    PEER = 'peer'
    OPTIONAL = 'optional'


_SEVERITY_BY_TYPE: dict[DependencyType, CycleSeverity] = {
    DependencyType.REGULAR: CycleSeverity.PRODUCTION,
    DependencyType.DEV: CycleSeverity.DEV,
    DependencyType.PEER: CycleSeverity.PEER,
    DependencyType.OPTIONAL: CycleSeverity.OPTIONAL,
}

# Lower rank is more severe.
_SEVERITY_RANK: dict[CycleSeverity, int] = {severity: rank for rank, severity in enumerate(CycleSeverity)}


@dataclass(frozen=True)
class PackageNode:
    """A graph node.

    Attributes:
        id: Arena index.
        name: Package name.
        version: Version of a resolved node; ``None`` for placeholders.
        external: True for placeholder nodes outside the workspace.
    """

    id: int
    name: str
    version: Version | None = None
    external: bool = False


@dataclass(frozen=True)
class DependencyEdge:
    """``source`` depends on ``target``.

    Attributes:
        source: Node id of the dependent.
        target: Node id of the dependency.
        kind: Manifest section of the declaration.
        spec: Raw spec string.
        dependency: Parsed form of ``spec``.
    """

    source: int
    target: int
    kind: DependencyType
    spec: str
    dependency: DependencySource


@dataclass(frozen=True)
class Cycle:
    """A strongly connected group of packages.

    Attributes:
        packages: Member names in node order.
        severity: Severity of the strongest edge inside the group.
    """

    packages: list[str]
    severity: CycleSeverity

    def __str__(self) -> str:
        """Render as ``a → b → a``."""
        return ' → '.join([*self.packages, self.packages[0]])


@dataclass(frozen=True)
class MissingDependency:
    """An edge whose target is not a workspace package."""

    dependent: str
    missing: str
    kind: DependencyType
    spec: str


@dataclass(frozen=True)
class DependencyUsage:
    """One package's requirement on a shared dependency."""

    package: str
    spec: str


@dataclass(frozen=True)
class VersionConflict:
    """Requirements on ``dependency_name`` that no single version satisfies."""

    dependency_name: str
    usages: list[DependencyUsage]


@dataclass
class ValidationReport:
    """Findings of a graph validation pass.

    Cycles and conflicts are warnings; missing workspace dependencies
    are errors.
    """

    cycles: list[Cycle] = field(default_factory=list)
    missing: list[MissingDependency] = field(default_factory=list)
    conflicts: list[VersionConflict] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Whether any dependency points at a package that does not exist."""
        return bool(self.missing)

    @property
    def has_warnings(self) -> bool:
        """Whether there are cycles or version conflicts."""
        return bool(self.cycles or self.conflicts)

    @property
    def is_valid(self) -> bool:
        """Whether the report is completely clean."""
        return not (self.has_errors or self.has_warnings)

    def summary(self) -> list[str]:
        """One human-readable line per finding."""
        lines = [f'cycle ({c.severity.value}): {c}' for c in self.cycles]
        lines.extend(f"missing: '{m.dependent}' depends on unknown '{m.missing}' ({m.spec})" for m in self.missing)
        for conflict in self.conflicts:
            usages = ', '.join(f'{u.package}={u.spec}' for u in conflict.usages)
            lines.append(f"conflict: '{conflict.dependency_name}' required as {usages}")
        return lines


def requirement_of(source: DependencySource) -> VersionReq | None:
    """Return the version requirement a source carries, if any.

    Path, git and URL sources and the ``workspace:*``/``^``/``~``
    shorthands carry none.
    """
    if isinstance(source, (RegistrySource, ScopedSource, NpmSource, JsrSource)):
        return None if source.req.is_dist_tag else source.req
    if isinstance(source, (WorkspaceSource, WorkspaceAliasSource)):
        if source.constraint.kind is WorkspaceConstraintKind.RANGE:
            return source.constraint.req
    return None


def dependency_target(name: str, source: DependencySource | None) -> str:
    """The package a manifest entry points at: the alias for ``workspace:<alias>@...``."""
    if isinstance(source, WorkspaceAliasSource):
        return source.alias
    return name


class DependencyGraph:
    """Arena-backed directed multigraph of package dependencies."""

    def __init__(self) -> None:
        """Create an empty graph."""
        self.nodes: list[PackageNode] = []
        self.edges: list[DependencyEdge] = []
        self._index: dict[str, int] = {}
        self._out: dict[int, list[int]] = {}
        self._in: dict[int, list[int]] = {}

    def __len__(self) -> int:
        """Return the number of nodes, placeholders included."""
        return len(self.nodes)

    def __contains__(self, name: object) -> bool:
        """Return True if ``name`` is a node."""
        return name in self._index

    def _add_node(self, name: str, version: Version | None, *, external: bool) -> PackageNode:
        node = PackageNode(id=len(self.nodes), name=name, version=version, external=external)
        self.nodes.append(node)
        self._index[name] = node.id
        self._out[node.id] = []
        self._in[node.id] = []
        return node

    def add_package(self, name: str, version: Version) -> PackageNode:
        """Add a resolved node, upgrading an existing placeholder."""
        existing = self._index.get(name)
        if existing is not None:
            node = self.nodes[existing]
            if not node.external:
                raise WorkspaceKitError(
                    code=E.WORKSPACE_DUPLICATE_PACKAGE,
                    message=f"Package '{name}' added to the graph twice",
                )
            node = PackageNode(id=node.id, name=name, version=version)
            self.nodes[node.id] = node
            return node
        return self._add_node(name, version, external=False)

    def add_dependency(
        self,
        source: str,
        target: str,
        kind: DependencyType,
        spec: str,
        dependency: DependencySource,
    ) -> DependencyEdge:
        """Add an edge, creating a placeholder for an unknown target."""
        target_id = self._index.get(target)
        if target_id is None:
            target_id = self._add_node(target, None, external=True).id
        edge = DependencyEdge(self._index[source], target_id, kind, spec, dependency)
        self.edges.append(edge)
        self._out[edge.source].append(len(self.edges) - 1)
        self._in[edge.target].append(len(self.edges) - 1)
        return edge

    def node(self, name: str) -> PackageNode | None:
        """Return the node for ``name``."""
        node_id = self._index.get(name)
        return None if node_id is None else self.nodes[node_id]

    @property
    def package_names(self) -> list[str]:
        """Names of resolved nodes in insertion order."""
        return [n.name for n in self.nodes if not n.external]

    def outgoing(self, name: str) -> list[DependencyEdge]:
        """Edges declared by ``name``, in declaration order."""
        node_id = self._index.get(name)
        if node_id is None:
            return []
        return [self.edges[i] for i in self._out[node_id]]

    def incoming(self, name: str) -> list[DependencyEdge]:
        """Edges pointing at ``name``, in insertion order."""
        node_id = self._index.get(name)
        if node_id is None:
            return []
        return [self.edges[i] for i in self._in[node_id]]

    def get_dependents(self, name: str) -> list[str]:
        """Direct dependents of ``name``; empty for unknown names."""
        seen: dict[str, None] = {}
        for edge in self.incoming(name):
            seen.setdefault(self.nodes[edge.source].name, None)
        return list(seen)

    def get_dependencies(self, name: str, *, include_external: bool = False) -> list[str]:
        """Direct dependencies of ``name``."""
        seen: dict[str, None] = {}
        for edge in self.outgoing(name):
            target = self.nodes[edge.target]
            if include_external or not target.external:
                seen.setdefault(target.name, None)
        return list(seen)

    def dependents_closure(self, names: Iterable[str]) -> list[str]:
        """Seeds plus every transitive dependent, in BFS order."""
        order: list[str] = []
        seen: set[str] = set()
        queue: deque[str] = deque()
        for name in names:
            if name not in seen:
                seen.add(name)
                order.append(name)
                queue.append(name)
        while queue:
            for dependent in self.get_dependents(queue.popleft()):
                if dependent not in seen:
                    seen.add(dependent)
                    order.append(dependent)
                    queue.append(dependent)
        return order

    def detect_circular_dependencies(self) -> list[Cycle]:
        """Find every dependency cycle with Tarjan's SCC algorithm.

        An SCC of two or more nodes, or a node with an edge to itself,
        is a cycle. Returns an empty list for an acyclic graph.
        """
        index_of: dict[int, int] = {}
        lowlink: dict[int, int] = {}
        on_stack: set[int] = set()
        stack: list[int] = []
        components: list[list[int]] = []
        counter = 0

        for root in range(len(self.nodes)):
            if root in index_of:
                continue
            # Iterative DFS: (node, position in its out-edge list).
            work: list[tuple[int, int]] = [(root, 0)]
            index_of[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            while work:
                node, pos = work[-1]
                out = self._out[node]
                if pos < len(out):
                    work[-1] = (node, pos + 1)
                    succ = self.edges[out[pos]].target
                    if succ not in index_of:
                        index_of[succ] = lowlink[succ] = counter
                        counter += 1
                        stack.append(succ)
                        on_stack.add(succ)
                        work.append((succ, 0))
                    elif succ in on_stack:
                        lowlink[node] = min(lowlink[node], index_of[succ])
                    continue
                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])
                if lowlink[node] == index_of[node]:
                    component: list[int] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(sorted(component))

        cycles: list[Cycle] = []
        for component in sorted(components, key=lambda c: c[0]):
            members = set(component)
            internal = [
                self.edges[i] for n in component for i in self._out[n] if self.edges[i].target in members
            ]
            if len(component) == 1 and not internal:
                continue
            severity = min(
                (_SEVERITY_BY_TYPE[e.kind] for e in internal),
                key=_SEVERITY_RANK.__getitem__,
            )
            cycles.append(Cycle(packages=[self.nodes[n].name for n in component], severity=severity))

        if cycles:
            logger.warning('cycles_detected', count=len(cycles), cycles=[str(c) for c in cycles])
        else:
            logger.debug('no_cycles_detected')
        return cycles

    def find_missing_dependencies(self, *, workspace_only: bool = False) -> list[MissingDependency]:
        """Edges whose target is a placeholder.

        Args:
            workspace_only: Only report edges that use a workspace-family
                protocol, i.e. ones that can never resolve from a registry.
        """
        missing = []
        for edge in self.edges:
            target = self.nodes[edge.target]
            if not target.external:
                continue
            if workspace_only and not edge.dependency.is_workspace():
                continue
            missing.append(MissingDependency(self.nodes[edge.source].name, target.name, edge.kind, edge.spec))
        return missing

    def find_version_conflicts_for_package(self) -> list[VersionConflict]:
        """Group requirements per dependency and report unsatisfiable sets.

        A set of ranges has a common version iff one of them admits the
        smallest version of the intersection, which sits on some
        comparator bound: the bound itself, the next patch above an
        exclusive one, or ``0.0.0`` when nothing bounds from below. Those
        candidates plus the local version of a workspace package are
        tried; if none satisfies every requirement, the usages conflict.
        """
        conflicts: list[VersionConflict] = []
        for node in self.nodes:
            reqs: list[tuple[DependencyUsage, VersionReq]] = []
            for edge in self.incoming(node.name):
                req = requirement_of(edge.dependency)
                if req is not None:
                    reqs.append((DependencyUsage(self.nodes[edge.source].name, edge.spec), req))
            if len({str(req) for _, req in reqs}) < 2:
                continue
            specs = [req.to_npm_spec() for _, req in reqs]
            candidates = {semantic_version.Version('0.0.0')}
            if node.version is not None:
                candidates.add(node.version.to_semantic_version())
            for _, req in reqs:
                for bound in req.boundary_versions():
                    candidates.update((bound, bound.next_patch()))
            if any(all(spec is not None and spec.match(c) for spec in specs) for c in candidates):
                continue
            conflicts.append(VersionConflict(node.name, [usage for usage, _ in reqs]))

        if conflicts:
            logger.warning('version_conflicts_detected', count=len(conflicts))
        return conflicts

    def validate_package_dependencies(self, *, workspace_only: bool = True) -> ValidationReport:
        """Run cycle, missing-dependency and conflict checks into one report."""
        return ValidationReport(
            cycles=self.detect_circular_dependencies(),
            missing=self.find_missing_dependencies(workspace_only=workspace_only),
            conflicts=self.find_version_conflicts_for_package(),
        )

    def toposort(self) -> list[str]:
        """Order resolved packages so dependencies precede dependents.

        Kahn's algorithm; among ready packages the one added first wins,
        so the order is stable with respect to discovery order.

        Raises:
            WorkspaceKitError: ``GRAPH_CYCLE_DETECTED`` if the graph has
                a cycle.
        """
        local = [n.id for n in self.nodes if not n.external]
        deps: dict[int, set[int]] = {n: set() for n in local}
        for edge in self.edges:
            if not self.nodes[edge.target].external:
                deps[edge.source].add(edge.target)
        in_degree = {n: len(d) for n, d in deps.items()}
        dependents: dict[int, list[int]] = {n: [] for n in local}
        for n, d in deps.items():
            for target in d:
                dependents[target].append(n)

        ready = [n for n in local if in_degree[n] == 0]
        heapq.heapify(ready)
        order: list[str] = []
        while ready:
            n = heapq.heappop(ready)
            order.append(self.nodes[n].name)
            for dependent in dependents[n]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, dependent)

        if len(order) != len(local):
            cycles = self.detect_circular_dependencies()
            raise WorkspaceKitError(
                code=E.GRAPH_CYCLE_DETECTED,
                message=f'Circular dependencies detected: {[str(c) for c in cycles]}',
                hint='Remove circular dependencies between packages.',
            )
        return order


def build_graph(packages: Iterable[PackageInfo]) -> DependencyGraph:
    """Build a graph from parsed packages.

    Every package becomes a resolved node before any edge is added, so
    edge targets are resolved regardless of input order. Dependencies
    whose spec failed to parse contribute no edge.
    """
    graph = DependencyGraph()
    infos = list(packages)
    for info in infos:
        graph.add_package(info.name, info.version)
    for info in infos:
        for dep_type, sources in info.dependencies.items():
            for dep_name, source in sources.items():
                spec = info.raw_specs.get(dep_type, {}).get(dep_name, str(source))
                graph.add_dependency(info.name, dependency_target(dep_name, source), dep_type, spec, source)

    logger.debug(
        'built_dependency_graph',
        packages=len(infos),
        nodes=len(graph.nodes),
        edges=len(graph.edges),
    )
    return graph


__all__ = [
    'Cycle',
    'CycleSeverity',
    'DependencyEdge',
    'DependencyGraph',
    'DependencyUsage',
    'MissingDependency',
    'PackageNode',
    'ValidationReport',
    'VersionConflict',
    'build_graph',
    'dependency_target',
    'requirement_of',
]
