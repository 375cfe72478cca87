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

"""Parsed package.json manifests.

A :class:`PackageInfo` is the in-memory form of one workspace package:
its identity (name, version, location) plus every dependency entry,
both as the raw spec string and as a typed
:class:`~workspacekit.dependency_source.DependencySource`.

Manifest sections::

    DependencyType.REGULAR   → "dependencies"
    DependencyType.DEV       → "devDependencies"
    DependencyType.PEER      → "peerDependencies"
    DependencyType.OPTIONAL  → "optionalDependencies"

Writes keep the key order of the original manifest; only ``version``
and the rewritten dependency values change. Unknown top-level keys are
carried through untouched.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from workspacekit.backends._io import read_file, write_file
from workspacekit.dependency_source import DependencySource, ProjectContext, parse_dependency_source
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import get_logger
from workspacekit.version import Version

if TYPE_CHECKING:
    from collections.abc import Iterator

    from workspacekit.resolution import PackageUpdate

logger = get_logger(__name__)

MANIFEST_NAME = 'package.json'


class DependencyType(str, Enum):
    """The manifest section a dependency is declared in."""

    REGULAR = 'regular'
    DEV = 'dev'
    PEER = 'peer'
    OPTIONAL = 'optional'

    @property
    def section(self) -> str:
        """The package.json key for this section."""
        return _SECTIONS[self]


_SECTIONS: dict[DependencyType, str] = {
    DependencyType.REGULAR: 'dependencies',
    DependencyType.DEV: 'devDependencies',
    DependencyType.PEER: 'peerDependencies',
    DependencyType.OPTIONAL: 'optionalDependencies',
}

# Iteration order for every per-section walk.
DEPENDENCY_TYPES: tuple[DependencyType, ...] = tuple(_SECTIONS)


@dataclass(frozen=True)
class DependencyParseError:
    """A dependency entry whose spec could not be parsed.

    Attributes:
        dep_type: Section the entry was found in.
        name: Dependency name.
        spec: The raw spec value.
        reason: The parser's message.
    """

    dep_type: DependencyType
    name: str
    spec: str
    reason: str


@dataclass
class PackageInfo:
    """A package discovered in the workspace.

    Attributes:
        name: The ``name`` field of the manifest.
        version: The parsed ``version`` field.
        path: Absolute path to the package directory.
        manifest_path: Absolute path to ``package.json``.
        relative_path: POSIX path of the directory relative to the
            workspace root (``'.'`` for the root package).
        raw_manifest: The decoded manifest, in file order.
        dependencies: Parsed sources per section, in declaration order.
        raw_specs: Raw spec strings per section, in declaration order.
            Entries that failed to parse appear here but not in
            ``dependencies``.
        private: Whether the manifest sets ``"private": true``.
        parse_errors: Entries that failed to parse.
    """

    name: str
    version: Version
    path: Path
    manifest_path: Path
    relative_path: str = '.'
    raw_manifest: dict[str, Any] = field(default_factory=dict)
    dependencies: dict[DependencyType, dict[str, DependencySource]] = field(default_factory=dict)
    raw_specs: dict[DependencyType, dict[str, str]] = field(default_factory=dict)
    private: bool = False
    parse_errors: list[DependencyParseError] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        """Whether this is the workspace root manifest."""
        return self.relative_path == '.'

    def all_dependencies(self) -> Iterator[tuple[str, str, DependencyType]]:
        """Yield ``(name, raw_spec, dep_type)`` across every section."""
        for dep_type in DEPENDENCY_TYPES:
            for name, spec in self.raw_specs.get(dep_type, {}).items():
                yield name, spec, dep_type

    def dependency_names(self) -> list[str]:
        """Unique dependency names in section then declaration order."""
        seen: dict[str, None] = {}
        for name, _spec, _kind in self.all_dependencies():
            seen.setdefault(name, None)
        return list(seen)

    def get_spec(self, name: str, dep_type: DependencyType) -> str | None:
        """Return the raw spec of ``name`` in the given section."""
        return self.raw_specs.get(dep_type, {}).get(name)

    def set_dependency_spec(self, name: str, dep_type: DependencyType, spec: str) -> None:
        """Rewrite one dependency value in place, keeping its position."""
        section = self.raw_manifest.get(dep_type.section)
        if not isinstance(section, dict) or name not in section:
            raise WorkspaceKitError(
                code=E.PACKAGE_INVALID,
                message=f"'{self.name}' has no {dep_type.section} entry for '{name}'",
            )
        section[name] = spec
        self.raw_specs.setdefault(dep_type, {})[name] = spec
        try:
            source = parse_dependency_source(name, spec)
        except WorkspaceKitError:
            self.dependencies.get(dep_type, {}).pop(name, None)
        else:
            self.dependencies.setdefault(dep_type, {})[name] = source

    def set_version(self, version: Version) -> None:
        """Set the package version and the manifest's ``version`` field."""
        self.version = version
        self.raw_manifest['version'] = str(version)

    def apply_update(self, update: PackageUpdate) -> None:
        """Apply a resolved update: new version plus every spec rewrite."""
        if update.name != self.name:
            raise WorkspaceKitError(
                code=E.PACKAGE_INVALID,
                message=f"Update for '{update.name}' applied to '{self.name}'",
            )
        self.set_version(update.next_version)
        for dep in update.dependency_updates:
            self.set_dependency_spec(dep.name, dep.dep_type, dep.new_spec)


def render_manifest(info: PackageInfo) -> str:
    """Serialize a manifest the way npm writes it: two-space JSON plus newline."""
    return json.dumps(info.raw_manifest, indent=2, ensure_ascii=False) + '\n'


async def read_manifest(path: Path) -> dict[str, Any]:  # noqa: ANN401 - JSON values are untyped
    """Read ``path`` and decode it as a JSON object.

    Raises:
        WorkspaceKitError: ``IO_READ_FAILED`` if unreadable,
            ``PACKAGE_INVALID_MANIFEST`` if not a JSON object.
    """
    text = await read_file(path)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WorkspaceKitError(
            code=E.PACKAGE_INVALID_MANIFEST,
            message=f'Failed to parse {path}: {exc}',
            hint=f'Check that {path} contains valid JSON.',
        ) from exc
    if not isinstance(data, dict):
        raise WorkspaceKitError(
            code=E.PACKAGE_INVALID_MANIFEST,
            message=f'{path} is not a JSON object',
        )
    return data


def package_info_from_manifest(
    data: dict[str, Any],
    manifest_path: Path,
    root: Path,
    context: ProjectContext = ProjectContext.MONOREPO,
) -> PackageInfo:
    """Build a :class:`PackageInfo` from an already-decoded manifest.

    Raises:
        WorkspaceKitError: ``PACKAGE_INVALID_MANIFEST`` if ``name`` is
            missing or a section is not an object; ``VERSION_INVALID`` if
            ``version`` does not parse.
    """
    name = data.get('name')
    if not isinstance(name, str) or not name.strip():
        raise WorkspaceKitError(
            code=E.PACKAGE_INVALID_MANIFEST,
            message=f'{manifest_path} has no "name" field',
            hint='Every workspace package needs a non-empty "name".',
        )
    raw_version = data.get('version')
    if not isinstance(raw_version, str):
        raise WorkspaceKitError(
            code=E.VERSION_INVALID,
            message=f'{manifest_path} has no "version" string',
            hint='Add a "version" field, e.g. "0.1.0".',
        )
    version = Version.parse(raw_version)

    pkg_dir = manifest_path.parent
    try:
        relative = pkg_dir.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        relative = pkg_dir.as_posix()

    dependencies: dict[DependencyType, dict[str, DependencySource]] = {}
    raw_specs: dict[DependencyType, dict[str, str]] = {}
    errors: list[DependencyParseError] = []
    for dep_type in DEPENDENCY_TYPES:
        section = data.get(dep_type.section)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise WorkspaceKitError(
                code=E.PACKAGE_INVALID_MANIFEST,
                message=f'"{dep_type.section}" in {manifest_path} is not an object',
            )
        parsed: dict[str, DependencySource] = {}
        specs: dict[str, str] = {}
        for dep_name, spec in section.items():
            specs[dep_name] = spec if isinstance(spec, str) else str(spec)
            try:
                parsed[dep_name] = parse_dependency_source(dep_name, spec, context)
            except WorkspaceKitError as exc:
                errors.append(DependencyParseError(dep_type, dep_name, specs[dep_name], exc.info.message))
                logger.warning(
                    'dependency_parse_failed',
                    package=name,
                    dependency=dep_name,
                    spec=specs[dep_name],
                    error=str(exc),
                )
        dependencies[dep_type] = parsed
        raw_specs[dep_type] = specs

    return PackageInfo(
        name=name,
        version=version,
        path=pkg_dir,
        manifest_path=manifest_path,
        relative_path=relative,
        raw_manifest=data,
        dependencies=dependencies,
        raw_specs=raw_specs,
        private=data.get('private') is True,
        parse_errors=errors,
    )


async def load_package_info(
    manifest_path: Path,
    root: Path,
    context: ProjectContext = ProjectContext.MONOREPO,
) -> PackageInfo:
    """Read and parse one ``package.json``."""
    data = await read_manifest(manifest_path)
    info = package_info_from_manifest(data, manifest_path, root, context)
    logger.debug('package_loaded', name=info.name, version=str(info.version), path=info.relative_path)
    return info


async def write_package_info(info: PackageInfo) -> None:
    """Write ``info`` back to its manifest path."""
    await write_file(info.manifest_path, render_manifest(info))
    logger.debug('manifest_written', name=info.name, path=str(info.manifest_path))


__all__ = [
    'DEPENDENCY_TYPES',
    'DependencyParseError',
    'DependencyType',
    'MANIFEST_NAME',
    'PackageInfo',
    'load_package_info',
    'package_info_from_manifest',
    'read_manifest',
    'render_manifest',
    'write_package_info',
]
