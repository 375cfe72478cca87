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

"""Configuration reader for workspacekit.

Reads ``workspacekit.toml`` from the workspace root and returns a
validated :class:`MonorepoConfig`. A missing file is not an error: every
setting has a default, and the include patterns fall back to whatever
the package manager's own workspace file declares.

Key Concepts (ELI5)::

    ┌─────────────────────────┬────────────────────────────────────────────┐
    │ Concept                 │ ELI5 Explanation                           │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ MonorepoConfig          │ Every knob for one workspace session,     │
    │                         │ passed into each component's constructor. │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ DependencyConfig        │ Which dependency sections and protocols   │
    │                         │ carry a version bump to dependents.       │
    ├─────────────────────────┼────────────────────────────────────────────┤
    │ Workspace patterns      │ Where to look for package.json files.     │
    │                         │ From workspacekit.toml, else from         │
    │                         │ pnpm-workspace.yaml or package.json.      │
    └─────────────────────────┴────────────────────────────────────────────┘

Supported keys in ``workspacekit.toml``::

    package_manager  = "pnpm"                     # npm, yarn, yarn-berry, pnpm, bun
    strategy         = "independent"              # or "unified"
    include          = ["packages/*/package.json"]
    exclude          = ["packages/scratch/**"]
    context          = "monorepo"                 # or "single"
    snapshot_format  = "{version}-snapshot.{sha}"

    [dependency]
    propagation_bump             = "patch"        # major, minor, patch, none
    propagate_dependencies       = true
    propagate_dev_dependencies   = false
    propagate_peer_dependencies  = true
    max_depth                    = 10
    fail_on_circular             = false
    skip_workspace_protocol      = true
    skip_file_protocol           = true
    skip_link_protocol           = true
    skip_portal_protocol         = true

    [changes]
    store_dir    = ".changes"
    environments = ["development", "staging", "production"]

Usage::

    from workspacekit.config import load_config

    cfg = load_config(Path('/path/to/monorepo'))
    print(cfg.include)  # ['packages/*/package.json']
"""

from __future__ import annotations

import difflib
import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from workspacekit.dependency_source import ProjectContext
from workspacekit.errors import E, WorkspaceKitError
from workspacekit.logging import get_logger
from workspacekit.package import DependencyType
from workspacekit.propagation import parse_propagation_bump
from workspacekit.snapshot import DEFAULT_SNAPSHOT_FORMAT, SnapshotFormat
from workspacekit.version import VersionBump, VersioningStrategy

logger = get_logger(__name__)

CONFIG_FILENAME = 'workspacekit.toml'

DEFAULT_INCLUDE: tuple[str, ...] = ('packages/*/package.json',)
DEFAULT_ENVIRONMENTS: tuple[str, ...] = ('development', 'staging', 'production')
DEFAULT_STORE_DIR = '.changes'


class PackageManager(str, Enum):
    """JavaScript package managers with workspace support."""

    NPM = 'npm'
    YARN = 'yarn'
    YARN_BERRY = 'yarn-berry'
    PNPM = 'pnpm'
    BUN = 'bun'


# Checked in order; the first lockfile present wins.
_LOCKFILES: tuple[tuple[str, PackageManager], ...] = (
    ('pnpm-lock.yaml', PackageManager.PNPM),
    ('bun.lockb', PackageManager.BUN),
    ('bun.lock', PackageManager.BUN),
    ('yarn.lock', PackageManager.YARN),
    ('package-lock.json', PackageManager.NPM),
)

VALID_KEYS: frozenset[str] = frozenset({
    'changes',
    'context',
    'dependency',
    'exclude',
    'include',
    'package_manager',
    'snapshot_format',
    'strategy',
})

VALID_DEPENDENCY_KEYS: frozenset[str] = frozenset({
    'fail_on_circular',
    'max_depth',
    'propagate_dependencies',
    'propagate_dev_dependencies',
    'propagate_peer_dependencies',
    'propagation_bump',
    'skip_file_protocol',
    'skip_link_protocol',
    'skip_portal_protocol',
    'skip_workspace_protocol',
})

VALID_CHANGES_KEYS: frozenset[str] = frozenset({'environments', 'store_dir'})

_GLOBAL_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'changes': dict,
    'context': str,
    'dependency': dict,
    'exclude': list,
    'include': list,
    'package_manager': str,
    'snapshot_format': str,
    'strategy': str,
}

_DEPENDENCY_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'fail_on_circular': bool,
    'max_depth': int,
    'propagate_dependencies': bool,
    'propagate_dev_dependencies': bool,
    'propagate_peer_dependencies': bool,
    'propagation_bump': str,
    'skip_file_protocol': bool,
    'skip_link_protocol': bool,
    'skip_portal_protocol': bool,
    'skip_workspace_protocol': bool,
}

_CHANGES_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'environments': list,
    'store_dir': str,
}


@dataclass(frozen=True)
class DependencyConfig:
    """Rules for carrying a version bump from a package to its dependents.

    Attributes:
        propagation_bump: Bump applied to each dependent.
        propagate_dependencies: Propagate through ``dependencies``.
        propagate_dev_dependencies: Propagate through ``devDependencies``.
        propagate_peer_dependencies: Propagate through ``peerDependencies``.
        max_depth: Number of BFS levels to walk from the direct changes.
        fail_on_circular: Refuse to apply a resolution that saw a cycle.
        skip_workspace_protocol: Leave ``workspace:`` dependencies alone.
        skip_file_protocol: Leave ``file:`` dependencies alone.
        skip_link_protocol: Leave ``link:`` dependencies alone.
        skip_portal_protocol: Leave ``portal:`` dependencies alone.
    """

    propagation_bump: VersionBump = VersionBump.PATCH
    propagate_dependencies: bool = True
    propagate_dev_dependencies: bool = False
    propagate_peer_dependencies: bool = True
    max_depth: int = 10
    fail_on_circular: bool = False
    skip_workspace_protocol: bool = True
    skip_file_protocol: bool = True
    skip_link_protocol: bool = True
    skip_portal_protocol: bool = True

    def __post_init__(self) -> None:
        """Reject settings the propagator cannot honour."""
        if self.max_depth < 1:
            raise WorkspaceKitError(
                code=E.CONFIG_INVALID_VALUE,
                message=f'max_depth must be at least 1, got {self.max_depth}',
            )
        if self.propagation_bump is VersionBump.SNAPSHOT:
            raise WorkspaceKitError(
                code=E.VERSION_INVALID_BUMP,
                message='propagation_bump cannot be snapshot',
                hint='Use major, minor, patch or none.',
            )

    @property
    def propagate_optional_dependencies(self) -> bool:
        """Optional dependencies never propagate."""
        return False

    def propagates(self, dep_type: DependencyType) -> bool:
        """Whether a bump travels along an edge of ``dep_type``."""
        if dep_type is DependencyType.REGULAR:
            return self.propagate_dependencies
        if dep_type is DependencyType.DEV:
            return self.propagate_dev_dependencies
        if dep_type is DependencyType.PEER:
            return self.propagate_peer_dependencies
        return self.propagate_optional_dependencies

    def skips_spec(self, spec: str) -> bool:
        """Whether ``spec`` uses a protocol configured to be left alone."""
        text = spec.strip()
        return (
            (self.skip_workspace_protocol and text.startswith('workspace:'))
            or (self.skip_file_protocol and text.startswith('file:'))
            or (self.skip_link_protocol and text.startswith('link:'))
            or (self.skip_portal_protocol and text.startswith('portal:'))
        )


@dataclass(frozen=True)
class ChangesConfig:
    """Where recorded changes live and which environments exist."""

    store_dir: str = DEFAULT_STORE_DIR
    environments: list[str] = field(default_factory=lambda: list(DEFAULT_ENVIRONMENTS))


@dataclass(frozen=True)
class MonorepoConfig:
    """Validated configuration for one workspace session.

    Attributes:
        root: Workspace root directory.
        package_manager: Detected or configured package manager.
        strategy: Versioning strategy.
        include: Manifest globs relative to ``root``.
        exclude: Globs matched against manifest paths relative to ``root``.
        context: Monorepo or single-package parsing rules.
        snapshot_format: Template for snapshot versions.
        dependency: Propagation rules.
        changes: Change store settings.
        config_path: The file that was loaded, if any.
    """

    root: Path = field(default_factory=Path.cwd)
    package_manager: PackageManager = PackageManager.NPM
    strategy: VersioningStrategy = VersioningStrategy.INDEPENDENT
    include: list[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE))
    exclude: list[str] = field(default_factory=list)
    context: ProjectContext = ProjectContext.MONOREPO
    snapshot_format: str = DEFAULT_SNAPSHOT_FORMAT
    dependency: DependencyConfig = field(default_factory=DependencyConfig)
    changes: ChangesConfig = field(default_factory=ChangesConfig)
    config_path: Path | None = None

    @property
    def store_path(self) -> Path:
        """Absolute path of the change store directory."""
        return self.root / self.changes.store_dir


def _check_keys(raw: dict[str, Any], valid: frozenset[str], context: str) -> None:  # noqa: ANN401 - dynamic config
    for key in raw:
        if key not in valid:
            suggestion = difflib.get_close_matches(key, valid, n=1, cutoff=0.6)
            hint = f"Did you mean '{suggestion[0]}'?" if suggestion else f'Valid keys: {", ".join(sorted(valid))}.'
            raise WorkspaceKitError(
                code=E.CONFIG_INVALID_KEY,
                message=f"Unknown key '{key}' in {context}",
                hint=hint,
            )


def _validate_value_type(
    key: str,
    value: Any,  # noqa: ANN401 - dynamic config values
    type_map: dict[str, type | tuple[type, ...]],
    *,
    context: str = CONFIG_FILENAME,
) -> None:
    """Raise if a config value has the wrong type."""
    expected = type_map.get(key)
    if expected is None:
        return
    # bool is an int subclass; a boolean is never a valid number here.
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        type_name = expected.__name__ if isinstance(expected, type) else str(expected)
        raise WorkspaceKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {type_name}, got {type(value).__name__}",
            hint=f'Check the value of {key} in {context}.',
        )


def _validate_string_list(key: str, items: list[object], context: str) -> list[str]:
    for item in items:
        if not isinstance(item, str):
            raise WorkspaceKitError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'{key}' items must be strings, got {type(item).__name__}: {item!r}",
                hint=f'Each {key} entry should be a string in {context}.',
            )
    return [str(item) for item in items]


def _enum_value(enum_cls: type[Enum], key: str, value: str) -> Any:  # noqa: ANN401 - returns a member of enum_cls
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [m.value for m in enum_cls]  # type: ignore[attr-defined]
        raise WorkspaceKitError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"{key} must be one of {allowed}, got '{value}'",
            hint=f'Check {key} in {CONFIG_FILENAME}.',
        ) from None


def _parse_dependency_section(raw: dict[str, Any]) -> DependencyConfig:  # noqa: ANN401 - dynamic config
    context = f'[dependency] in {CONFIG_FILENAME}'
    _check_keys(raw, VALID_DEPENDENCY_KEYS, context)
    for key, value in raw.items():
        _validate_value_type(key, value, _DEPENDENCY_TYPE_MAP, context=context)
    kwargs: dict[str, Any] = dict(raw)  # noqa: ANN401
    if 'propagation_bump' in kwargs:
        kwargs['propagation_bump'] = parse_propagation_bump(kwargs['propagation_bump'])
    return DependencyConfig(**kwargs)


def _parse_changes_section(raw: dict[str, Any]) -> ChangesConfig:  # noqa: ANN401 - dynamic config
    context = f'[changes] in {CONFIG_FILENAME}'
    _check_keys(raw, VALID_CHANGES_KEYS, context)
    for key, value in raw.items():
        _validate_value_type(key, value, _CHANGES_TYPE_MAP, context=context)
    kwargs: dict[str, Any] = dict(raw)  # noqa: ANN401
    if 'environments' in kwargs:
        kwargs['environments'] = _validate_string_list('environments', kwargs['environments'], context)
    return ChangesConfig(**kwargs)


def detect_package_manager(root: Path) -> PackageManager:
    """Guess the package manager from lockfiles at ``root``.

    ``yarn.lock`` next to ``.yarnrc.yml`` means yarn berry. Without any
    lockfile the answer is npm.
    """
    for lockfile, manager in _LOCKFILES:
        if (root / lockfile).is_file():
            if manager is PackageManager.YARN and (root / '.yarnrc.yml').is_file():
                return PackageManager.YARN_BERRY
            return manager
    return PackageManager.NPM


def _parse_yaml_simple(text: str) -> dict[str, list[str]]:
    """Read the ``key:`` / ``- item`` lists of a pnpm-workspace.yaml.

    Only the flat shape pnpm documents is understood::

        packages:
          - 'packages/*'
          - '!packages/scratch'
    """
    result: dict[str, list[str]] = {}
    current_key: str | None = None
    for line in text.splitlines():
        stripped = line.split(' #', 1)[0].strip()
        if not stripped or stripped.startswith('#'):
            continue
        if stripped.endswith(':') and not stripped.startswith('-'):
            current_key = stripped[:-1].strip()
            result[current_key] = []
            continue
        if stripped.startswith('-') and current_key is not None:
            value = stripped[1:].strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            result[current_key].append(value)
        elif not line.startswith((' ', '\t')):
            current_key = None
    return result


def _manifest_glob(pattern: str) -> str:
    pattern = pattern.strip()
    if pattern.startswith('./'):
        pattern = pattern[2:]
    pattern = pattern.rstrip('/')
    if pattern.endswith('package.json'):
        return pattern
    if pattern in ('', '.'):
        return 'package.json'
    return f'{pattern}/package.json'


def resolve_workspace_patterns(root: Path) -> tuple[list[str], list[str]]:
    """Read include and exclude manifest globs from the package manager's files.

    ``pnpm-workspace.yaml`` wins over the root ``package.json``
    ``workspaces`` field, which may be an array or a ``{"packages": [...]}``
    object. ``!``-prefixed entries become excludes. Every directory glob
    is turned into a ``<glob>/package.json`` manifest glob.

    Returns:
        ``(include, exclude)``; both empty if neither file declares
        workspaces.
    """
    patterns: list[str] = []
    pnpm_file = root / 'pnpm-workspace.yaml'
    root_manifest = root / 'package.json'
    if pnpm_file.is_file():
        patterns = _parse_yaml_simple(pnpm_file.read_text(encoding='utf-8')).get('packages', [])
        logger.debug('workspace_patterns_from_pnpm', count=len(patterns))
    elif root_manifest.is_file():
        try:
            data = json.loads(root_manifest.read_text(encoding='utf-8'))
        except json.JSONDecodeError as exc:
            raise WorkspaceKitError(
                code=E.WORKSPACE_PARSE_ERROR,
                message=f'Failed to parse {root_manifest}: {exc}',
            ) from exc
        workspaces = data.get('workspaces') if isinstance(data, dict) else None
        if isinstance(workspaces, dict):
            workspaces = workspaces.get('packages')
        if isinstance(workspaces, list):
            patterns = [p for p in workspaces if isinstance(p, str)]
        logger.debug('workspace_patterns_from_package_json', count=len(patterns))

    include: list[str] = []
    exclude: list[str] = []
    for pattern in patterns:
        if pattern.startswith('!'):
            exclude.append(_manifest_glob(pattern[1:]))
        else:
            include.append(_manifest_glob(pattern))
    return include, exclude


def load_config(workspace_root: Path) -> MonorepoConfig:
    """Load and validate configuration for the workspace at ``workspace_root``.

    Raises:
        WorkspaceKitError: ``CONFIG_INVALID_KEY`` for unknown keys,
            ``CONFIG_INVALID_VALUE`` for wrong types or enum values,
            ``CONFIG_NOT_FOUND`` if the file exists but cannot be read
            or parsed.
    """
    config_path = workspace_root / CONFIG_FILENAME
    raw: dict[str, Any] = {}  # noqa: ANN401
    if config_path.is_file():
        try:
            text = config_path.read_text(encoding='utf-8')
        except OSError as exc:
            raise WorkspaceKitError(
                code=E.CONFIG_NOT_FOUND,
                message=f'Failed to read {config_path}: {exc}',
            ) from exc
        try:
            raw = tomlkit.parse(text).unwrap()
        except tomlkit.exceptions.TOMLKitError as exc:
            raise WorkspaceKitError(
                code=E.CONFIG_NOT_FOUND,
                message=f'Failed to parse {config_path}: {exc}',
            ) from exc
    else:
        logger.debug('no_workspacekit_config', path=str(config_path))

    _check_keys(raw, VALID_KEYS, CONFIG_FILENAME)
    for key, value in raw.items():
        _validate_value_type(key, value, _GLOBAL_TYPE_MAP)

    kwargs: dict[str, Any] = {'root': workspace_root}  # noqa: ANN401
    if 'package_manager' in raw:
        kwargs['package_manager'] = _enum_value(PackageManager, 'package_manager', raw['package_manager'])
    else:
        kwargs['package_manager'] = detect_package_manager(workspace_root)
    if 'strategy' in raw:
        kwargs['strategy'] = _enum_value(VersioningStrategy, 'strategy', raw['strategy'])
    if 'context' in raw:
        kwargs['context'] = _enum_value(ProjectContext, 'context', raw['context'])
    if 'snapshot_format' in raw:
        # Validates the template eagerly.
        kwargs['snapshot_format'] = SnapshotFormat(raw['snapshot_format']).template
    if 'dependency' in raw:
        kwargs['dependency'] = _parse_dependency_section(raw['dependency'])
    if 'changes' in raw:
        kwargs['changes'] = _parse_changes_section(raw['changes'])

    exclude = _validate_string_list('exclude', raw.get('exclude', []), CONFIG_FILENAME)
    if 'include' in raw:
        include = _validate_string_list('include', raw['include'], CONFIG_FILENAME)
    else:
        include, pm_exclude = resolve_workspace_patterns(workspace_root)
        exclude = [*exclude, *pm_exclude]
        if not include:
            include = list(DEFAULT_INCLUDE)
    kwargs['include'] = include
    kwargs['exclude'] = exclude

    cfg = MonorepoConfig(**kwargs, config_path=config_path if config_path.is_file() else None)
    logger.debug(
        'config_loaded',
        package_manager=cfg.package_manager.value,
        strategy=cfg.strategy.value,
        include=cfg.include,
    )
    return cfg


__all__ = [
    'CONFIG_FILENAME',
    'ChangesConfig',
    'DependencyConfig',
    'MonorepoConfig',
    'PackageManager',
    'detect_package_manager',
    'load_config',
    'resolve_workspace_patterns',
]
