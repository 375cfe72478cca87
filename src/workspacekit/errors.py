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

"""Error codes and the exception type raised throughout workspacekit.

Every failure carries a stable ``WK-<AREA>-<WHAT>`` code, a message
describing this occurrence, and, where one exists, a hint saying how to
fix it. Callers branch on :attr:`WorkspaceKitError.code`, never on the
message text.

Code areas::

    WK-CONFIG-*       workspacekit.toml and package manager detection
    WK-WORKSPACE-*    locating and discovering the workspace
    WK-PACKAGE-*      package lookup and package.json contents
    WK-VERSION-*      semver parsing, bumps and snapshot templates
    WK-DEPENDENCY-*   dependency spec classification
    WK-GRAPH-*        cycles, missing targets and version conflicts
    WK-RESOLUTION-*   building a version resolution
    WK-STORE-*        the change store
    WK-IO-*           manifest reads and writes
    WK-VCS-*          git queries

A few codes have a longer explanation in :data:`ERRORS`, shown by
:func:`explain`. :func:`render_error` prints an error for a terminal.

Usage::

    from workspacekit.errors import E, WorkspaceKitError

    raise WorkspaceKitError(
        code=E.PACKAGE_NOT_FOUND,
        message="Package 'core' is not part of the workspace",
        hint='Check the name against the "name" field of its package.json.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Named error codes for every failure surfaced by workspacekit."""

    CONFIG_NOT_FOUND = 'WK-CONFIG-NOT-FOUND'
    CONFIG_INVALID_KEY = 'WK-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'WK-CONFIG-INVALID-VALUE'

    WORKSPACE_NOT_FOUND = 'WK-WORKSPACE-NOT-FOUND'
    WORKSPACE_NO_MEMBERS = 'WK-WORKSPACE-NO-MEMBERS'
    WORKSPACE_PARSE_ERROR = 'WK-WORKSPACE-PARSE-ERROR'
    WORKSPACE_DUPLICATE_PACKAGE = 'WK-WORKSPACE-DUPLICATE-PACKAGE'

    PACKAGE_NOT_FOUND = 'WK-PACKAGE-NOT-FOUND'
    PACKAGE_INVALID = 'WK-PACKAGE-INVALID'
    PACKAGE_INVALID_MANIFEST = 'WK-PACKAGE-INVALID-MANIFEST'

    VERSION_INVALID = 'WK-VERSION-INVALID'
    VERSION_INVALID_BUMP = 'WK-VERSION-INVALID-BUMP'
    VERSION_BUMP_FAILED = 'WK-VERSION-BUMP-FAILED'
    VERSION_SNAPSHOT_FORMAT = 'WK-VERSION-SNAPSHOT-FORMAT'

    DEPENDENCY_INVALID_SOURCE = 'WK-DEPENDENCY-INVALID-SOURCE'
    DEPENDENCY_UNSUPPORTED_PROTOCOL = 'WK-DEPENDENCY-UNSUPPORTED-PROTOCOL'

    GRAPH_CYCLE_DETECTED = 'WK-GRAPH-CYCLE-DETECTED'
    GRAPH_MISSING_DEPENDENCY = 'WK-GRAPH-MISSING-DEPENDENCY'
    GRAPH_VERSION_CONFLICT = 'WK-GRAPH-VERSION-CONFLICT'

    RESOLUTION_DUPLICATE_UPDATE = 'WK-RESOLUTION-DUPLICATE-UPDATE'

    STORE_ERROR = 'WK-STORE-ERROR'
    STORE_CHANGESET_NOT_FOUND = 'WK-STORE-CHANGESET-NOT-FOUND'

    IO_READ_FAILED = 'WK-IO-READ-FAILED'
    IO_WRITE_FAILED = 'WK-IO-WRITE-FAILED'

    VCS_NOT_CONFIGURED = 'WK-VCS-NOT-CONFIGURED'
    VCS_COMMAND_FAILED = 'WK-VCS-COMMAND-FAILED'


E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """A code with its message and optional fix suggestion."""

    code: ErrorCode
    message: str
    hint: str = ''


class WorkspaceKitError(Exception):
    """The one exception type workspacekit raises on purpose.

    ``str(error)`` is ``[WK-CODE] message``; the structured parts live
    on :attr:`info`.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Build the error from its code, message and hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """Shortcut for ``info.code``."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Shortcut for ``info.hint``; empty when there is none."""
        return self.info.hint


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.PACKAGE_NOT_FOUND: ErrorInfo(
        code=E.PACKAGE_NOT_FOUND,
        message='A package name does not match any package in the workspace.',
        hint='Names are taken from the "name" field of each package.json, not from directory names.',
    ),
    E.VERSION_INVALID: ErrorInfo(
        code=E.VERSION_INVALID,
        message='A version string is not valid semver (MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]).',
        hint='Fix the "version" field in the package.json.',
    ),
    E.VERSION_INVALID_BUMP: ErrorInfo(
        code=E.VERSION_INVALID_BUMP,
        message='A bump type is not one of major, minor, patch, snapshot or none.',
        hint="Check 'propagation_bump' in workspacekit.toml.",
    ),
    E.DEPENDENCY_UNSUPPORTED_PROTOCOL: ErrorInfo(
        code=E.DEPENDENCY_UNSUPPORTED_PROTOCOL,
        message='The workspace: protocol is only valid inside a monorepo.',
        hint='Replace the workspace: spec with a registry version range.',
    ),
    E.GRAPH_CYCLE_DETECTED: ErrorInfo(
        code=E.GRAPH_CYCLE_DETECTED,
        message='Circular dependency detected in the workspace dependency graph.',
        hint="Break the cycle, or set 'fail_on_circular = false' under [dependency].",
    ),
    E.WORKSPACE_DUPLICATE_PACKAGE: ErrorInfo(
        code=E.WORKSPACE_DUPLICATE_PACKAGE,
        message='Two manifests in the workspace declare the same package name.',
        hint='Each package in the workspace must have a unique name.',
    ),
    E.VCS_NOT_CONFIGURED: ErrorInfo(
        code=E.VCS_NOT_CONFIGURED,
        message='Change detection needs a VCS backend but none was configured.',
        hint='Pass a GitCLIBackend (or another VCS implementation) to ChangeTracker.',
    ),
}


_BY_VALUE: dict[str, ErrorCode] = {member.value: member for member in ErrorCode}


def explain(code: str) -> str | None:
    """Describe ``code`` (e.g. ``"WK-GRAPH-CYCLE-DETECTED"``).

    Returns ``None`` when the string is not a workspacekit code.
    """
    if code not in _BY_VALUE:
        return None
    entry = ERRORS.get(_BY_VALUE[code])
    if entry is None:
        return f'{code}: No detailed explanation available.'
    text = f'{code}: {entry.message}'
    return f'{text}\n  Hint: {entry.hint}' if entry.hint else text


def _plain_lines(exc: WorkspaceKitError) -> list[str]:
    lines = [f'error[{exc.code.value}]: {exc.info.message}']
    if exc.hint:
        lines += ['  |', f'  = hint: {exc.hint}']
    return lines


def render_error(exc: WorkspaceKitError, *, file: TextIO | None = None) -> None:
    """Print ``exc`` in compiler-diagnostic form::

        error[WK-PACKAGE-NOT-FOUND]: Package 'core' is not part of the workspace
          |
          = hint: Check the name against the "name" field of its package.json.

    Terminals get rich styling; other streams (``sys.stderr`` by
    default) get the same lines as plain text.
    """
    out = file if file is not None else sys.stderr
    if not out.isatty():
        out.write('\n'.join(_plain_lines(exc)) + '\n\n')
        return

    console = Console(file=out, highlight=False)
    console.print(f'[bold red]error\\[{exc.code.value}][/bold red]: [bold]{rich_escape(exc.info.message)}[/bold]')
    if exc.hint:
        console.print('  [dim]|[/dim]')
        console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
    console.print()


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'WorkspaceKitError',
    'explain',
    'render_error',
]
