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

"""Shared async file I/O helpers.

Manifest reads and writes are the only suspension points of workspace
discovery, so they go through ``aiofiles``. Failures surface as
:class:`~workspacekit.errors.WorkspaceKitError` with ``IO_*`` codes so
callers see one error type.

Writes go to a sibling temporary file that is renamed over the target,
so a failed or cancelled write never leaves a truncated file behind.
"""

from __future__ import annotations

import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

from workspacekit.errors import E, WorkspaceKitError


async def read_file(path: Path) -> str:
    """Read a UTF-8 text file asynchronously via aiofiles."""
    try:
        async with aiofiles.open(path, encoding='utf-8') as f:
            return await f.read()
    except OSError as exc:
        raise WorkspaceKitError(
            code=E.IO_READ_FAILED,
            message=f'Failed to read {path}: {exc}',
            hint=f'Check that {path} exists and is readable.',
        ) from exc


async def write_file(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` (UTF-8) in one rename."""
    tmp_path = path.with_name(f'.{path.name}.{uuid.uuid4().hex[:8]}.tmp')
    try:
        async with aiofiles.open(tmp_path, mode='w', encoding='utf-8') as f:
            await f.write(content)
        await aiofiles.os.replace(tmp_path, path)
    except OSError as exc:
        raise WorkspaceKitError(
            code=E.IO_WRITE_FAILED,
            message=f'Failed to write {path}: {exc}',
            hint=f'Check file permissions for {path}.',
        ) from exc
    finally:
        if await exists(tmp_path):
            await aiofiles.os.remove(tmp_path)


async def exists(path: Path) -> bool:
    """Return True if ``path`` exists."""
    return await aiofiles.os.path.exists(path)
