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

"""Protocol-based backend layer for workspacekit.

Everything that touches the outside world (manifest files, ``git``)
goes through the helpers and Protocols defined here, so tests can swap
in fakes and the pure core never does I/O itself.

- :mod:`~workspacekit.backends._io` — async UTF-8 file reads and writes
- :mod:`~workspacekit.backends._run` — subprocess wrapper
- :class:`VCS` — changed files, branch, HEAD (default: :class:`GitCLIBackend`)
"""

from workspacekit.backends._run import CommandResult, run_command
from workspacekit.backends.vcs import VCS, GitCLIBackend

__all__ = [
    'CommandResult',
    'GitCLIBackend',
    'VCS',
    'run_command',
]
