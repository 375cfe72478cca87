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

"""Structured logging for workspacekit.

Events are emitted through `structlog <https://www.structlog.org/>`_ as
snake_case names with keyword fields::

    logger.info('propagated', package='app', triggered_by='core', depth=1)

:func:`configure_logging` attaches one handler to the ``workspacekit``
logger only, so an application embedding the library keeps control of
the root logger. Output goes to stderr unless another stream is given,
either as console text or as one JSON object per line.

Fields bound with :func:`log_context` are added to every event emitted
inside the ``with`` block, including events from nested calls::

    with log_context(changeset=changeset.id, strategy='unified'):
        resolver.resolve(changeset)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import IO, Any

import structlog

ROOT_LOGGER = 'workspacekit'

_HANDLER_NAME = 'workspacekit-structlog'


def _level(verbose: bool, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    if verbose:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Route workspacekit events to ``stream`` (stderr by default).

    Safe to call more than once; the previous handler is replaced.

    Args:
        verbose: Emit debug events.
        quiet: Emit only warnings and errors. Wins over ``verbose``.
        json_log: Render JSON lines instead of console text.
        stream: Destination stream.
    """
    target = stream if stream is not None else sys.stderr

    if json_log:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=target.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt='iso', utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(target)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    package_logger = logging.getLogger(ROOT_LOGGER)
    for old in [h for h in package_logger.handlers if h.get_name() == _HANDLER_NAME]:
        package_logger.removeHandler(old)
    package_logger.addHandler(handler)
    package_logger.setLevel(_level(verbose, quiet))
    package_logger.propagate = False


def get_logger(name: str = ROOT_LOGGER) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger; pass ``__name__`` from library modules."""
    return structlog.get_logger(name)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:  # noqa: ANN401 - arbitrary log fields
    """Bind ``fields`` to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


__all__ = [
    'ROOT_LOGGER',
    'configure_logging',
    'get_logger',
    'log_context',
]
