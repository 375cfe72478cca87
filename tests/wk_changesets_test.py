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

"""Tests for workspacekit.changesets module."""

from __future__ import annotations

from pathlib import Path

from workspacekit.changesets import (
    CHANGESET_DIRNAME,
    ChangesetFile,
    changeset_summaries,
    changesets_from_files,
    consume_changeset_files,
    merge_bumps,
    parse_changeset_text,
    read_changeset_files,
)
from workspacekit.logging import configure_logging
from workspacekit.version import VersionBump

configure_logging(quiet=True)


def _write(cs_dir: Path, name: str, text: str) -> Path:
    cs_dir.mkdir(parents=True, exist_ok=True)
    path = cs_dir / name
    path.write_text(text, encoding='utf-8')
    return path


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseChangesetText:
    """Tests for parse_changeset_text()."""

    def test_valid(self) -> None:
        """Frontmatter bumps and the summary are extracted."""
        parsed = parse_changeset_text(
            '---\n"@acme/core": minor\n\'@acme/cli\': patch\n---\n\nAdd streaming support.\n',
            Path('a.md'),
        )
        assert parsed is not None
        assert parsed.bumps == {'@acme/core': VersionBump.MINOR, '@acme/cli': VersionBump.PATCH}
        assert parsed.summary == 'Add streaming support.'

    def test_unquoted_names(self) -> None:
        """Quotes around names are optional."""
        parsed = parse_changeset_text('---\ncore: major\n---\n', Path('a.md'))
        assert parsed is not None
        assert parsed.bumps == {'core': VersionBump.MAJOR}
        assert parsed.summary == ''

    def test_repeated_name_keeps_higher(self) -> None:
        """A package listed twice keeps its higher bump."""
        parsed = parse_changeset_text('---\ncore: patch\ncore: minor\ncore: patch\n---\n', Path('a.md'))
        assert parsed is not None
        assert parsed.bumps == {'core': VersionBump.MINOR}

    def test_invalid_lines_skipped(self) -> None:
        """Lines that are not name: bump are ignored."""
        parsed = parse_changeset_text('---\ncore: huge\ncli: patch\n---\n', Path('a.md'))
        assert parsed is not None
        assert parsed.bumps == {'cli': VersionBump.PATCH}

    def test_no_frontmatter(self) -> None:
        """Plain markdown is not a changeset."""
        assert parse_changeset_text('No frontmatter here.\n', Path('a.md')) is None

    def test_unclosed_frontmatter(self) -> None:
        """A frontmatter block must be closed."""
        assert parse_changeset_text('---\ncore: patch\n', Path('a.md')) is None

    def test_empty_frontmatter(self) -> None:
        """A changeset with no bumps is skipped."""
        assert parse_changeset_text('---\n---\n\nNothing.\n', Path('a.md')) is None


class TestReadChangesetFiles:
    """Tests for read_changeset_files()."""

    def test_reads_sorted(self, tmp_path: Path) -> None:
        """Every valid file is read, in file-name order."""
        cs_dir = tmp_path / CHANGESET_DIRNAME
        _write(cs_dir, 'b-second.md', '---\ncli: patch\n---\n')
        _write(cs_dir, 'a-first.md', '---\ncore: minor\n---\n')
        assert [f.path.name for f in read_changeset_files(cs_dir)] == ['a-first.md', 'b-second.md']

    def test_skips_readme_hidden_and_invalid(self, tmp_path: Path) -> None:
        """README.md, dotfiles, other extensions and invalid files are ignored."""
        cs_dir = tmp_path / CHANGESET_DIRNAME
        _write(cs_dir, 'README.md', '---\ncore: major\n---\n')
        _write(cs_dir, '.draft.md', '---\ncore: major\n---\n')
        _write(cs_dir, 'config.json', '{}')
        _write(cs_dir, 'bad.md', 'No frontmatter.\n')
        assert read_changeset_files(cs_dir) == []

    def test_missing_directory(self, tmp_path: Path) -> None:
        """A missing directory means no changesets."""
        assert read_changeset_files(tmp_path / CHANGESET_DIRNAME) == []


# ---------------------------------------------------------------------------
# Merging and grouping
# ---------------------------------------------------------------------------


class TestMerging:
    """Tests for merge_bumps() and changesets_from_files()."""

    FILES = [
        ChangesetFile(Path('1.md'), {'core': VersionBump.PATCH, 'cli': VersionBump.MINOR}, 'Fix core.'),
        ChangesetFile(Path('2.md'), {'core': VersionBump.MAJOR}, 'Drop legacy API.'),
        ChangesetFile(Path('3.md'), {'cli': VersionBump.PATCH, 'app': VersionBump.PATCH}),
    ]

    def test_merge_higher_wins(self) -> None:
        """Across files the highest bump per package wins."""
        assert merge_bumps(self.FILES) == {
            'core': VersionBump.MAJOR,
            'cli': VersionBump.MINOR,
            'app': VersionBump.PATCH,
        }

    def test_grouped_by_level(self) -> None:
        """One changeset per bump level, strongest first."""
        changesets = changesets_from_files(self.FILES)
        assert [(cs.bump, cs.packages) for cs in changesets] == [
            (VersionBump.MAJOR, ['core']),
            (VersionBump.MINOR, ['cli']),
            (VersionBump.PATCH, ['app']),
        ]
        assert changesets[0].summary == 'Fix core.\n\nDrop legacy API.'

    def test_no_files(self) -> None:
        """No files give no changesets."""
        assert changesets_from_files([]) == []

    def test_summaries(self) -> None:
        """Summaries are collected per package; empty ones are dropped."""
        assert changeset_summaries(self.FILES) == {
            'core': ['Fix core.', 'Drop legacy API.'],
            'cli': ['Fix core.'],
        }


# ---------------------------------------------------------------------------
# Consuming
# ---------------------------------------------------------------------------


class TestConsume:
    """Tests for consume_changeset_files()."""

    def test_deletes(self, tmp_path: Path) -> None:
        """Consumed files are removed."""
        cs_dir = tmp_path / CHANGESET_DIRNAME
        path = _write(cs_dir, 'a.md', '---\ncore: patch\n---\n')
        files = read_changeset_files(cs_dir)
        assert consume_changeset_files(files) == [path]
        assert not path.exists()

    def test_dry_run_keeps_files(self, tmp_path: Path) -> None:
        """A dry run reports the files without deleting them."""
        cs_dir = tmp_path / CHANGESET_DIRNAME
        path = _write(cs_dir, 'a.md', '---\ncore: patch\n---\n')
        assert consume_changeset_files(read_changeset_files(cs_dir), dry_run=True) == [path]
        assert path.exists()

    def test_already_gone(self, tmp_path: Path) -> None:
        """A file deleted in the meantime is skipped."""
        missing = ChangesetFile(tmp_path / 'gone.md', {'core': VersionBump.PATCH})
        assert consume_changeset_files([missing]) == []
