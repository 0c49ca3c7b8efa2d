"""Tests for file history and entity version tracking."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import patch

import pytest

from git_provenance.exceptions import (
    CommandFailedError,
    FileNotTrackedError,
    FunctionNotFoundError,
    ModuleNotFoundInSourceError,
    ParseError,
)
from git_provenance.history.entity_version import (
    build_derivation_chain,
    commit_info,
    content_hash,
    deduplicate_versions,
    find_change_introducing_version,
    find_module_file,
    function_at_commit,
    function_version_id,
    link_previous_versions,
    module_at_commit,
    module_version_id,
    same_content,
    track_function_versions,
    track_module_versions,
    version_chain,
)
from git_provenance.history.file_history import (
    build_file_history,
    commits_for_file,
    file_exists_in_history,
    file_history,
    parse_commit_list,
    parse_renames,
    path_at_commit,
)
from git_provenance.history.models import DerivationType, FileHistory, Rename

C0, C1, C2, C3 = ("0a" * 20, "1b" * 20, "2c" * 20, "3d" * 20)

MATH_V1 = """defmodule MyApp.Math do
  def add(a, b) do
    a + b
  end
end
"""

MATH_V1_REFORMATTED = """defmodule MyApp.Math do
  def add(a, b) do
      a   +   b
  end
end
"""

MATH_V2 = """defmodule MyApp.Math do
  def add(a, b) do
    a + b
  end

  def sub(a, b), do: a - b
end
"""


@dataclass
class _Version:
    version_id: str
    content_hash: str
    commit_sha: str = ""
    previous_version: str | None = None
    timestamp: object = None


def _versions(hashes):
    return [_Version(f"M@{i}", h, commit_sha=f"sha{i}") for i, h in enumerate(hashes, start=1)]


# ── File history parsing ─────────────────────────────────────────────────────


class TestParsing:
    def test_commit_list_keeps_only_shas(self):
        assert parse_commit_list(f"{C0}\n\nnoise\n{C1}\n") == [C0, C1]

    def test_renames_oldest_first(self):
        output = "\n".join(
            [C0, "", "R087\tlib/b.ex\tlib/c.ex", C2, "", "R100\tlib/a.ex\tlib/b.ex", ""]
        )
        renames = parse_renames(output)
        assert renames == [
            Rename("lib/a.ex", "lib/b.ex", C2, 100),
            Rename("lib/b.ex", "lib/c.ex", C0, 87),
        ]

    def test_non_rename_rows_ignored(self):
        assert parse_renames(f"{C0}\nM\tlib/a.ex\nRx\tlib/a\tlib/b\n") == []

    def test_build_history(self):
        history = build_file_history(
            "lib/c.ex", [C0, C1, C2], [Rename("lib/a.ex", "lib/c.ex", C1)]
        )
        assert history.first_commit == C2
        assert history.last_commit == C0
        assert history.commit_count == 3
        assert history.original_path == "lib/a.ex"
        assert history.is_renamed
        assert history.rename_count == 1

    def test_untracked(self):
        with pytest.raises(FileNotTrackedError) as exc_info:
            build_file_history("lib/x.ex", [], [])
        assert exc_info.value.reason == "file_not_tracked"

    def test_log_failure_means_no_commits(self, tmp_path):
        err = CommandFailedError(["log"], 128, "fatal")
        with patch("git_provenance.history.file_history.run_git", side_effect=err):
            assert commits_for_file(str(tmp_path), "lib/a.ex") == []

    def test_follow_and_limit_flags(self, tmp_path):
        with patch("git_provenance.history.file_history.run_git", return_value=C0) as run:
            commits_for_file(str(tmp_path), "lib/a.ex", follow=False, limit=5)
        args = run.call_args.args[1]
        assert "--follow" not in args
        assert args[args.index("-n") + 1] == "5"


class TestPathAtCommit:
    def _history(self):
        # newest first: C0 renamed b -> c, C2 renamed a -> b
        return FileHistory(
            path="lib/c.ex",
            commits=[C0, C1, C2, C3],
            renames=[Rename("lib/a.ex", "lib/b.ex", C2), Rename("lib/b.ex", "lib/c.ex", C0)],
        )

    @pytest.mark.parametrize(
        "sha,expected",
        [(C0, "lib/c.ex"), (C1, "lib/b.ex"), (C2, "lib/b.ex"), (C3, "lib/a.ex")],
    )
    def test_walks_renames(self, sha, expected):
        assert path_at_commit(self._history(), sha) == expected

    def test_unknown_commit(self):
        assert path_at_commit(self._history(), "f" * 40) == "lib/c.ex"

    def test_no_renames(self):
        history = FileHistory(path="lib/a.ex", commits=[C0, C1])
        assert path_at_commit(history, C1) == "lib/a.ex"


class TestFileHistoryReal:
    def test_rename_followed(self, git_repo, settings):
        git_repo.write("lib/old.ex", MATH_V1)
        first = git_repo.commit("feat: add math")
        git_repo.git("mv", "lib/old.ex", "lib/new.ex")
        renamed = git_repo.commit("refactor: rename math file")
        git_repo.write("lib/new.ex", MATH_V2)
        latest = git_repo.commit("feat: add sub")

        history = file_history(git_repo.path, "lib/new.ex", settings=settings)
        assert history.commits == [latest, renamed, first]
        assert history.original_path == "lib/old.ex"
        assert history.renames[0].commit_sha == renamed
        assert path_at_commit(history, first) == "lib/old.ex"
        assert path_at_commit(history, latest) == "lib/new.ex"

    def test_untracked_file(self, git_repo, settings):
        git_repo.write("a.txt", "x")
        git_repo.commit("chore: init")
        with pytest.raises(FileNotTrackedError):
            file_history(git_repo.path, "missing.ex", settings=settings)
        assert not file_exists_in_history(git_repo.path, "missing.ex", settings=settings)
        assert file_exists_in_history(git_repo.path, "a.txt", settings=settings)


# ── Entity versions ──────────────────────────────────────────────────────────


class TestIdentifiers:
    def test_content_hash_ignores_whitespace(self):
        assert content_hash(MATH_V1) == content_hash(MATH_V1_REFORMATTED)
        assert content_hash(MATH_V1) != content_hash(MATH_V2)
        assert len(content_hash(MATH_V1)) == 16

    def test_version_ids(self):
        assert module_version_id("MyApp.Math", C1) == f"MyApp.Math@{C1[:7]}"
        assert function_version_id("MyApp.Math", "add", 2, C1) == f"MyApp.Math.add/2@{C1[:7]}"


class TestChains:
    def test_dedup_middle_run(self):
        survivors = deduplicate_versions(_versions(["A", "B", "B", "B", "C"]))
        assert [v.version_id for v in survivors] == ["M@1", "M@2", "M@5"]

    def test_dedup_leading_run(self):
        survivors = deduplicate_versions(_versions(["A", "A", "A", "A", "B"]))
        assert [v.version_id for v in survivors] == ["M@1", "M@5"]
        assert survivors[0].content_hash != survivors[1].content_hash

    def test_dedup_non_adjacent_duplicates_survive(self):
        survivors = deduplicate_versions(_versions(["A", "B", "A"]))
        assert len(survivors) == 3

    def test_link_previous(self):
        linked = link_previous_versions(_versions(["A", "B", "C"]))
        assert [v.previous_version for v in linked] == ["M@2", "M@3", None]
        assert link_previous_versions([]) == []

    def test_derivation_chain(self):
        chain = build_derivation_chain(_versions(["A", "B", "C"]))
        assert [(d.derived_entity, d.source_entity) for d in chain] == [
            ("M@1", "M@2"),
            ("M@2", "M@3"),
        ]
        assert chain[0].derivation_type is DerivationType.REVISION
        assert chain[0].activity == "sha1"

    def test_helpers(self):
        versions = _versions(["A", "A", "B"])
        assert same_content(versions[0], versions[1])
        assert version_chain(versions) == ["M@1", "M@2", "M@3"]
        assert find_change_introducing_version(versions).version_id == "M@2"
        assert find_change_introducing_version(_versions(["A", "A"])).version_id == "M@1"
        assert find_change_introducing_version([]) is None


class TestSnapshots:
    def test_commit_info_bad_output(self, tmp_path):
        with patch("git_provenance.history.entity_version.run_git", return_value="junk"):
            with pytest.raises(ParseError):
                commit_info(str(tmp_path), "HEAD")

    def test_find_module_file_skips_missing_candidates(self, tmp_path):
        def _show(repo, ref, path, settings=None):
            if path.endswith(".exs"):
                return MATH_V1
            raise CommandFailedError(["show"], 128, "fatal: path does not exist")

        with patch("git_provenance.history.entity_version.show_file", side_effect=_show):
            assert find_module_file(str(tmp_path), "MyApp.Math") == "lib/my_app/math.exs"

    def test_find_module_file_missing(self, tmp_path):
        err = CommandFailedError(["show"], 128, "")
        with patch("git_provenance.history.entity_version.show_file", side_effect=err):
            with pytest.raises(ModuleNotFoundInSourceError):
                find_module_file(str(tmp_path), "MyApp.Math")

    def test_module_at_commit_real(self, git_repo, settings):
        git_repo.write("lib/my_app/math.ex", MATH_V2)
        sha = git_repo.commit("feat: math")
        version = module_at_commit(
            git_repo.path, "MyApp.Math", include_functions=True, settings=settings
        )
        assert version.commit_sha == sha
        assert version.version_id == f"MyApp.Math@{sha[:7]}"
        assert version.file_path == "lib/my_app/math.ex"
        assert version.functions == ["add", "sub"]
        assert version.line_count == 7
        assert version.timestamp is not None

    def test_function_at_commit_real(self, git_repo, settings):
        git_repo.write("lib/my_app/math.ex", MATH_V2)
        git_repo.commit("feat: math")
        version = function_at_commit(git_repo.path, "MyApp.Math", "sub", 2, settings=settings)
        assert version.line_range == (6, 6)
        assert version.clause_count == 1
        with pytest.raises(FunctionNotFoundError) as exc_info:
            function_at_commit(git_repo.path, "MyApp.Math", "mul", 2, settings=settings)
        assert exc_info.value.module == "MyApp.Math"


class TestTrackingReal:
    def test_module_versions_collapse_whitespace_changes(self, git_repo, settings):
        git_repo.write("lib/my_app/math.ex", MATH_V1)
        git_repo.commit("feat: add")
        git_repo.write("lib/my_app/math.ex", MATH_V1_REFORMATTED)
        reformatted = git_repo.commit("style: reformat")
        git_repo.write("lib/my_app/math.ex", MATH_V2)
        latest = git_repo.commit("feat: sub")

        versions = track_module_versions(git_repo.path, "MyApp.Math", settings=settings)
        # the newest snapshot of an unchanged run survives
        assert [v.commit_sha for v in versions] == [latest, reformatted]
        assert versions[0].previous_version == versions[1].version_id
        assert versions[-1].previous_version is None

    def test_function_versions_skip_snapshots_without_function(self, git_repo, settings):
        git_repo.write("lib/my_app/math.ex", MATH_V1)
        git_repo.commit("feat: add")
        git_repo.write("lib/my_app/math.ex", MATH_V2)
        sub_added = git_repo.commit("feat: sub")

        versions = track_function_versions(
            git_repo.path, "MyApp.Math", "sub", 2, settings=settings
        )
        assert [v.commit_sha for v in versions] == [sub_added]
        assert versions[0].previous_version is None
