"""Repository discovery and tree lookups."""

from __future__ import annotations

from pathlib import Path

from git_provenance.core.config import Settings
from git_provenance.exceptions import CommandFailedError, InvalidPathError, NotARepositoryError
from git_provenance.git.runner import run_git


def detect_repo(path: str) -> str:
    """Return the root of the repository enclosing *path*.

    Walks up the directory tree looking for a ``.git`` entry (a directory
    for normal clones, a file for worktrees and submodules).
    """
    start = Path(path)
    if not start.exists():
        raise InvalidPathError(path)
    current = start.resolve()
    if current.is_file():
        current = current.parent
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return str(candidate)
    raise NotARepositoryError(f"No git repository found above {path}")


def is_git_repo(path: str) -> bool:
    try:
        detect_repo(path)
    except (InvalidPathError, NotARepositoryError):
        return False
    return True


def file_exists_at(
    repo_root: str,
    rel_path: str,
    ref: str | None = None,
    *,
    settings: Settings | None = None,
) -> bool:
    """Check whether *rel_path* exists in the working tree, or in *ref*'s tree."""
    if ref is None:
        return (Path(repo_root) / rel_path).is_file()
    try:
        out = run_git(
            repo_root,
            ["ls-tree", "--name-only", ref, "--", rel_path],
            refs=[ref],
            paths=[rel_path],
            settings=settings,
        )
    except CommandFailedError:
        return False
    return rel_path in out.splitlines()


def show_file(
    repo_root: str,
    ref: str,
    rel_path: str,
    *,
    settings: Settings | None = None,
) -> str:
    """Return the content of *rel_path* at *ref* (``git show ref:path``)."""
    return run_git(
        repo_root,
        ["show", f"{ref}:{rel_path}"],
        refs=[ref],
        paths=[rel_path],
        settings=settings,
    )
