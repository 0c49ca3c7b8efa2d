"""Git command runner: validated, read-only subprocess calls with a deadline."""

from __future__ import annotations

import asyncio
import subprocess
from collections.abc import Iterable, Sequence

import structlog

from git_provenance.core.config import Settings, load_settings
from git_provenance.exceptions import CommandFailedError, CommandTimeoutError, InvalidPathError
from git_provenance.git.validation import validate_path, validate_ref

log = structlog.get_logger("git_provenance.git")


def _prepare(
    args: Sequence[str],
    refs: Iterable[str],
    paths: Iterable[str],
) -> list[str]:
    for ref in refs:
        validate_ref(ref)
    for path in paths:
        validate_path(path)
    argv = [str(a) for a in args]
    # Each argument is passed as its own argv element; NUL cannot cross exec().
    for arg in argv:
        if "\x00" in arg:
            raise InvalidPathError(arg)
    return argv


def run_git(
    repo_path: str,
    args: Sequence[str],
    *,
    refs: Iterable[str] = (),
    paths: Iterable[str] = (),
    timeout: float | None = None,
    settings: Settings | None = None,
) -> str:
    """Run ``git <args>`` inside *repo_path* and return its stdout.

    *refs* and *paths* name the arguments that came from callers; they are
    checked against the ref allow-list and path safety rules before anything
    is spawned.

    Raises ``CommandTimeoutError`` when the deadline passes (the child is
    killed) and ``CommandFailedError`` on a non-zero exit, with stderr
    appended to the captured output.
    """
    settings = settings or load_settings()
    deadline = timeout if timeout is not None else settings.timeout
    argv = _prepare(args, refs, paths)
    cmd = [settings.git_binary, *argv]

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            errors="replace",
            cwd=repo_path,
            timeout=deadline,
        )
    except subprocess.TimeoutExpired as exc:
        log.warning("runner.timeout", args=argv[:2], timeout=deadline, repo=repo_path)
        raise CommandTimeoutError(argv, deadline) from exc
    except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
        log.warning("runner.spawn_failed", args=argv[:2], repo=repo_path, error=str(exc))
        raise CommandFailedError(argv, -1, str(exc)) from exc

    if result.returncode != 0:
        log.debug(
            "runner.failed",
            args=argv[:2],
            returncode=result.returncode,
            repo=repo_path,
        )
        raise CommandFailedError(argv, result.returncode, result.stdout + result.stderr)
    return result.stdout


async def run_git_async(
    repo_path: str,
    args: Sequence[str],
    *,
    refs: Iterable[str] = (),
    paths: Iterable[str] = (),
    timeout: float | None = None,
    settings: Settings | None = None,
) -> str:
    """Async variant of :func:`run_git` for callers fanning out over commits."""
    settings = settings or load_settings()
    deadline = timeout if timeout is not None else settings.timeout
    argv = _prepare(args, refs, paths)

    try:
        proc = await asyncio.create_subprocess_exec(
            settings.git_binary,
            *argv,
            cwd=repo_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
        log.warning("runner.spawn_failed", args=argv[:2], repo=repo_path, error=str(exc))
        raise CommandFailedError(argv, -1, str(exc)) from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=deadline)
    except asyncio.TimeoutError as exc:
        if proc.returncode is None:
            proc.kill()
        await proc.wait()
        log.warning("runner.timeout", args=argv[:2], timeout=deadline, repo=repo_path)
        raise CommandTimeoutError(argv, deadline) from exc

    out = stdout.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        err = stderr.decode("utf-8", errors="replace")
        log.debug(
            "runner.failed",
            args=argv[:2],
            returncode=proc.returncode,
            repo=repo_path,
        )
        raise CommandFailedError(argv, proc.returncode or -1, out + err)
    return out
