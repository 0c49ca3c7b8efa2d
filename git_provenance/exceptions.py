"""Custom exceptions for git_provenance.

Every failure a provenance extraction can report is a subclass of
:class:`ProvenanceError` and carries a stable ``reason`` string so callers can
branch on the kind of failure without importing every class.
"""

from __future__ import annotations


class ProvenanceError(Exception):
    """Base exception for all provenance extraction errors."""

    reason = "error"


class NotARepositoryError(ProvenanceError):
    """Raised when no enclosing git repository can be found."""

    reason = "not_found"


class InvalidRefError(ProvenanceError):
    """Raised when a ref is rejected by validation or unknown to git."""

    reason = "invalid_ref"

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Invalid git reference: {ref!r}")


class InvalidPathError(ProvenanceError):
    """Raised when a path argument fails the safety checks."""

    reason = "invalid_path"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Invalid or unsafe path: {path!r}")


class OutsideRepoError(ProvenanceError):
    """Raised when an absolute path does not live under the repository root."""

    reason = "outside_repo"

    def __init__(self, path: str, repo_root: str):
        self.path = path
        self.repo_root = repo_root
        super().__init__(f"Path {path!r} is outside repository {repo_root!r}")


class FileNotFoundInRepoError(ProvenanceError):
    """Raised when a file does not exist at the requested revision."""

    reason = "file_not_found"

    def __init__(self, path: str, ref: str | None = None):
        self.path = path
        self.ref = ref
        at = f" at {ref}" if ref else ""
        super().__init__(f"File not found{at}: {path}")


class FileNotTrackedError(ProvenanceError):
    """Raised when a file has no commits in its history."""

    reason = "file_not_tracked"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"File is not tracked by git: {path}")


class CommandFailedError(ProvenanceError):
    """Raised when git exits with a non-zero status."""

    reason = "command_failed"

    def __init__(self, args: list[str], returncode: int, output: str = ""):
        self.command_args = list(args)
        self.returncode = returncode
        self.output = output
        detail = output.strip().splitlines()[0] if output.strip() else ""
        super().__init__(
            f"git {' '.join(args[:2])} failed (exit {returncode})"
            + (f": {detail}" if detail else "")
        )


class CommandTimeoutError(ProvenanceError):
    """Raised when git does not finish before the deadline."""

    reason = "timeout"

    def __init__(self, args: list[str], timeout: float):
        self.command_args = list(args)
        self.timeout = timeout
        super().__init__(f"git {' '.join(args[:2])} timed out after {timeout:g}s")


class ParseError(ProvenanceError):
    """Raised when git output does not have the expected shape."""

    reason = "parse_error"


class NotConventionalError(ProvenanceError):
    """Raised when a commit subject is not a conventional commit header."""

    reason = "not_conventional"


class NoMatchError(ProvenanceError):
    """Raised when no CODEOWNERS rule matches a path."""

    reason = "no_match"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No CODEOWNERS rule matches {path}")


class ModuleNotFoundInSourceError(ProvenanceError):
    """Raised when a module declaration cannot be located."""

    reason = "module_not_found"

    def __init__(self, module: str, ref: str | None = None):
        self.module = module
        self.ref = ref
        at = f" at {ref}" if ref else ""
        super().__init__(f"Module {module} not found{at}")


class FunctionNotFoundError(ProvenanceError):
    """Raised when no clause of a function with the given arity exists."""

    reason = "function_not_found"

    def __init__(self, module: str, name: str, arity: int):
        self.module = module
        self.name = name
        self.arity = arity
        super().__init__(f"Function {module}.{name}/{arity} not found")


class MalformedModuleError(ProvenanceError):
    """Raised when a module's block delimiters never balance."""

    reason = "malformed_module"

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"Module {module} has unbalanced do/end blocks")


class DeveloperNotFoundError(ProvenanceError):
    """Raised when no developer with the requested email appears in history."""

    reason = "not_found"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"No commits found for developer {email}")


_MESSAGES: dict[str, str] = {
    "not_found": "Git repository not found",
    "invalid_ref": "Invalid git reference",
    "invalid_path": "Invalid or unsafe file path",
    "outside_repo": "Path is outside the repository",
    "file_not_found": "File not found",
    "file_not_tracked": "File is not tracked by git",
    "command_failed": "Git command failed",
    "parse_error": "Failed to parse git output",
    "timeout": "Git command timed out",
    "not_conventional": "Commit message is not a conventional commit",
    "no_match": "No matching CODEOWNERS rule",
    "module_not_found": "Module not found",
    "function_not_found": "Function not found",
    "malformed_module": "Module source is malformed",
}


def format_error(exc: BaseException) -> str:
    """Render a short human-readable message for *exc*."""
    reason = getattr(exc, "reason", None)
    if reason is None:
        return f"Unexpected error: {exc}"
    return _MESSAGES.get(reason, f"Error: {reason}")
