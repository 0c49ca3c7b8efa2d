"""Refactoring detection over a commit's diff hunks.

Every detector works on the added/deleted lines of source files only and
scores candidates by token-set similarity. The thresholds below are part of
the observable behaviour; downstream classification depends on them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import groupby

import structlog

from git_provenance.classifiers.models import (
    CodeLocation,
    Confidence,
    RefactoringRecord,
    RefactoringType,
)
from git_provenance.core.config import Settings
from git_provenance.parsers.diff import commit_diff
from git_provenance.parsers.models import DiffHunk, DiffStatus
from git_provenance.segmenter import SourceSegmenter, get_segmenter

log = structlog.get_logger("git_provenance.classifiers.refactoring")

EXTRACT_SIMILARITY_THRESHOLD = 0.3  # jaccard, strictly greater
BODY_SIMILARITY_THRESHOLD = 0.7  # jaccard, strictly greater (rename / move)
INLINE_OVERLAP_THRESHOLD = 0.6  # share of body tokens found in additions, at least
RENAME_MODULE_HIGH_SIMILARITY = 90  # git similarity index, at least

_TOKEN_SPLIT_RE = re.compile(r"\s+|[^\w]+")
_LINE_TOKEN_RE = re.compile(r"\w+[!?]?|[^\w\s]")
_VARIABLE_RE = re.compile(r"^[a-z_][a-z0-9_]*$")

# Lines are grouped into one deleted block while they fall in the same window.
_BLOCK_WINDOW = 10


def tokenize(code: str | None, stopwords: frozenset[str] = frozenset()) -> set[str]:
    if not code:
        return set()
    return {t for t in _TOKEN_SPLIT_RE.split(code) if t and t not in stopwords}


def jaccard(a: set[str], b: set[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def overlap_ratio(part: set[str], whole: set[str]) -> float:
    """Share of *part* that also appears in *whole*."""
    if not part:
        return 0.0
    return len(part & whole) / len(part)


@dataclass
class _Function:
    file: str
    name: str
    arity: int
    body: str
    line_range: tuple[int, int]


@dataclass
class _Block:
    file: str
    code: str
    line_range: tuple[int, int]


class RefactoringDetector:
    """Detect refactorings in one commit's hunks."""

    def __init__(self, segmenter: SourceSegmenter | None = None):
        self.segmenter = segmenter or get_segmenter()

    # -- shared helpers ------------------------------------------------

    def _source_hunks(self, hunks: list[DiffHunk]) -> list[DiffHunk]:
        return [h for h in hunks if self.segmenter.is_source_file(h.file)]

    def _module(self, path: str | None) -> str | None:
        return self.segmenter.module_from_path(path)

    def _tokens(self, code: str | None) -> set[str]:
        return tokenize(code, self.segmenter.stopwords)

    def _body_tokens(self, fn: _Function) -> set[str]:
        # The function's own name is not part of its behaviour.
        return self._tokens(fn.body) - {fn.name}

    def _functions(self, file: str, numbered: list[tuple[int, str]]) -> list[_Function]:
        lines = [text for _, text in numbered]
        found: list[_Function] = []
        for sig in self.segmenter.function_definitions(lines):
            body = self.segmenter.function_body(lines, sig.line_index)
            last = sig.line_index + max(len(body), 1) - 1
            found.append(
                _Function(
                    file=file,
                    name=sig.name,
                    arity=sig.arity,
                    body="\n".join(body),
                    line_range=(numbered[sig.line_index][0], numbered[last][0]),
                )
            )
        return found

    def _deleted_blocks(self, hunks: list[DiffHunk]) -> list[_Block]:
        blocks: list[_Block] = []
        for hunk in hunks:
            for _, group in groupby(hunk.deletions, key=lambda d: d[0] // _BLOCK_WINDOW):
                rows = list(group)
                blocks.append(
                    _Block(
                        file=hunk.file,
                        code="\n".join(text for _, text in rows),
                        line_range=(rows[0][0], rows[-1][0]),
                    )
                )
        return blocks

    # -- detectors -----------------------------------------------------

    def extract_functions(
        self,
        hunks: list[DiffHunk],
        commit_sha: str | None = None,
        exclude: set[tuple[str, str, int]] | None = None,
    ) -> list[RefactoringRecord]:
        """New function plus a call to it (high) or similar deleted code (medium)."""
        exclude = exclude or set()
        source = self._source_hunks(hunks)
        blocks = self._deleted_blocks(source)

        calls: dict[str, int] = {}
        for hunk in source:
            for name in self.segmenter.calls(hunk.added_text):
                calls[name] = calls.get(name, 0) + 1

        records: list[RefactoringRecord] = []
        for hunk in source:
            deleted_sigs = {
                (s.name, s.arity)
                for s in self.segmenter.function_definitions([t for _, t in hunk.deletions])
            }
            for fn in self._functions(hunk.file, hunk.additions):
                if (fn.name, fn.arity) in deleted_sigs:
                    continue  # pre-existing function whose header changed
                if (fn.file, fn.name, fn.arity) in exclude:
                    continue
                target = CodeLocation(
                    file=fn.file,
                    module=self._module(fn.file),
                    function=(fn.name, fn.arity),
                    line_range=fn.line_range,
                    code=fn.body,
                )
                call_count = calls.get(fn.name, 0)
                if call_count:
                    largest = max(blocks, key=lambda b: len(b.code), default=None)
                    records.append(
                        RefactoringRecord(
                            type=RefactoringType.EXTRACT_FUNCTION,
                            source=CodeLocation(
                                file=largest.file if largest else fn.file,
                                module=self._module(largest.file if largest else fn.file),
                                line_range=largest.line_range if largest else None,
                                code=largest.code if largest else None,
                            ),
                            target=target,
                            confidence=Confidence.HIGH,
                            commit_sha=commit_sha,
                            metadata={"calls_found": call_count},
                        )
                    )
                    continue

                fn_tokens = self._tokens(fn.body)
                scored = [(jaccard(fn_tokens, self._tokens(b.code)), b) for b in blocks]
                best = max(scored, key=lambda pair: pair[0], default=None)
                if best is not None and best[0] > EXTRACT_SIMILARITY_THRESHOLD:
                    similarity, block = best
                    records.append(
                        RefactoringRecord(
                            type=RefactoringType.EXTRACT_FUNCTION,
                            source=CodeLocation(
                                file=block.file,
                                module=self._module(block.file),
                                line_range=block.line_range,
                                code=block.code,
                            ),
                            target=target,
                            confidence=Confidence.MEDIUM,
                            commit_sha=commit_sha,
                            metadata={"calls_found": 0, "similarity": round(similarity, 3)},
                        )
                    )
        return records

    def extract_modules(
        self, hunks: list[DiffHunk], commit_sha: str | None = None
    ) -> list[RefactoringRecord]:
        """New module file whose functions were deleted from existing files."""
        source = self._source_hunks(hunks)
        deleted: list[tuple[str, str, int]] = []
        for hunk in source:
            if hunk.status is not DiffStatus.MODIFIED:
                continue
            for sig in self.segmenter.function_definitions([t for _, t in hunk.deletions]):
                entry = (hunk.file, sig.name, sig.arity)
                if entry not in deleted:
                    deleted.append(entry)

        records: list[RefactoringRecord] = []
        for hunk in source:
            if hunk.status is not DiffStatus.ADDED:
                continue
            declared = self.segmenter.module_declarations(hunk.added_text)
            if not declared:
                continue
            new_functions = {
                (s.name, s.arity)
                for s in self.segmenter.function_definitions([t for _, t in hunk.additions])
            }
            moved = [d for d in deleted if (d[1], d[2]) in new_functions]
            if not moved:
                continue
            source_file = moved[0][0]
            records.append(
                RefactoringRecord(
                    type=RefactoringType.EXTRACT_MODULE,
                    source=CodeLocation(file=source_file, module=self._module(source_file)),
                    target=CodeLocation(file=hunk.file, module=declared[0]),
                    confidence=Confidence.HIGH,
                    commit_sha=commit_sha,
                    metadata={
                        "functions_moved": len(moved),
                        "function_names": [f"{name}/{arity}" for _, name, arity in moved],
                    },
                )
            )
        return records

    def rename_functions(
        self, hunks: list[DiffHunk], commit_sha: str | None = None
    ) -> list[RefactoringRecord]:
        """Same file, same arity, different name, near-identical body."""
        records: list[RefactoringRecord] = []
        for hunk in self._source_hunks(hunks):
            if hunk.status is not DiffStatus.MODIFIED:
                continue
            removed = self._functions(hunk.file, hunk.deletions)
            added = self._functions(hunk.file, hunk.additions)
            added_names = {(f.name, f.arity) for f in added}
            removed_names = {(f.name, f.arity) for f in removed}
            for old in removed:
                if (old.name, old.arity) in added_names:
                    continue
                old_tokens = self._body_tokens(old)
                for new in added:
                    if new.name == old.name or new.arity != old.arity:
                        continue
                    if (new.name, new.arity) in removed_names:
                        continue
                    similarity = jaccard(old_tokens, self._body_tokens(new))
                    if similarity <= BODY_SIMILARITY_THRESHOLD:
                        continue
                    module = self._module(hunk.file)
                    records.append(
                        RefactoringRecord(
                            type=RefactoringType.RENAME_FUNCTION,
                            source=CodeLocation(
                                file=hunk.file,
                                module=module,
                                function=(old.name, old.arity),
                                line_range=old.line_range,
                                code=old.body,
                            ),
                            target=CodeLocation(
                                file=hunk.file,
                                module=module,
                                function=(new.name, new.arity),
                                line_range=new.line_range,
                                code=new.body,
                            ),
                            confidence=Confidence.HIGH,
                            commit_sha=commit_sha,
                            metadata={"similarity": round(similarity, 3)},
                        )
                    )
        return records

    def move_functions(
        self, hunks: list[DiffHunk], commit_sha: str | None = None
    ) -> list[RefactoringRecord]:
        """Same name and arity, different file, near-identical body."""
        source = self._source_hunks(hunks)
        removed = [f for h in source for f in self._functions(h.file, h.deletions)]
        added = [f for h in source for f in self._functions(h.file, h.additions)]

        records: list[RefactoringRecord] = []
        for old in removed:
            old_tokens = self._body_tokens(old)
            for new in added:
                if new.file == old.file or new.name != old.name or new.arity != old.arity:
                    continue
                similarity = jaccard(old_tokens, self._body_tokens(new))
                if similarity <= BODY_SIMILARITY_THRESHOLD:
                    continue
                records.append(
                    RefactoringRecord(
                        type=RefactoringType.MOVE_FUNCTION,
                        source=CodeLocation(
                            file=old.file,
                            module=self._module(old.file),
                            function=(old.name, old.arity),
                            line_range=old.line_range,
                            code=old.body,
                        ),
                        target=CodeLocation(
                            file=new.file,
                            module=self._module(new.file),
                            function=(new.name, new.arity),
                            line_range=new.line_range,
                            code=new.body,
                        ),
                        confidence=Confidence.HIGH,
                        commit_sha=commit_sha,
                        metadata={"similarity": round(similarity, 3)},
                    )
                )
        return records

    def rename_modules(
        self, hunks: list[DiffHunk], commit_sha: str | None = None
    ) -> list[RefactoringRecord]:
        records: list[RefactoringRecord] = []
        for hunk in hunks:
            if hunk.status is not DiffStatus.RENAMED:
                continue
            if not self.segmenter.is_source_file(hunk.file):
                continue
            high = (
                hunk.similarity is not None
                and hunk.similarity >= RENAME_MODULE_HIGH_SIMILARITY
            )
            records.append(
                RefactoringRecord(
                    type=RefactoringType.RENAME_MODULE,
                    source=CodeLocation(
                        file=hunk.old_file or hunk.file, module=self._module(hunk.old_file)
                    ),
                    target=CodeLocation(file=hunk.file, module=self._module(hunk.file)),
                    confidence=Confidence.HIGH if high else Confidence.MEDIUM,
                    commit_sha=commit_sha,
                    metadata={"similarity": hunk.similarity},
                )
            )
        return records

    def inline_functions(
        self,
        hunks: list[DiffHunk],
        commit_sha: str | None = None,
        exclude: set[tuple[str, str, int]] | None = None,
    ) -> list[RefactoringRecord]:
        """Deleted function whose body tokens resurface in the commit's additions."""
        exclude = exclude or set()
        source = self._source_hunks(hunks)
        added_tokens: set[str] = set()
        surviving: set[tuple[str, int]] = set()
        for hunk in source:
            added_tokens |= self._tokens(hunk.added_text)
            surviving |= {
                (s.name, s.arity)
                for s in self.segmenter.function_definitions([t for _, t in hunk.additions])
            }

        records: list[RefactoringRecord] = []
        for hunk in source:
            if hunk.status is not DiffStatus.MODIFIED:
                continue
            for fn in self._functions(hunk.file, hunk.deletions):
                if (fn.name, fn.arity) in surviving or (fn.file, fn.name, fn.arity) in exclude:
                    continue
                ratio = overlap_ratio(self._body_tokens(fn), added_tokens)
                if ratio < INLINE_OVERLAP_THRESHOLD:
                    continue
                records.append(
                    RefactoringRecord(
                        type=RefactoringType.INLINE_FUNCTION,
                        source=CodeLocation(
                            file=fn.file,
                            module=self._module(fn.file),
                            function=(fn.name, fn.arity),
                            line_range=fn.line_range,
                            code=fn.body,
                        ),
                        target=CodeLocation(file=fn.file),
                        confidence=Confidence.MEDIUM,
                        commit_sha=commit_sha,
                        metadata={"overlap": round(ratio, 3)},
                    )
                )
        return records

    def rename_variables(
        self, hunks: list[DiffHunk], commit_sha: str | None = None
    ) -> list[RefactoringRecord]:
        """Line pairs identical except for one consistently substituted identifier."""
        found: dict[tuple[str, str, str], list[int]] = {}
        for hunk in self._source_hunks(hunks):
            if hunk.status is not DiffStatus.MODIFIED:
                continue
            added_at = dict(hunk.additions)
            runs: dict[int, list[str]] = {}
            for number, text in hunk.deletions:
                runs.setdefault(number, []).append(text)
            for start, deleted_lines in runs.items():
                for offset, old_line in enumerate(deleted_lines):
                    new_line = added_at.get(start + offset)
                    if new_line is None:
                        continue
                    pair = self._substitution(old_line, new_line)
                    if pair is not None:
                        found.setdefault((hunk.file, *pair), []).append(start + offset)

        records: list[RefactoringRecord] = []
        for (file, old_name, new_name), lines in found.items():
            line_range = (min(lines), max(lines))
            module = self._module(file)
            records.append(
                RefactoringRecord(
                    type=RefactoringType.RENAME_VARIABLE,
                    source=CodeLocation(file=file, module=module, line_range=line_range),
                    target=CodeLocation(file=file, module=module, line_range=line_range),
                    confidence=Confidence.LOW,
                    commit_sha=commit_sha,
                    metadata={
                        "old_name": old_name,
                        "new_name": new_name,
                        "occurrences": len(lines),
                    },
                )
            )
        return records

    def _substitution(self, old_line: str, new_line: str) -> tuple[str, str] | None:
        if self.segmenter.function_definitions([old_line]):
            return None
        old_tokens = _LINE_TOKEN_RE.findall(old_line)
        new_tokens = _LINE_TOKEN_RE.findall(new_line)
        if len(old_tokens) != len(new_tokens) or old_tokens == new_tokens:
            return None
        pairs: set[tuple[str, str]] = set()
        for i, (a, b) in enumerate(zip(old_tokens, new_tokens)):
            if a == b:
                continue
            if not (_VARIABLE_RE.match(a) and _VARIABLE_RE.match(b)):
                return None
            if a in self.segmenter.stopwords or b in self.segmenter.stopwords:
                return None
            if i + 1 < len(old_tokens) and old_tokens[i + 1] == "(":
                return None  # a call, not a variable
            pairs.add((a, b))
        if len(pairs) != 1:
            return None
        return pairs.pop()

    # -- entry point ---------------------------------------------------

    def detect(
        self, hunks: list[DiffHunk], commit_sha: str | None = None
    ) -> list[RefactoringRecord]:
        """Run every detector; strongest detections first."""
        renames = self.rename_functions(hunks, commit_sha)
        moves = self.move_functions(hunks, commit_sha)
        targets = {
            (r.target.file, *r.target.function) for r in renames + moves if r.target.function
        }
        sources = {
            (r.source.file, *r.source.function) for r in renames + moves if r.source.function
        }
        records = (
            self.extract_functions(hunks, commit_sha, exclude=targets)
            + self.extract_modules(hunks, commit_sha)
            + renames
            + self.rename_modules(hunks, commit_sha)
            + self.rename_variables(hunks, commit_sha)
            + self.inline_functions(hunks, commit_sha, exclude=sources)
            + moves
        )
        return sorted(records, key=lambda r: r.confidence.rank)


def detect_in_hunks(
    hunks: list[DiffHunk],
    commit_sha: str | None = None,
    segmenter: SourceSegmenter | None = None,
) -> list[RefactoringRecord]:
    return RefactoringDetector(segmenter).detect(hunks, commit_sha)


def detect_refactorings(
    repo_path: str,
    sha: str,
    *,
    segmenter: SourceSegmenter | None = None,
    settings: Settings | None = None,
) -> list[RefactoringRecord]:
    """Fetch *sha*'s diff and detect refactorings in it."""
    hunks = commit_diff(repo_path, sha, settings=settings)
    records = detect_in_hunks(hunks, sha, segmenter)
    log.debug("refactoring.detected", sha=sha[:7], count=len(records))
    return records
