"""Source segmenter interface and registry.

A segmenter knows just enough of one language's concrete syntax to find
module and function boundaries by keyword/delimiter depth counting. It is not
a parser; everything built on top of it is heuristic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class FunctionSignature:
    """A function definition header found in a block of source lines."""

    name: str
    arity: int
    line_index: int  # 0-based index into the scanned lines
    keyword: str  # e.g. "def" / "defp"

    @property
    def is_private(self) -> bool:
        return self.keyword.endswith("p")


@dataclass(frozen=True)
class FunctionSource:
    """All clauses of one function (name/arity) within a module."""

    name: str
    arity: int
    source: str
    line_range: tuple[int, int]  # 1-based, inclusive
    clause_count: int


@dataclass(frozen=True)
class DefinitionCounts:
    """Definition tallies for one file (or, summed, a whole tree)."""

    functions: int = 0  # one per clause
    macros: int = 0
    protocols: int = 0
    behaviours: int = 0  # modules that declare callbacks

    def __add__(self, other: DefinitionCounts) -> DefinitionCounts:
        return DefinitionCounts(
            functions=self.functions + other.functions,
            macros=self.macros + other.macros,
            protocols=self.protocols + other.protocols,
            behaviours=self.behaviours + other.behaviours,
        )


@runtime_checkable
class SourceSegmenter(Protocol):
    """Interface every language segmenter must satisfy."""

    language: str
    file_extensions: list[str]
    stopwords: frozenset[str]

    def is_source_file(self, path: str) -> bool: ...

    def is_library_file(self, path: str) -> bool: ...

    def module_from_path(self, path: str) -> str | None: ...

    def module_file_candidates(self, module: str) -> list[str]: ...

    def declares_module(self, content: str, module: str) -> bool: ...

    def module_declarations(self, text: str) -> list[str]: ...

    def extract_module(self, content: str, module: str) -> str: ...

    def extract_function(self, content: str, name: str, arity: int) -> FunctionSource: ...

    def function_definitions(self, lines: list[str]) -> list[FunctionSignature]: ...

    def function_body(self, lines: list[str], start: int) -> list[str]: ...

    def function_names(self, source: str) -> list[str]: ...

    def calls(self, text: str) -> list[str]: ...

    def definition_counts(self, source: str) -> DefinitionCounts: ...


SEGMENTER_REGISTRY: dict[str, SourceSegmenter] = {}

DEFAULT_LANGUAGE = "elixir"


def register_segmenter(segmenter: SourceSegmenter) -> None:
    """Register a segmenter instance by its language name."""
    SEGMENTER_REGISTRY[segmenter.language] = segmenter


def get_segmenter(language: str | None = None) -> SourceSegmenter:
    """Return the registered segmenter for *language* (default: elixir)."""
    key = language or DEFAULT_LANGUAGE
    try:
        return SEGMENTER_REGISTRY[key]
    except KeyError:
        raise LookupError(f"No source segmenter registered for {key!r}") from None


def count_arity(params: str) -> int:
    """Count top-level comma separated parameters, ignoring nested brackets."""
    params = params.strip()
    if not params:
        return 0
    depth = 0
    count = 1
    for ch in params:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
        elif ch == "," and depth == 0:
            count += 1
    return count


def balanced_args(text: str, open_index: int) -> str | None:
    """Return the text between ``text[open_index]`` == "(" and its matching ")".

    ``None`` when the parenthesis is not closed on this text.
    """
    depth = 0
    for i in range(open_index, len(text)):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[open_index + 1 : i]
    return None
