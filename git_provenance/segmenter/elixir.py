"""Elixir segmenter: do/end depth counting over raw source lines."""

from __future__ import annotations

import re

from git_provenance.exceptions import (
    FunctionNotFoundError,
    MalformedModuleError,
    ModuleNotFoundInSourceError,
)
from git_provenance.segmenter.base import (
    DefinitionCounts,
    FunctionSignature,
    FunctionSource,
    balanced_args,
    count_arity,
    register_segmenter,
)

_DEF_RE = re.compile(r"\b(defp?)\s+([a-z_][a-z0-9_]*[!?]?)\s*\(")
# def name do / def name, do: ... / def name when ... (zero arity, no parens)
_DEF_NOARGS_RE = re.compile(r"\b(defp?)\s+([a-z_][a-z0-9_]*[!?]?)(?=\s*(?:,|\bdo\b|\bwhen\b|$))")
_DEF_HEADER_RE = re.compile(r"\bdef(?:macro)?p?\s+[a-z_][a-z0-9_]*[!?]?")
_SIBLING_RE = re.compile(r"^(def|defp|defmacro|defmacrop)\s")
_CALL_RE = re.compile(r"\b([a-z_][a-z0-9_]*[!?]?)\s*\(")
_MODULE_DECL_RE = re.compile(r"defmodule\s+([A-Z][\w.]+)")
_FUNCTION_NAME_RE = re.compile(r"^\s*(?:def|defp)\s+([a-z_][a-z0-9_]*[!?]?)", re.MULTILINE)
_OPENS_BLOCK_RE = re.compile(r"\bdo\s*(?:#.*)?$")
_BODY_OPEN_RE = re.compile(r"\b(do|fn)\b")
_BODY_CLOSE_RE = re.compile(r"\bend\b")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_PATH_PREFIX_RE = re.compile(r"^(lib|test)/")
_EXTENSION_RE = re.compile(r"\.exs?$")
_LIBRARY_PATH_RE = re.compile(r"^(?:lib|apps/[^/]+/lib)/")
_FUNCTION_CLAUSE_RE = re.compile(r"^\s*defp?\s+[a-z_]", re.MULTILINE)
_MACRO_CLAUSE_RE = re.compile(r"^\s*defmacrop?\s+[a-z_]", re.MULTILINE)
_PROTOCOL_RE = re.compile(r"^\s*defprotocol\s+[A-Z]", re.MULTILINE)
_MODULE_OPEN_RE = re.compile(r"^\s*defmodule\s+[A-Z]")
_CALLBACK_RE = re.compile(r"^\s*@callback\b")

# Calls to these never name a user function.
_CALL_KEYWORDS = frozenset({"if", "unless", "case", "cond", "with", "for", "fn", "receive", "try"})


def camelize(segment: str) -> str:
    """``foo_bar`` -> ``FooBar``."""
    return "".join(part[:1].upper() + part[1:] for part in segment.split("_") if part)


def underscore(module: str) -> str:
    """``MyApp.HTTPClient`` -> ``my_app/http_client``."""
    return "/".join(
        _CAMEL_BOUNDARY_RE.sub("_", segment).lower() for segment in module.split(".")
    )


def block_depth_delta(line: str) -> int:
    """+1 for a line opening a do-block, -1 for a bare ``end``."""
    trimmed = line.strip()
    if trimmed.startswith("#"):
        return 0
    if trimmed == "end":
        return -1
    if trimmed == "do" or _OPENS_BLOCK_RE.search(trimmed):
        return 1
    return 0


class ElixirSegmenter:
    language = "elixir"
    file_extensions = [".ex", ".exs"]
    stopwords = frozenset({"def", "defp", "do", "end", "fn", "if", "else", "case", "cond", "with"})

    def is_source_file(self, path: str | None) -> bool:
        return bool(path) and path.endswith((".ex", ".exs"))

    def is_library_file(self, path: str | None) -> bool:
        """Source under ``lib/``, or ``apps/<app>/lib/`` in an umbrella project."""
        return self.is_source_file(path) and _LIBRARY_PATH_RE.match(path) is not None

    def module_from_path(self, path: str | None) -> str | None:
        if not path:
            return None
        stem = _EXTENSION_RE.sub("", _PATH_PREFIX_RE.sub("", path))
        return ".".join(camelize(seg) for seg in stem.split("/") if seg)

    def module_file_candidates(self, module: str) -> list[str]:
        base = underscore(module)
        return [f"lib/{base}.ex", f"lib/{base}.exs", f"test/{base}_test.exs"]

    def declares_module(self, content: str, module: str) -> bool:
        return re.search(rf"defmodule\s+{re.escape(module)}\b", content) is not None

    def module_declarations(self, text: str) -> list[str]:
        return _MODULE_DECL_RE.findall(text)

    def extract_module(self, content: str, module: str) -> str:
        """Return the ``defmodule <module> do ... end`` block.

        Raises ``ModuleNotFoundInSourceError`` when the declaration is missing
        and ``MalformedModuleError`` when its block never closes.
        """
        lines = content.split("\n")
        start_re = re.compile(rf"^\s*defmodule\s+{re.escape(module)}\s+do\s*$")
        start = next((i for i, line in enumerate(lines) if start_re.match(line)), None)
        if start is None:
            raise ModuleNotFoundInSourceError(module)

        depth = 1
        for i in range(start + 1, len(lines)):
            depth += block_depth_delta(lines[i])
            if depth == 0:
                return "\n".join(lines[start : i + 1])
        raise MalformedModuleError(module)

    def _clause_end(self, lines: list[str], start: int) -> int:
        depth = block_depth_delta(lines[start])
        if depth <= 0:
            # Keyword form (", do:"): runs until the next sibling or a bare end.
            for i in range(start + 1, len(lines)):
                trimmed = lines[i].strip()
                if _SIBLING_RE.match(trimmed) or trimmed == "end":
                    return i - 1
            return len(lines) - 1
        for i in range(start + 1, len(lines)):
            depth += block_depth_delta(lines[i])
            if depth == 0:
                return i
        return len(lines) - 1

    def extract_function(self, content: str, name: str, arity: int) -> FunctionSource:
        """Span every clause of ``name/arity`` from the first to the last."""
        lines = content.split("\n")
        clause_re = re.compile(rf"^\s*(def|defp)\s+{re.escape(name)}(?![\w!?])")
        clauses: list[tuple[int, int]] = []
        for sig in self.function_definitions(lines):
            if sig.name != name or sig.arity != arity:
                continue
            if not clause_re.match(lines[sig.line_index]):
                continue
            clauses.append((sig.line_index, self._clause_end(lines, sig.line_index)))
        if not clauses:
            raise FunctionNotFoundError("", name, arity)

        first = min(s for s, _ in clauses)
        last = max(e for _, e in clauses)
        return FunctionSource(
            name=name,
            arity=arity,
            source="\n".join(lines[first : last + 1]),
            line_range=(first + 1, last + 1),
            clause_count=len(clauses),
        )

    def function_definitions(self, lines: list[str]) -> list[FunctionSignature]:
        sigs: list[FunctionSignature] = []
        for idx, line in enumerate(lines):
            match = _DEF_RE.search(line)
            if match:
                args = balanced_args(line, match.end() - 1)
                if args is None:
                    # Signature continues on later lines; count what is visible.
                    args = line[match.end():].split(")", 1)[0]
                sigs.append(
                    FunctionSignature(match.group(2), count_arity(args), idx, match.group(1))
                )
                continue
            match = _DEF_NOARGS_RE.search(line)
            if match:
                sigs.append(FunctionSignature(match.group(2), 0, idx, match.group(1)))
        return sigs

    def function_body(self, lines: list[str], start: int) -> list[str]:
        """Lines from *start* until its do/fn ... end nesting closes."""
        body: list[str] = []
        depth = 0
        for line in lines[start:]:
            body.append(line)
            new_depth = (
                depth + len(_BODY_OPEN_RE.findall(line)) - len(_BODY_CLOSE_RE.findall(line))
            )
            if depth > 0 and new_depth <= 0:
                break
            if depth == 0 and re.search(r"\bdo\b", line):
                new_depth = max(new_depth, 1)
                if "do:" in line and not _OPENS_BLOCK_RE.search(line.strip()):
                    # Keyword form closes on the same line.
                    break
            depth = max(new_depth, 0)
        return body

    def function_names(self, source: str) -> list[str]:
        return list(dict.fromkeys(_FUNCTION_NAME_RE.findall(source)))

    def calls(self, text: str) -> list[str]:
        stripped = _DEF_HEADER_RE.sub(" ", text)
        return [name for name in _CALL_RE.findall(stripped) if name not in _CALL_KEYWORDS]

    def _behaviour_count(self, lines: list[str]) -> int:
        # Open modules as [depth before the defmodule line, saw a callback].
        open_modules: list[list] = []
        depth = 0
        count = 0
        for line in lines:
            if _MODULE_OPEN_RE.match(line):
                open_modules.append([depth, False])
            elif open_modules and _CALLBACK_RE.match(line):
                open_modules[-1][1] = True
            depth += block_depth_delta(line)
            while open_modules and depth <= open_modules[-1][0]:
                count += open_modules.pop()[1]
        return count + sum(flag for _, flag in open_modules)

    def definition_counts(self, source: str) -> DefinitionCounts:
        return DefinitionCounts(
            functions=len(_FUNCTION_CLAUSE_RE.findall(source)),
            macros=len(_MACRO_CLAUSE_RE.findall(source)),
            protocols=len(_PROTOCOL_RE.findall(source)),
            behaviours=self._behaviour_count(source.split("\n")),
        )


register_segmenter(ElixirSegmenter())
