"""Source segmenters: auto-registered on import."""

from git_provenance.segmenter import elixir  # noqa: F401
from git_provenance.segmenter.base import (
    SEGMENTER_REGISTRY,
    DefinitionCounts,
    FunctionSignature,
    FunctionSource,
    SourceSegmenter,
    count_arity,
    get_segmenter,
    register_segmenter,
)

__all__ = [
    "SEGMENTER_REGISTRY",
    "DefinitionCounts",
    "FunctionSignature",
    "FunctionSource",
    "SourceSegmenter",
    "count_arity",
    "get_segmenter",
    "register_segmenter",
]
