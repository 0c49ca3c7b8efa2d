"""Provenance extraction from git history.

Turns commits, blame, diffs and tags into PROV-O style records: entities
(file, module and function versions), activities (classified commits) and
agents (developers, bots, CI and LLM tools).
"""

from git_provenance.exceptions import ProvenanceError

__version__ = "0.1.0"

__all__ = ["ProvenanceError", "__version__"]
