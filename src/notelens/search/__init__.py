"""Semantic search and explain-in-context."""

from notelens.search.explain import find_selection, highlight_in_context
from notelens.search.query import QueryService

__all__ = ["QueryService", "find_selection", "highlight_in_context"]
