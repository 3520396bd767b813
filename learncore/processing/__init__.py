"""
Processing module for study material chunking and retrieval.

Splits uploaded documents into parent/child spans and retrieves grounding
context for generation prompts.
"""

from .chunker import (
    ChildSpan,
    ChunkIndex,
    Document,
    build_index,
)
from .retriever import (
    ScoredChild,
    retrieve,
    retrieve_from_document,
    score_children,
)

__all__ = [
    "ChildSpan",
    "ChunkIndex",
    "Document",
    "ScoredChild",
    "build_index",
    "retrieve",
    "retrieve_from_document",
    "score_children",
]
