"""
Parent/Child Retriever - grounding context for generation prompts.

Scores child spans against a query and returns the owning parent spans:

1. Query -> lowercase terms longer than 2 characters
2. Child score = number of terms present in the child (presence, not frequency)
3. Top children by score -> distinct parents in rank order -> first N parents
4. No hit at all -> head of the document, so a non-empty document never
   yields empty grounding context

Presence scoring favours short factual queries; a verbose span that mentions
every term once outranks a dense span that repeats one term. That is the
observed behaviour and is kept as is.
"""
from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from learncore.core.exceptions import InvalidConfiguration
from learncore.processing.chunker import (
    CHILD_CHUNK_SIZE,
    CHILD_OVERLAP,
    PARENT_CHUNK_SIZE,
    PARENT_OVERLAP,
    ChildSpan,
    ChunkIndex,
    Document,
    build_index,
)

TOP_CHILD_COUNT = 5
TOP_PARENT_COUNT = 2
FALLBACK_CONTEXT_CHARS = 2000
MIN_TERM_LENGTH = 3
CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class ScoredChild:
    """A child span with its query score and position in the index."""

    child_index: int
    span: ChildSpan
    score: int

    @property
    def parent_index(self) -> int:
        return self.span.parent_index


def tokenize_query(query: str) -> list[str]:
    """Split a query into lowercase terms of at least MIN_TERM_LENGTH chars."""
    return [term for term in query.lower().split() if len(term) >= MIN_TERM_LENGTH]


def score_children(index: ChunkIndex, query: str) -> list[ScoredChild]:
    """
    Score every child span and rank by descending score.

    The sort is stable, so equal scores keep index order.
    """
    terms = tokenize_query(query)
    scored = []
    for i, span in enumerate(index.child_spans):
        text_lower = span.text.lower()
        score = sum(1 for term in terms if term in text_lower)
        scored.append(ScoredChild(child_index=i, span=span, score=score))

    return sorted(scored, key=lambda s: s.score, reverse=True)


def select_parents(
    ranked: list[ScoredChild],
    top_child_count: int = TOP_CHILD_COUNT,
    top_parent_count: int = TOP_PARENT_COUNT,
) -> list[int]:
    """Distinct parent indices of the best-scoring children, in rank order."""
    parents: list[int] = []
    for child in ranked[:top_child_count]:
        if child.score <= 0:
            continue
        if child.parent_index not in parents:
            parents.append(child.parent_index)
    return parents[:top_parent_count]


def retrieve(
    index: ChunkIndex,
    query: str,
    top_child_count: int = TOP_CHILD_COUNT,
    top_parent_count: int = TOP_PARENT_COUNT,
) -> str:
    """
    Build grounding context for a query.

    Args:
        index: ChunkIndex of the source document
        query: Free-text question or topic
        top_child_count: How many ranked children to consider
        top_parent_count: Maximum number of parent spans returned

    Returns:
        Parent span texts joined by CONTEXT_SEPARATOR, or the first
        FALLBACK_CONTEXT_CHARS characters of the document when nothing matches

    Raises:
        InvalidConfiguration: If either count is below 1
    """
    if top_child_count < 1 or top_parent_count < 1:
        raise InvalidConfiguration(
            f"Retrieval counts must be >= 1: top_child_count={top_child_count}, "
            f"top_parent_count={top_parent_count}"
        )

    ranked = score_children(index, query)
    parent_ids = select_parents(ranked, top_child_count, top_parent_count)

    if not parent_ids:
        if index.document.content:
            logger.warning(
                f"No span of {index.document.doc_id!r} matched query {query!r}; "
                f"falling back to document head"
            )
        return index.document.content[:FALLBACK_CONTEXT_CHARS]

    logger.debug(f"Query {query!r} matched parents {parent_ids} of {index.document.doc_id!r}")
    return CONTEXT_SEPARATOR.join(index.parent_spans[i] for i in parent_ids)


def retrieve_from_document(
    document: Document,
    query: str,
    top_child_count: int = TOP_CHILD_COUNT,
    top_parent_count: int = TOP_PARENT_COUNT,
    l_parent: int = PARENT_CHUNK_SIZE,
    o_parent: int = PARENT_OVERLAP,
    l_child: int = CHILD_CHUNK_SIZE,
    o_child: int = CHILD_OVERLAP,
) -> str:
    """Index a document and retrieve context in one call."""
    index = build_index(document, l_parent, o_parent, l_child, o_child)
    return retrieve(index, query, top_child_count, top_parent_count)
