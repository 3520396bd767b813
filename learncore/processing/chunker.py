"""
Parent/Child Chunker for uploaded study material.

Splits a document into two levels of overlapping character windows:

1. Parent spans (default 1500 chars) - coarse blocks handed to a generator
   as grounding context, large enough to keep a concept intact.
2. Child spans (default 300 chars) - fine windows used only for query
   matching, each tagged with the index of the parent it was cut from.

Matching at child granularity lets short, specific queries hit; returning
the owning parents keeps the context a generator sees from being truncated
mid-concept.

The index is an immutable value. Nothing is cached at module level, so any
number of documents can be indexed and queried independently.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from loguru import logger

from learncore.core.exceptions import InvalidConfiguration

# Default window sizes (characters)
PARENT_CHUNK_SIZE = 1500
PARENT_OVERLAP = 50
CHILD_CHUNK_SIZE = 300
CHILD_OVERLAP = 50


@dataclass(frozen=True)
class Document:
    """Source text plus an opaque identifier."""
    doc_id: str
    content: str

    def __len__(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ChildSpan:
    """
    A fine-grained window used for query matching.

    Attributes:
        text: Window text, a contiguous substring of its parent
        parent_index: Index into ChunkIndex.parent_spans
        start: Offset of the window inside its parent
    """
    text: str
    parent_index: int
    start: int = 0


@dataclass(frozen=True)
class ChunkIndex:
    """Two-level span index derived from a single Document."""
    document: Document
    parent_spans: tuple[str, ...]
    child_spans: tuple[ChildSpan, ...]
    l_parent: int = PARENT_CHUNK_SIZE
    o_parent: int = PARENT_OVERLAP
    l_child: int = CHILD_CHUNK_SIZE
    o_child: int = CHILD_OVERLAP

    @property
    def is_empty(self) -> bool:
        return not self.parent_spans

    def children_of(self, parent_index: int) -> list[ChildSpan]:
        """All child spans cut from the given parent, in order."""
        return [c for c in self.child_spans if c.parent_index == parent_index]

    def reconstruct(self) -> str:
        """
        Rebuild the source text from the parent spans.

        Every parent except the last is full length, so each later parent
        begins with exactly ``o_parent`` characters already emitted.
        """
        if not self.parent_spans:
            return ""
        head, *rest = self.parent_spans
        return head + "".join(span[self.o_parent:] for span in rest)

    def stats(self) -> dict:
        """Span counts and sizes for diagnostics."""
        return {
            "doc_id": self.document.doc_id,
            "characters": len(self.document.content),
            "parent_spans": len(self.parent_spans),
            "child_spans": len(self.child_spans),
            "avg_children_per_parent": (
                len(self.child_spans) / len(self.parent_spans) if self.parent_spans else 0.0
            ),
        }


def validate_chunk_sizes(l_parent: int, o_parent: int, l_child: int, o_child: int) -> None:
    """
    Check window parameters before any chunking is attempted.

    Raises:
        InvalidConfiguration: If any constraint is violated
    """
    sizes = {"l_parent": l_parent, "o_parent": o_parent, "l_child": l_child, "o_child": o_child}
    for name, value in sizes.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")

    if not l_parent > o_parent >= 0:
        raise InvalidConfiguration(
            f"Parent size must exceed parent overlap (>= 0): l_parent={l_parent}, o_parent={o_parent}"
        )
    if not l_child > o_child >= 0:
        raise InvalidConfiguration(
            f"Child size must exceed child overlap (>= 0): l_child={l_child}, o_child={o_child}"
        )
    if l_child > l_parent:
        raise InvalidConfiguration(
            f"Child size {l_child} cannot exceed parent size {l_parent}"
        )


def _windows(length: int, size: int, overlap: int) -> Iterator[tuple[int, int]]:
    """Yield (start, end) windows over ``length`` characters."""
    step = size - overlap
    start = 0
    while start < length:
        end = min(start + size, length)
        yield start, end
        # Stop once the tail is covered; a further window would sit inside the overlap
        if end >= length:
            break
        start += step


def build_index(
    document: Document,
    l_parent: int = PARENT_CHUNK_SIZE,
    o_parent: int = PARENT_OVERLAP,
    l_child: int = CHILD_CHUNK_SIZE,
    o_child: int = CHILD_OVERLAP,
) -> ChunkIndex:
    """
    Split a document into overlapping parent and child spans.

    Args:
        document: Source document
        l_parent: Parent window length
        o_parent: Overlap between consecutive parents
        l_child: Child window length
        o_child: Overlap between consecutive children of one parent

    Returns:
        Immutable ChunkIndex

    Raises:
        InvalidConfiguration: If the window parameters are inconsistent
    """
    validate_chunk_sizes(l_parent, o_parent, l_child, o_child)

    text = document.content
    parents: list[str] = []
    children: list[ChildSpan] = []

    for p_start, p_end in _windows(len(text), l_parent, o_parent):
        parent_text = text[p_start:p_end]
        parent_index = len(parents)
        parents.append(parent_text)

        for c_start, c_end in _windows(len(parent_text), l_child, o_child):
            children.append(ChildSpan(
                text=parent_text[c_start:c_end],
                parent_index=parent_index,
                start=c_start,
            ))

    logger.debug(
        f"Indexed document {document.doc_id!r}: {len(text)} chars -> "
        f"{len(parents)} parent / {len(children)} child spans"
    )

    return ChunkIndex(
        document=document,
        parent_spans=tuple(parents),
        child_spans=tuple(children),
        l_parent=l_parent,
        o_parent=o_parent,
        l_child=l_child,
        o_child=o_child,
    )
