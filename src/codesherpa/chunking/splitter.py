"""
Size bounding for chunks.

Oversized chunks are cut into overlapping fragments. Each cut lands on the
best boundary found between the step target and the size limit, so a
fragment never exceeds ``max_size`` characters.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List

from .types import CodeChunk

STATEMENT_BOUNDARIES = (";", "}", "{")


def find_semantic_boundary(content: str, target: int, limit: int) -> int:
    """
    Return the cut position for the window ``content[target:limit]``.

    Priority: blank line, newline, statement punctuation (``;`` before ``}``
    before ``{``), space. The cut goes just after the boundary found; with
    none, it is ``limit`` itself.
    """
    limit = min(limit, len(content))
    target = min(target, limit)
    window = content[target:limit]

    pos = window.find("\n\n")
    if pos != -1:
        return target + pos + 2

    pos = window.find("\n")
    if pos != -1:
        return target + pos + 1

    for boundary in STATEMENT_BOUNDARIES:
        pos = window.find(boundary)
        if pos != -1:
            return target + pos + len(boundary)

    pos = window.find(" ")
    if pos != -1:
        return target + pos + 1

    return limit


def split_large_chunk(
    chunk: CodeChunk, max_size: int, overlap_percentage: int
) -> List[CodeChunk]:
    """Split ``chunk`` into fragments of at most ``max_size`` characters."""
    if max_size < 1:
        raise ValueError(f"max_size must be positive, got {max_size}")

    content = chunk.content
    total = len(content)
    if total <= max_size:
        return [chunk]

    percentage = min(max(overlap_percentage, 0), 100)
    overlap = max_size * percentage // 100
    step = max(1, max_size - overlap)
    tag = f"{chunk.tag}_part"

    fragments: List[CodeChunk] = []
    pos = 0
    while True:
        cut = find_semantic_boundary(content, pos + step, pos + max_size)
        piece = content[pos:cut]
        start_line = chunk.start_line + content.count("\n", 0, pos)
        fragments.append(
            replace(
                chunk,
                content=piece,
                tag=tag,
                start_line=start_line,
                end_line=start_line + piece.count("\n"),
            )
        )
        if cut >= total:
            break
        next_pos = cut - overlap
        pos = next_pos if next_pos > pos else cut
    return fragments


def split_chunks(
    chunks: List[CodeChunk], max_size: int, overlap_percentage: int
) -> List[CodeChunk]:
    """Apply :func:`split_large_chunk` across a list, keeping order."""
    result: List[CodeChunk] = []
    for chunk in chunks:
        result.extend(split_large_chunk(chunk, max_size, overlap_percentage))
    return result
