"""Naming context for chunks cut out of their surrounding code."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from tree_sitter import Node  # type: ignore[import]

from .preprocess import Source, as_bytes, byte_slice
from .types import CodeChunk


def _is_name_kind(kind: str) -> bool:
    return (
        kind == "identifier"
        or kind == "name"
        or kind.endswith("_name")
        or kind.endswith("_identifier")
    )


def find_node_name(node: Node, source: Source) -> Optional[str]:
    """
    Return the text of the first direct named child that looks like a name.

    Returns None when no such child exists or its bytes fall outside
    ``source``.
    """
    data = as_bytes(source)
    for child in node.named_children:
        if not _is_name_kind(child.type):
            continue
        if child.end_byte > len(data):
            return None
        return byte_slice(data, child.start_byte, child.end_byte).decode(
            "utf-8", errors="replace"
        )
    return None


def add_chunk_context(
    chunk: CodeChunk,
    node: Node,
    source: Source,
    parent: Optional[Node] = None,
) -> CodeChunk:
    """Suffix the tag with the node's name and prefix a banner naming the parent."""
    tag = chunk.tag
    content = chunk.content

    name = find_node_name(node, source)
    if name is not None:
        tag = f"{tag}:{name}"

    if parent is not None:
        parent_name = find_node_name(parent, source)
        if parent_name is not None:
            content = f"// In {parent.type}: {parent_name}\n{content}"

    if tag == chunk.tag and content == chunk.content:
        return chunk
    return replace(chunk, tag=tag, content=content)
