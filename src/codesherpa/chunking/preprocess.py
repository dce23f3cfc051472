"""
Source normalization for chunk text.

Comment subtrees are dropped, runs of spaces collapse to one, and line
breaks survive so that line accounting downstream stays meaningful.
"""

from __future__ import annotations

import re
from typing import List, Union

from tree_sitter import Node  # type: ignore[import]

_SPACE_RUN = re.compile(r" {2,}")

Source = Union[str, bytes]


def as_bytes(source: Source) -> bytes:
    """Tree-sitter offsets index the UTF-8 encoding, never the str."""
    if isinstance(source, bytes):
        return source
    return source.encode("utf-8")


def byte_slice(source: bytes, start: int, end: int) -> bytes:
    """Slice ``source``; ranges reaching past its end yield ``b""``."""
    if start < 0 or end > len(source) or start > end:
        return b""
    return source[start:end]


def node_text(node: Node, source: Source) -> str:
    return byte_slice(as_bytes(source), node.start_byte, node.end_byte).decode(
        "utf-8", errors="replace"
    )


def is_comment(node: Node) -> bool:
    return "comment" in node.type


def normalize_whitespace(text: str) -> str:
    """Collapse runs of the space character, keeping newlines and tabs."""
    return _SPACE_RUN.sub(" ", text)


def preprocess_code(node: Node, source: Source) -> str:
    """
    Return the normalized text of ``node``.

    Leaves (nodes without named children) contribute their exact source
    slice. The whitespace between two emitted leaves is copied from the
    source, minus any comment sitting in between, so newlines are kept.
    """
    data = as_bytes(source)
    pieces: List[bytes] = []
    last_end = node.start_byte
    stack = [node]
    while stack:
        current = stack.pop()
        if is_comment(current):
            if current.start_byte > last_end:
                pieces.append(byte_slice(data, last_end, current.start_byte))
            last_end = max(last_end, current.end_byte)
            continue
        if current.named_child_count == 0:
            if current.start_byte > last_end:
                pieces.append(byte_slice(data, last_end, current.start_byte))
            pieces.append(byte_slice(data, current.start_byte, current.end_byte))
            last_end = max(last_end, current.end_byte)
            continue
        stack.extend(reversed(current.children))
    text = b"".join(pieces).decode("utf-8", errors="replace")
    return normalize_whitespace(text)
