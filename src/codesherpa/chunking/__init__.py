"""
Chunking utilities for semantic code indexing.

Tree-sitter queries locate functions, types and their members; the results
are normalized, annotated with their enclosing names, and split to a size
embedding models accept.
"""

from .languages import (
    QueryCatalog,
    QueryConstructionError,
    SupportedLanguage,
    language_for_path,
)
from .splitter import split_large_chunk
from .tree_sitter_chunker import TreeSitterChunker, extract_chunks
from .types import ChunkingThresholds, CodeChunk

__all__ = [
    "ChunkingThresholds",
    "CodeChunk",
    "QueryCatalog",
    "QueryConstructionError",
    "SupportedLanguage",
    "TreeSitterChunker",
    "extract_chunks",
    "language_for_path",
    "split_large_chunk",
]
