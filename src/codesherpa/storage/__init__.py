"""
Storage backends (vector database) for code chunks.
"""

from .milvus_store import (
    DEFAULT_COLLECTION,
    MilvusVectorStore,
    chunk_identity,
    collection_name_for_path,
)

__all__ = [
    "DEFAULT_COLLECTION",
    "MilvusVectorStore",
    "chunk_identity",
    "collection_name_for_path",
]
