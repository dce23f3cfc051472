"""
Milvus vector storage integration.

Chunks are stored under a stable identity derived from their file, tag and
position among same-tagged chunks, so rescanning an unchanged file rewrites
the same rows and anything no longer produced can be removed.
"""

from __future__ import annotations

import hashlib
import json
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Optional, Sequence, Set

from pymilvus import (  # type: ignore
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    connections,
    utility,
)

from ..embeddings import EmbeddingPayload
from ..logger import get_logger
from ..settings import settings

log = get_logger(__name__)

DEFAULT_COLLECTION = "codesherpa"
_INVALID_COLLECTION_CHARS = re.compile(r"[^A-Za-z0-9_]")
_OUTPUT_FIELDS = ["path", "tag", "language", "text", "metadata"]
QUERY_BATCH_SIZE = 1000


def collection_name_for_path(path: Path) -> str:
    """Derive a Milvus collection name from the scanned directory."""
    resolved = path.resolve()
    base = resolved if resolved.is_dir() else resolved.parent
    name = _INVALID_COLLECTION_CHARS.sub("_", base.name).strip("_")
    if not name:
        return DEFAULT_COLLECTION
    # Milvus names must not start with a digit.
    if name[0].isdigit():
        name = f"_{name}"
    return name


def chunk_identity(path: str, tag: str, ordinal: int) -> str:
    digest = hashlib.sha256(f"{path}::{tag}::{ordinal}".encode("utf-8")).hexdigest()
    return digest


def _quoted_list(values: Iterable[str]) -> str:
    return json.dumps(list(values))


def _stored_dimension(collection: Collection) -> Optional[int]:
    for field in collection.schema.fields:
        if field.name == "embedding":
            return int(field.params["dim"])
    return None


def _iter_rows(collection: Collection, expr: str, fields: List[str]) -> Iterator[dict]:
    """Page through every row matching ``expr``; plain queries stop at 16384 rows."""
    iterator = collection.query_iterator(
        batch_size=QUERY_BATCH_SIZE, expr=expr, output_fields=fields
    )
    try:
        while True:
            batch = iterator.next()
            if not batch:
                break
            yield from batch
    finally:
        iterator.close()


class MilvusVectorStore:
    """
    Thin wrapper around PyMilvus for our embedding workload.

    A missing collection is created on the first upsert, sized to the vectors
    the embedding model actually returns unless a dimension was configured.
    """

    def __init__(
        self, collection_name: str = DEFAULT_COLLECTION, dim: Optional[int] = None
    ) -> None:
        self.collection_name = collection_name
        self.dim = dim or settings.embedding_dimension
        self._collection: Optional[Collection] = None
        self._connected = False

    def connect(self) -> None:
        """Establish connection to Milvus using configured URI."""
        log.info("connecting_milvus", uri=settings.milvus_uri)
        connections.connect(
            alias="default",
            uri=settings.milvus_uri,
            user=settings.milvus_username,
            password=settings.milvus_password,
        )
        self._connected = True
        if utility.has_collection(self.collection_name):
            collection = Collection(self.collection_name)
            collection.load()
            self._collection = collection
            self.dim = _stored_dimension(collection) or self.dim

    def _require_connection(self) -> None:
        if not self._connected:
            raise RuntimeError("Milvus is not connected. Call connect() first.")

    def ensure_collection(self, dim: int) -> Collection:
        """Return the collection, creating it for ``dim``-sized vectors if missing."""
        self._require_connection()
        if self.dim is not None and self.dim != dim:
            raise ValueError(
                f"Collection '{self.collection_name}' expects {self.dim}-dimensional "
                f"vectors but the embedding model returned {dim}. Pick another "
                "collection with --collection or align CODESHERPA_EMBEDDING_DIMENSION."
            )
        if self._collection is None:
            self.dim = dim
            self._collection = self._create_collection(dim)
        return self._collection

    def _create_collection(self, dim: int) -> Collection:
        log.info("creating_milvus_collection", collection=self.collection_name, dim=dim)
        schema = CollectionSchema(
            fields=[
                FieldSchema(
                    name="id", dtype=DataType.VARCHAR, is_primary=True, max_length=64
                ),
                FieldSchema(name="path", dtype=DataType.VARCHAR, max_length=1024),
                FieldSchema(name="tag", dtype=DataType.VARCHAR, max_length=512),
                FieldSchema(name="language", dtype=DataType.VARCHAR, max_length=32),
                FieldSchema(name="text", dtype=DataType.VARCHAR, max_length=65535),
                FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=dim),
                FieldSchema(name="metadata", dtype=DataType.JSON),
            ],
            description="Code chunks",
        )
        collection = Collection(name=self.collection_name, schema=schema)
        collection.create_index(
            field_name="embedding",
            index_params={
                "metric_type": "COSINE",
                "index_type": "IVF_FLAT",
                "params": {"nlist": 128},
            },
        )
        collection.load()
        return collection

    def upsert_embeddings(
        self,
        payloads: Sequence[EmbeddingPayload],
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        """Insert or update embeddings inside Milvus."""
        self._require_connection()

        payload_list: List[EmbeddingPayload] = list(payloads)
        total = len(payload_list)
        log.info("upserting_embeddings", count=total)
        if progress:
            progress(0, total)
        if total == 0:
            return

        dims = {len(payload.vector) for payload in payload_list}
        if len(dims) != 1:
            raise ValueError(f"Embedding vectors have mixed dimensions: {sorted(dims)}")
        collection = self.ensure_collection(dims.pop())

        batch_size = max(1, settings.milvus_upsert_batch_size)
        inserted = 0
        for start in range(0, total, batch_size):
            batch = payload_list[start : start + batch_size]
            columns: List[list] = [[] for _ in range(7)]
            for payload in batch:
                row = (
                    payload.id,
                    payload.metadata.get("path", ""),
                    payload.metadata.get("tag", ""),
                    payload.metadata.get("language", ""),
                    payload.text,
                    payload.vector,
                    payload.metadata,
                )
                for column, value in zip(columns, row):
                    column.append(value)

            collection.upsert(columns)
            inserted += len(batch)
            if progress:
                progress(inserted, total)

    def stored_paths(self) -> Set[str]:
        """Every file path that has rows in the collection."""
        self._require_connection()
        if self._collection is None:
            return set()
        return {row["path"] for row in _iter_rows(self._collection, 'path != ""', ["path"])}

    def delete_stale(self, paths: Sequence[str], keep_ids: Iterable[str]) -> int:
        """Delete rows of ``paths`` whose identity is not in ``keep_ids``."""
        self._require_connection()
        if not paths or self._collection is None:
            return 0

        keep = set(keep_ids)
        rows = _iter_rows(self._collection, f"path in {_quoted_list(paths)}", ["id"])
        stale = [row["id"] for row in rows if row["id"] not in keep]
        for start in range(0, len(stale), QUERY_BATCH_SIZE):
            batch = stale[start : start + QUERY_BATCH_SIZE]
            self._collection.delete(expr=f"id in {_quoted_list(batch)}")
        log.info("stale_chunks_deleted", collection=self.collection_name, count=len(stale))
        return len(stale)

    def search(self, vector: list[float], top_k: int = 10) -> list:
        """Run a raw vector search; nothing is found before the first scan."""
        self._require_connection()
        if self._collection is None:
            return []
        results = self._collection.search(
            data=[vector],
            anns_field="embedding",
            param={"metric_type": "COSINE", "params": {"nprobe": 16}},
            limit=top_k,
            output_fields=_OUTPUT_FIELDS,
        )
        return results
