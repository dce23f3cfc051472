"""
Codebase scanning workflow orchestration.

A scan walks a directory, chunks every supported file, embeds the chunks in
batches and reconciles the vector store: rows are upserted by a stable
identity, and every stored row a directory scan did not produce again is
removed, including rows of files deleted or ignored since the last scan.
"""
from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from ..chunking import ChunkingThresholds, CodeChunk, TreeSitterChunker
from ..chunking.languages import EXTENSIONS
from ..embeddings import EmbeddingAdapter, EmbeddingPayload, EmbeddingProviderFactory
from ..logger import get_logger
from ..settings import settings
from ..storage import (
    DEFAULT_COLLECTION,
    MilvusVectorStore,
    chunk_identity,
    collection_name_for_path,
)

log = get_logger(__name__)

# Matched against directory names only.
DEFAULT_IGNORE_PATTERNS: Sequence[str] = (
    ".*",
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".vscode",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".venv",
    "venv",
    "node_modules",
    "target",
    "build*",
    "dist",
    "vendor",
)

DEFAULT_IGNORE_FILES: Sequence[str] = (".DS_Store",)


@dataclass
class ScanCallbacks:
    chunk: Optional[Callable[[Path], None]] = None
    stage: Optional[Callable[[str], None]] = None
    embed_progress: Optional[Callable[[int, int], None]] = None
    upsert_progress: Optional[Callable[[int, int], None]] = None


@dataclass
class ScanResult:
    files_scanned: int
    chunks_processed: int
    embeddings_generated: int
    stale_removed: int
    collection: str


@dataclass
class SearchHit:
    path: str
    tag: str
    start_line: int
    end_line: int
    score: float
    text: str


def _should_ignore(name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch(name, pattern) for pattern in patterns)


def normalize_extensions(extensions: Optional[Iterable[str]]) -> Tuple[str, ...]:
    """Lower-case extensions without their leading dot; all supported when empty."""
    cleaned = [ext.strip().lower().lstrip(".") for ext in extensions or () if ext.strip()]
    return tuple(dict.fromkeys(cleaned)) or tuple(EXTENSIONS)


def collect_source_files(
    root: Path,
    extensions: Optional[Iterable[str]] = None,
    ignore_patterns: Sequence[str] = DEFAULT_IGNORE_PATTERNS,
    file_patterns: Sequence[str] = DEFAULT_IGNORE_FILES,
) -> List[Path]:
    """
    Walk ``root`` and return matching files in a stable order.

    ``ignore_patterns`` prune directories; ``file_patterns`` drop single files.
    """
    suffixes = {f".{ext}" for ext in normalize_extensions(extensions)}
    if root.is_file():
        return [root] if root.suffix.lower() in suffixes else []

    files: List[Path] = []
    for current, dirs, filenames in os.walk(root):
        dirs[:] = sorted(d for d in dirs if not _should_ignore(d, ignore_patterns))
        current_path = Path(current)
        for filename in sorted(filenames):
            if _should_ignore(filename, file_patterns):
                continue
            candidate = current_path / filename
            if candidate.suffix.lower() in suffixes:
                files.append(candidate)
    return files


def relative_path(path: Path, root: Path) -> str:
    base = root if root.is_dir() else root.parent
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


class CodebaseScanner:
    """High-level service that chains chunking, embedding, and storage."""

    def __init__(
        self,
        chunker: Optional[TreeSitterChunker] = None,
        vector_store: Optional[MilvusVectorStore] = None,
        embedding_client: Optional[EmbeddingAdapter] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        auto_connect: bool = True,
    ) -> None:
        self.chunker = chunker or TreeSitterChunker(
            max_chunk_size=settings.max_chunk_size,
            overlap_percentage=settings.overlap_percentage,
            thresholds=ChunkingThresholds.from_settings(settings),
        )
        self.vector_store = vector_store or MilvusVectorStore(
            collection_name=settings.collection_name or DEFAULT_COLLECTION
        )
        self.embedding_client = embedding_client or EmbeddingProviderFactory.create(
            provider=provider, model=model
        )
        self._connected = False
        if auto_connect:
            self._connected = self._ensure_connection()

    @classmethod
    def for_path(cls, root: Path, collection: Optional[str] = None, **kwargs: Any) -> "CodebaseScanner":
        """Build a scanner whose collection is named after ``root``."""
        name = collection or settings.collection_name or collection_name_for_path(root)
        if "vector_store" not in kwargs:
            kwargs["vector_store"] = MilvusVectorStore(collection_name=name)
        return cls(**kwargs)

    def _ensure_connection(self) -> bool:
        try:
            self.vector_store.connect()
            return True
        except Exception as exc:  # pragma: no cover - requires Milvus env
            log.warning("milvus_connection_failed", error=str(exc))
            return False

    def _is_connected(self) -> bool:
        if not self._connected:
            self._connected = self._ensure_connection()
        return self._connected

    def scan(
        self,
        root: Path,
        extensions: Optional[Iterable[str]] = None,
        ignore_patterns: Optional[Sequence[str]] = None,
        callbacks: Optional[ScanCallbacks] = None,
        file_patterns: Optional[Sequence[str]] = None,
    ) -> ScanResult:
        """
        Execute the full scan workflow for ``root``.

        Raises ValueError when the embedding vectors do not fit the collection.
        """
        if not root.exists():
            raise FileNotFoundError(f"Scan path not found: {root}")
        cb = callbacks or ScanCallbacks()
        patterns = tuple(ignore_patterns) if ignore_patterns is not None else DEFAULT_IGNORE_PATTERNS
        skipped_files = tuple(file_patterns) if file_patterns is not None else DEFAULT_IGNORE_FILES

        if cb.stage:
            cb.stage("chunk_started")
        files = collect_source_files(root, extensions, patterns, skipped_files)
        log.info("scan_started", root=str(root), files=len(files))
        chunked = self.chunker.chunk_repository(files, progress_callback=cb.chunk)
        scanned = [relative_path(path, root) for path in chunked]
        chunks = [chunk for file_chunks in chunked.values() for chunk in file_chunks]
        if cb.stage:
            cb.stage("chunk_completed")

        if cb.stage:
            cb.stage("embedding_started")
        payloads = self._build_payloads(root, chunks, progress=cb.embed_progress)
        log.info("embeddings_generated", count=len(payloads))
        if cb.stage:
            cb.stage("embedding_completed")

        if cb.stage:
            cb.stage("upsert_started")
        stale_removed = 0
        upsert_success = False
        if self._is_connected():
            if payloads:
                self.vector_store.ensure_collection(len(payloads[0].vector))
            try:
                self.vector_store.upsert_embeddings(payloads, progress=cb.upsert_progress)
                known = set(scanned)
                if root.is_dir():
                    # Covers files deleted, renamed or ignored since the last scan.
                    known |= self.vector_store.stored_paths()
                stale_removed = self.vector_store.delete_stale(
                    sorted(known), [payload.id for payload in payloads]
                )
            except Exception as exc:  # pragma: no cover - requires Milvus env
                log.error("milvus_upsert_failed", error=str(exc))
            else:
                upsert_success = True
        else:  # pragma: no cover - requires Milvus env
            log.warning("milvus_unavailable_skip_upsert")
        if cb.stage:
            cb.stage("upsert_completed" if upsert_success else "upsert_failed")

        return ScanResult(
            files_scanned=len(scanned),
            chunks_processed=len(chunks),
            embeddings_generated=len(payloads),
            stale_removed=stale_removed,
            collection=self.vector_store.collection_name,
        )

    def _build_payloads(
        self,
        root: Path,
        chunks: List[CodeChunk],
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> List[EmbeddingPayload]:
        contents = [chunk.content for chunk in chunks]
        total = len(contents)
        if progress:
            progress(0, total)
        vectors: List[List[float]] = []
        if total:
            batch_size = max(1, settings.embedding_batch_size)
            for start in range(0, total, batch_size):
                batch = contents[start : start + batch_size]
                vectors.extend(self.embedding_client.embed_documents(batch))
                if progress:
                    progress(len(vectors), total)
        if len(vectors) != total:
            raise RuntimeError(
                f"Embedding provider returned {len(vectors)} vectors for {total} chunks"
            )

        ordinals: Counter = Counter()
        payloads: List[EmbeddingPayload] = []
        for chunk, vector in zip(chunks, vectors):
            path = relative_path(chunk.source_path, root)
            ordinal = ordinals[(path, chunk.tag)]
            ordinals[(path, chunk.tag)] += 1
            payloads.append(
                EmbeddingPayload(
                    id=chunk_identity(path, chunk.tag, ordinal),
                    text=chunk.content,
                    vector=vector,
                    metadata={
                        "path": path,
                        "tag": chunk.tag,
                        "language": chunk.language,
                        "start_line": chunk.start_line,
                        "end_line": chunk.end_line,
                    },
                )
            )
        return payloads

    def search(self, text: str, limit: int = 5) -> List[SearchHit]:
        """Embed ``text`` and return the nearest stored chunks."""
        if not self._is_connected():
            raise RuntimeError(f"Milvus is unavailable at {settings.milvus_uri}")
        vector = self.embedding_client.embed_query(text)
        results = self.vector_store.search(vector, top_k=limit)
        hits: List[SearchHit] = []
        for hit in results[0] if results else []:
            entity = hit.entity
            metadata = entity.get("metadata") or {}
            hits.append(
                SearchHit(
                    path=entity.get("path") or "",
                    tag=entity.get("tag") or "",
                    start_line=int(metadata.get("start_line", 0)),
                    end_line=int(metadata.get("end_line", 0)),
                    score=float(hit.distance),
                    text=entity.get("text") or "",
                )
            )
        return hits
