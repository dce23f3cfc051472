"""
Extraction tiers.

Each strategy reports what happened in a uniform way (produced chunks, ran
but found nothing, or could not run at all) and declares which outcome of
the previous tier lets it run. The chunker walks them in order and stops at
the first one that produces chunks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from tree_sitter import Node  # type: ignore[import]

from .context import add_chunk_context
from .languages import (
    CONTAINER_KINDS,
    SIGNIFICANT_KINDS,
    QueryCatalog,
    QueryConstructionError,
)
from .preprocess import is_comment, normalize_whitespace, preprocess_code
from .types import ChunkingThresholds, CodeChunk


class Outcome(Enum):
    PRODUCED = "produced"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class TierResult:
    outcome: Outcome
    chunks: Tuple[CodeChunk, ...] = ()

    @classmethod
    def from_chunks(cls, chunks: Sequence[CodeChunk]) -> "TierResult":
        if chunks:
            return cls(Outcome.PRODUCED, tuple(chunks))
        return cls(Outcome.EMPTY)


FAILED = TierResult(Outcome.FAILED)


@dataclass(frozen=True)
class ExtractionContext:
    """Read-only inputs for one file's extraction."""

    root: Optional[Node]
    source: str
    source_bytes: bytes
    path: Path
    language: str
    catalog: QueryCatalog
    thresholds: ChunkingThresholds = field(default_factory=ChunkingThresholds)

    def make_chunk(self, node: Node, tag: Optional[str] = None) -> CodeChunk:
        return CodeChunk(
            content=preprocess_code(node, self.source_bytes),
            tag=tag or node.type,
            start_line=node.start_point[0],
            end_line=node.end_point[0],
            source_path=self.path,
            language=self.language,
        )


def is_narrow(node: Node, min_width: int) -> bool:
    """True for a node on a single line spanning fewer than ``min_width`` columns."""
    start_row, start_col = node.start_point
    end_row, end_col = node.end_point
    return start_row == end_row and end_col - start_col < min_width


def line_span(node: Node) -> int:
    return node.end_point[0] - node.start_point[0] + 1


def is_significant(node: Node, thresholds: ChunkingThresholds) -> bool:
    if is_comment(node):
        return False
    if is_narrow(node, thresholds.min_child_width):
        return False
    return node.type in SIGNIFICANT_KINDS


def dedupe_chunks(chunks: Iterable[CodeChunk]) -> List[CodeChunk]:
    """Keep the first chunk for each ``(tag, start_line, end_line)``."""
    seen: Set[Tuple[str, int, int]] = set()
    unique: List[CodeChunk] = []
    for chunk in chunks:
        key = (chunk.tag, chunk.start_line, chunk.end_line)
        if key in seen:
            continue
        seen.add(key)
        unique.append(chunk)
    return unique


class ExtractionStrategy:
    """Base class for one extraction tier."""

    name = "strategy"
    # Outcomes of the previous tier that let this one run.
    runs_after: FrozenSet[Outcome] = frozenset({Outcome.EMPTY, Outcome.FAILED})

    def should_run(self, previous: Optional[Outcome]) -> bool:
        return previous is None or previous in self.runs_after

    def extract(self, ctx: ExtractionContext) -> TierResult:
        raise NotImplementedError


class StructuredStrategy(ExtractionStrategy):
    """Language-specific query, plus a walk into container members."""

    name = "structured"

    def extract(self, ctx: ExtractionContext) -> TierResult:
        if ctx.root is None:
            return FAILED
        try:
            query = ctx.catalog.structured(ctx.language)
        except QueryConstructionError:
            return FAILED

        chunks: List[CodeChunk] = []
        for node, _capture in query.captures(ctx.root):
            if is_narrow(node, ctx.thresholds.min_capture_width):
                continue
            chunks.extend(self.walk(node, ctx))
        return TierResult.from_chunks(dedupe_chunks(chunks))

    @staticmethod
    def walk(node: Node, ctx: ExtractionContext) -> List[CodeChunk]:
        """
        Emit ``node`` and, for containers, their significant members.

        Uses an explicit stack of ``(node, parent, emit)`` entries so deep
        trees cannot exhaust the call stack. Members are visited in document
        order; nodes that are not significant are passed through without
        producing a chunk.
        """
        chunks: List[CodeChunk] = []
        stack: List[Tuple[Node, Optional[Node], bool]] = [(node, None, True)]
        while stack:
            current, parent, emit = stack.pop()
            if emit:
                if is_narrow(current, ctx.thresholds.min_node_width):
                    continue
                chunk = ctx.make_chunk(current)
                chunks.append(add_chunk_context(chunk, current, ctx.source_bytes, parent))
                if current.type not in CONTAINER_KINDS:
                    continue
                parent = current

            pending = []
            for child in current.named_children:
                if is_comment(child):
                    continue
                pending.append((child, parent, is_significant(child, ctx.thresholds)))
            stack.extend(reversed(pending))
        return chunks


class GenericStrategy(ExtractionStrategy):
    """Language-agnostic block/statement query."""

    name = "generic"

    def extract(self, ctx: ExtractionContext) -> TierResult:
        if ctx.root is None:
            return FAILED
        try:
            query = ctx.catalog.generic(ctx.language)
        except QueryConstructionError:
            return FAILED

        chunks = [
            ctx.make_chunk(node)
            for node, _capture in query.captures(ctx.root)
            if line_span(node) >= ctx.thresholds.min_generic_lines
        ]
        return TierResult.from_chunks(chunks)


class SectionStrategy(ExtractionStrategy):
    """Line-based segmentation for sources no query could be run against."""

    name = "section"
    runs_after = frozenset({Outcome.FAILED})

    def extract(self, ctx: ExtractionContext) -> TierResult:
        lines = ctx.source.split("\n")
        chunks: List[CodeChunk] = []
        for start, end in section_ranges(lines, ctx.thresholds):
            text = "\n".join(lines[start : end + 1])
            if not text.strip():
                continue
            chunks.append(
                CodeChunk(
                    content=normalize_whitespace(text),
                    tag="section",
                    start_line=start,
                    end_line=end,
                    source_path=ctx.path,
                    language=ctx.language,
                )
            )
        return TierResult.from_chunks(chunks)


def section_ranges(
    lines: Sequence[str], thresholds: ChunkingThresholds
) -> List[Tuple[int, int]]:
    """
    Return inclusive ``(start, end)`` line ranges.

    A section closes after a run of blank lines once it is longer than
    ``section_min_lines``, or unconditionally at ``section_max_lines``.
    Blank lines inside ``/* ... */`` blocks do not count.
    """
    ranges: List[Tuple[int, int]] = []
    start = 0
    blank_run = 0
    in_comment = False
    for index, line in enumerate(lines):
        stripped = line.strip()
        if in_comment:
            blank_run = 0
            if stripped.endswith("*/"):
                in_comment = False
        elif stripped.startswith("/*") and not stripped.endswith("*/"):
            in_comment = True
            blank_run = 0
        elif stripped:
            blank_run = 0
        else:
            blank_run += 1

        length = index - start + 1
        blank_boundary = (
            blank_run >= thresholds.section_blank_run
            and length > thresholds.section_min_lines
        )
        if blank_boundary or length >= thresholds.section_max_lines:
            ranges.append((start, index))
            start = index + 1
            blank_run = 0

    if start < len(lines):
        ranges.append((start, len(lines) - 1))
    return ranges


class WholeFileStrategy(ExtractionStrategy):
    """One chunk for the entire file."""

    name = "file"

    def extract(self, ctx: ExtractionContext) -> TierResult:
        if not ctx.source:
            return TierResult(Outcome.EMPTY)

        content = ""
        if ctx.root is not None:
            content = preprocess_code(ctx.root, ctx.source_bytes)
            end_line = ctx.root.end_point[0]
        else:
            end_line = ctx.source.count("\n")
        if not content.strip():
            content = ctx.source
        return TierResult.from_chunks(
            [
                CodeChunk(
                    content=content,
                    tag="file",
                    start_line=0,
                    end_line=end_line,
                    source_path=ctx.path,
                    language=ctx.language,
                )
            ]
        )


DEFAULT_STRATEGIES: Tuple[ExtractionStrategy, ...] = (
    StructuredStrategy(),
    GenericStrategy(),
    SectionStrategy(),
    WholeFileStrategy(),
)
