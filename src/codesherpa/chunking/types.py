"""Value types shared by the chunking pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ..settings import AppSettings


@dataclass(frozen=True)
class CodeChunk:
    """A logical code segment extracted from a source file."""

    content: str
    tag: str
    start_line: int
    end_line: int
    source_path: Path
    language: str


@dataclass(frozen=True)
class ChunkingThresholds:
    """
    Size heuristics used while extracting chunks.

    Each tier was tuned on its own, so the values are kept apart rather than
    folded into one minimum.
    """

    min_capture_width: int = 3
    min_node_width: int = 10
    min_child_width: int = 20
    min_generic_lines: int = 3
    section_min_lines: int = 5
    section_max_lines: int = 100
    section_blank_run: int = 2

    @classmethod
    def from_settings(cls, app_settings: "AppSettings") -> "ChunkingThresholds":
        return cls(
            min_capture_width=app_settings.min_capture_width,
            min_node_width=app_settings.min_node_width,
            min_child_width=app_settings.min_child_width,
            min_generic_lines=app_settings.min_generic_lines,
            section_min_lines=app_settings.section_min_lines,
            section_max_lines=app_settings.section_max_lines,
            section_blank_run=app_settings.section_blank_run,
        )
