"""
Service layer orchestrators for codesherpa.
"""
from .scanner import (
    DEFAULT_IGNORE_FILES,
    DEFAULT_IGNORE_PATTERNS,
    CodebaseScanner,
    ScanCallbacks,
    ScanResult,
    SearchHit,
    collect_source_files,
)

__all__ = [
    "DEFAULT_IGNORE_FILES",
    "DEFAULT_IGNORE_PATTERNS",
    "CodebaseScanner",
    "ScanCallbacks",
    "ScanResult",
    "SearchHit",
    "collect_source_files",
]
