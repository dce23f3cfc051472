"""
codesherpa: tree-sitter powered code chunking for semantic search.
"""

from .version import __version__

__all__ = ["__version__"]
