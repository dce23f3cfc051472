"""Version lookup for codesherpa."""

from __future__ import annotations

from functools import lru_cache
from importlib import metadata, resources

_DISTRIBUTION = "codesherpa"


@lru_cache(maxsize=1)
def get_version() -> str:
    """
    Return the codesherpa version.

    The ``VERSION`` file shipped inside the package wins; an installed
    distribution without it falls back to its metadata.
    """
    try:
        bundled = resources.files(_DISTRIBUTION).joinpath("VERSION")
        text = bundled.read_text(encoding="utf-8").strip()
        if text:
            return text
    except (FileNotFoundError, ModuleNotFoundError):
        pass
    try:
        return metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "unknown"


__version__ = get_version()

__all__ = ["get_version", "__version__"]
