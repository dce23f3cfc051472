"""
Language catalog for the chunker.

Every supported grammar owns a block of tree-sitter query text naming the
syntactic units worth chunking. The tables below are plain data: adding a
language means adding an enum member, its extensions, and its query.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union

from tree_sitter import Language, Node  # type: ignore[import]

from ..logger import get_logger

log = get_logger(__name__)


class SupportedLanguage(str, Enum):
    """Grammars known to the chunker; values are tree-sitter grammar names."""

    RUST = "rust"
    GO = "go"
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    CPP = "cpp"
    JAVA = "java"


EXTENSIONS: Dict[str, SupportedLanguage] = {
    "rs": SupportedLanguage.RUST,
    "go": SupportedLanguage.GO,
    "py": SupportedLanguage.PYTHON,
    "js": SupportedLanguage.JAVASCRIPT,
    "mjs": SupportedLanguage.JAVASCRIPT,
    "cjs": SupportedLanguage.JAVASCRIPT,
    "ts": SupportedLanguage.TYPESCRIPT,
    "tsx": SupportedLanguage.TSX,
    "cpp": SupportedLanguage.CPP,
    "cc": SupportedLanguage.CPP,
    "cxx": SupportedLanguage.CPP,
    "hpp": SupportedLanguage.CPP,
    "hh": SupportedLanguage.CPP,
    "hxx": SupportedLanguage.CPP,
    "java": SupportedLanguage.JAVA,
}

_JAVASCRIPT_QUERY = """
(function_declaration) @function
(generator_function_declaration) @generator
(method_definition) @method
(class_declaration) @class
(arrow_function) @arrow_function
(variable_declaration (variable_declarator value: (arrow_function))) @arrow_var
(lexical_declaration (variable_declarator value: (arrow_function))) @arrow_const
(export_statement) @export
"""

_TYPESCRIPT_QUERY = _JAVASCRIPT_QUERY + """
(interface_declaration) @interface
"""

STRUCTURED_QUERIES: Dict[SupportedLanguage, str] = {
    SupportedLanguage.RUST: """
(function_item) @function
(struct_item) @struct
(impl_item) @impl
(trait_item) @trait
(enum_item) @enum
(macro_definition) @macro
""",
    SupportedLanguage.PYTHON: """
(function_definition) @function
(class_definition) @class
(decorated_definition) @decorated
(if_statement) @if
(for_statement) @for
(while_statement) @while
""",
    SupportedLanguage.JAVASCRIPT: _JAVASCRIPT_QUERY,
    SupportedLanguage.TYPESCRIPT: _TYPESCRIPT_QUERY,
    SupportedLanguage.TSX: _TYPESCRIPT_QUERY,
    SupportedLanguage.GO: """
(function_declaration) @function
(method_declaration) @method
(type_declaration) @type
(struct_type) @struct
(interface_type) @interface
""",
    SupportedLanguage.CPP: """
(function_definition) @function
(class_specifier) @class
(struct_specifier) @struct
(enum_specifier) @enum
(namespace_definition) @namespace
""",
    SupportedLanguage.JAVA: """
(class_declaration) @class
(interface_declaration) @interface
(enum_declaration) @enum
(method_declaration) @method
(constructor_declaration) @constructor
""",
}

# Grammars lacking one of these node kinds fail to compile the query; the
# extractor then falls back to line-based sections.
GENERIC_QUERY = """
(block) @block
(expression_statement) @statement
"""

# Member kinds picked up while walking inside a container node.
SIGNIFICANT_KINDS: FrozenSet[str] = frozenset(
    {
        "function_item",
        "method",
        "class",
        "struct_item",
        "impl_item",
        "trait_item",
        "enum_item",
        "macro_definition",
        "type_declaration",
        "function_declaration",
        "generator_function_declaration",
        "method_declaration",
        "method_definition",
        "class_declaration",
        "interface_declaration",
        "constructor_declaration",
        "enum_declaration",
        "function_definition",
        "class_definition",
        "class_specifier",
        "struct_specifier",
        "namespace_definition",
        "interface_type",
        "decorated_definition",
        "arrow_function",
    }
)

# Kinds whose bodies hold members that deserve their own chunks.
CONTAINER_KINDS: FrozenSet[str] = frozenset(
    {
        "impl_item",
        "trait_item",
        "class_definition",
        "decorated_definition",
        "class_declaration",
        "interface_declaration",
        "enum_declaration",
        "class_specifier",
        "struct_specifier",
        "namespace_definition",
        "type_declaration",
        "interface_type",
        "export_statement",
    }
)

# py-tree-sitter reports query problems through builtin exceptions
# (NameError for unknown node kinds, SyntaxError for malformed text).
_QUERY_ERRORS: Tuple[type, ...] = (NameError, SyntaxError, RuntimeError, ValueError, OSError)


class QueryConstructionError(Exception):
    """Raised when no compiled query can be produced for a language."""


_LANGUAGE_CACHE: dict[str, Language] = {}


def load_language(language_name: str) -> Language:
    """
    Lazily load a prebuilt tree-sitter language.

    Grammars come from `tree_sitter_languages`, which bundles a collection of
    compiled grammars.
    """
    if language_name in _LANGUAGE_CACHE:
        return _LANGUAGE_CACHE[language_name]

    try:
        from tree_sitter_languages import get_language  # type: ignore
    except ImportError as exc:  # pragma: no cover - runtime configuration issue
        raise RuntimeError(
            "tree_sitter_languages is required for prebuilt grammars. "
            "Install it via `pip install tree-sitter-languages`."
        ) from exc

    language = get_language(language_name)
    _LANGUAGE_CACHE[language_name] = language
    return language


def resolve_language(language: Union[str, SupportedLanguage]) -> Optional[SupportedLanguage]:
    """Return the enum member for a tag such as ``"python"``, or None."""
    if isinstance(language, SupportedLanguage):
        return language
    try:
        return SupportedLanguage(str(language).lower())
    except ValueError:
        return None


def language_for_path(path: Path) -> Optional[SupportedLanguage]:
    """Dispatch a file to a grammar by its extension."""
    return EXTENSIONS.get(path.suffix.lower().lstrip("."))


class CompiledQuery:
    """A tree-sitter query whose captures come back in document order."""

    def __init__(self, query: Any) -> None:
        self._query = query

    def captures(self, node: Node) -> List[Tuple[Node, str]]:
        found = list(self._query.captures(node))
        # Outer nodes sort before inner nodes sharing the same start.
        found.sort(key=lambda item: (item[0].start_byte, -item[0].end_byte))
        return found


class QueryCatalog:
    """Compiles and caches the structured and generic queries per language."""

    def __init__(
        self,
        structured_queries: Optional[Dict[SupportedLanguage, str]] = None,
        generic_query: str = GENERIC_QUERY,
    ) -> None:
        self.structured_queries = (
            structured_queries if structured_queries is not None else STRUCTURED_QUERIES
        )
        self.generic_query = generic_query
        # Failures are cached as their message so each lookup raises afresh.
        self._compiled: Dict[Tuple[str, SupportedLanguage], Union[CompiledQuery, str]] = {}

    def structured(self, language: Union[str, SupportedLanguage]) -> CompiledQuery:
        member = self._require(language)
        source = self.structured_queries.get(member)
        if source is None:
            raise QueryConstructionError(f"No structured query for language: {member.value}")
        return self._compile("structured", member, source)

    def generic(self, language: Union[str, SupportedLanguage]) -> CompiledQuery:
        return self._compile("generic", self._require(language), self.generic_query)

    @staticmethod
    def _require(language: Union[str, SupportedLanguage]) -> SupportedLanguage:
        member = resolve_language(language)
        if member is None:
            raise QueryConstructionError(f"Unsupported language: {language}")
        return member

    def _compile(self, kind: str, language: SupportedLanguage, source: str) -> CompiledQuery:
        key = (kind, language)
        if key not in self._compiled:
            try:
                grammar = load_language(language.value)
                self._compiled[key] = CompiledQuery(grammar.query(source))
            except _QUERY_ERRORS as exc:
                log.debug(
                    "query_construction_failed",
                    language=language.value,
                    query=kind,
                    error=str(exc),
                )
                self._compiled[key] = f"{kind} query failed for {language.value}: {exc}"
        cached = self._compiled[key]
        if isinstance(cached, str):
            raise QueryConstructionError(cached)
        return cached


default_catalog = QueryCatalog()
