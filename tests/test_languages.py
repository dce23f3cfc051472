from pathlib import Path

import pytest

from codesherpa.chunking import QueryCatalog, QueryConstructionError, SupportedLanguage
from codesherpa.chunking.languages import (
    EXTENSIONS,
    STRUCTURED_QUERIES,
    CompiledQuery,
    language_for_path,
    resolve_language,
)

from fakes import FakeNode


@pytest.mark.parametrize(
    ("filename", "expected"),
    [
        ("lib.rs", SupportedLanguage.RUST),
        ("main.go", SupportedLanguage.GO),
        ("app.py", SupportedLanguage.PYTHON),
        ("index.mjs", SupportedLanguage.JAVASCRIPT),
        ("types.ts", SupportedLanguage.TYPESCRIPT),
        ("View.tsx", SupportedLanguage.TSX),
        ("engine.HPP", SupportedLanguage.CPP),
        ("Main.java", SupportedLanguage.JAVA),
        ("README.md", None),
        ("Makefile", None),
    ],
)
def test_language_dispatch_by_extension(filename: str, expected) -> None:
    assert language_for_path(Path(filename)) is expected


def test_every_language_has_an_extension_and_a_query() -> None:
    assert set(EXTENSIONS.values()) == set(SupportedLanguage)
    assert set(STRUCTURED_QUERIES) == set(SupportedLanguage)


def test_language_tags_resolve_case_insensitively() -> None:
    assert resolve_language("Python") is SupportedLanguage.PYTHON
    assert resolve_language(SupportedLanguage.GO) is SupportedLanguage.GO
    assert resolve_language("cobol") is None


def test_unknown_language_raises_construction_error() -> None:
    catalog = QueryCatalog()

    with pytest.raises(QueryConstructionError):
        catalog.structured("cobol")
    with pytest.raises(QueryConstructionError):
        catalog.generic("cobol")


def test_missing_structured_query_raises_construction_error() -> None:
    catalog = QueryCatalog(structured_queries={})

    with pytest.raises(QueryConstructionError, match="python"):
        catalog.structured("python")


def test_compiled_query_orders_outer_nodes_first() -> None:
    outer = FakeNode("impl_item", 0, 50, (0, 0), (4, 1))
    inner = FakeNode("type_identifier", 0, 5, (0, 0), (0, 5))
    later = FakeNode("function_item", 10, 40, (1, 4), (3, 5))

    class RawQuery:
        def captures(self, node):
            return [(later, "function"), (inner, "name"), (outer, "impl")]

    captures = CompiledQuery(RawQuery()).captures(outer)

    assert [node for node, _ in captures] == [outer, inner, later]
