from pathlib import Path

import pytest

from codesherpa.chunking import ChunkingThresholds, TreeSitterChunker, extract_chunks
from codesherpa.chunking.strategies import (
    ExtractionContext,
    GenericStrategy,
    Outcome,
    SectionStrategy,
    StructuredStrategy,
    WholeFileStrategy,
    section_ranges,
)

from fakes import (
    GREETER_SOURCE,
    FakeCatalog,
    FakeQuery,
    FakeTree,
    N,
    greeter_tree,
    whole,
)

PATH = Path("greeter.py")


def _extract(tree, source, catalog, **kwargs):
    return extract_chunks(tree, source, PATH, "python", catalog=catalog, **kwargs)


def test_container_with_two_methods_yields_three_chunks() -> None:
    module, cls, greet, farewell = greeter_tree()
    catalog = FakeCatalog(
        structured=FakeQuery([(cls, "class"), (greet, "function"), (farewell, "function")])
    )

    chunks = _extract(FakeTree(module), GREETER_SOURCE, catalog)

    assert [chunk.tag for chunk in chunks] == [
        "class_definition:Greeter",
        "function_definition:greet",
        "function_definition:farewell",
    ]
    assert [(chunk.start_line, chunk.end_line) for chunk in chunks] == [(0, 5), (1, 2), (4, 5)]
    assert chunks[1].content == (
        "// In class_definition: Greeter\ndef greet(self, name):\n return name"
    )
    assert chunks[2].content.startswith("// In class_definition: Greeter\ndef farewell")
    assert not chunks[0].content.startswith("//")
    assert all(chunk.language == "python" and chunk.source_path == PATH for chunk in chunks)


def test_structured_member_without_container_capture_has_no_banner() -> None:
    module, _cls, greet, _farewell = greeter_tree()
    catalog = FakeCatalog(structured=FakeQuery([(greet, "function")]))

    chunks = _extract(FakeTree(module), GREETER_SOURCE, catalog)

    assert len(chunks) == 1
    assert chunks[0].tag == "function_definition:greet"
    assert chunks[0].content.startswith("def greet")


def test_narrow_captures_are_dropped() -> None:
    source = "x = 1\n"
    root = whole(source, "module", N("identifier", "x"))
    catalog = FakeCatalog(structured=FakeQuery([(root.children[0], "function")]))
    ctx = ExtractionContext(
        root=root,
        source=source,
        source_bytes=source.encode(),
        path=PATH,
        language="python",
        catalog=catalog,
    )

    result = StructuredStrategy().extract(ctx)

    assert result.outcome is Outcome.EMPTY


def test_generic_tier_runs_when_structured_is_empty() -> None:
    source = "if ready:\n    go()\n    stop()\n    wait()\n"
    block_text = "go()\n    stop()\n    wait()"
    root = whole(
        source,
        "module",
        N("if_statement", source.rstrip("\n"), N("identifier", "ready"), N("block", block_text)),
    )
    block = root.children[0].children[1]
    catalog = FakeCatalog(structured=FakeQuery([]), generic=FakeQuery([(block, "block")]))

    chunks = _extract(FakeTree(root), source, catalog)

    assert [chunk.tag for chunk in chunks] == ["block"]
    assert chunks[0].content == "go()\n stop()\n wait()"
    assert (chunks[0].start_line, chunks[0].end_line) == (1, 3)


def test_generic_tier_drops_short_matches() -> None:
    source = "go()\nstop()\n"
    root = whole(source, "module", N("expression_statement", "go()"))
    statement = root.children[0]
    catalog = FakeCatalog(structured=FakeQuery([]), generic=FakeQuery([(statement, "statement")]))

    chunks = _extract(FakeTree(root), source, catalog)

    assert [chunk.tag for chunk in chunks] == ["file"]


def test_section_tier_runs_only_when_generic_fails() -> None:
    source = "a = 1\nb = 2\n"
    root = whole(source, "module")

    failed = _extract(FakeTree(root), source, FakeCatalog(structured=FakeQuery([])))
    empty = _extract(
        FakeTree(root), source, FakeCatalog(structured=FakeQuery([]), generic=FakeQuery([]))
    )

    assert [chunk.tag for chunk in failed] == ["section"]
    assert [chunk.tag for chunk in empty] == ["file"]


def test_missing_tree_falls_back_to_sections() -> None:
    chunks = _extract(None, "fn main() {}\n", FakeCatalog())

    assert [chunk.tag for chunk in chunks] == ["section"]
    assert chunks[0].start_line == 0


def test_empty_source_yields_no_chunks() -> None:
    root = whole("", "module")
    catalog = FakeCatalog(structured=FakeQuery([]), generic=FakeQuery([]))

    assert _extract(FakeTree(root), "", catalog) == []
    assert _extract(None, "", FakeCatalog()) == []


def test_comment_only_file_keeps_raw_source() -> None:
    source = "# just a note\n"
    root = whole(source, "module", N("comment", "# just a note"))
    catalog = FakeCatalog(structured=FakeQuery([]), generic=FakeQuery([]))

    chunks = _extract(FakeTree(root), source, catalog)

    assert len(chunks) == 1
    assert chunks[0].tag == "file"
    assert chunks[0].content == source


def test_whole_file_chunk_spans_the_tree() -> None:
    source = "a = 1\n\nb = 2\n"
    root = whole(
        source,
        "module",
        N("identifier", "a"),
        N("integer", "1"),
        N("identifier", "b"),
        N("integer", "2"),
    )
    catalog = FakeCatalog(structured=FakeQuery([]), generic=FakeQuery([]))
    ctx = ExtractionContext(
        root=root,
        source=source,
        source_bytes=source.encode(),
        path=PATH,
        language="python",
        catalog=catalog,
    )

    result = WholeFileStrategy().extract(ctx)

    assert result.outcome is Outcome.PRODUCED
    (chunk,) = result.chunks
    assert (chunk.start_line, chunk.end_line) == (0, 3)
    assert chunk.content == "a = 1\n\nb = 2"


def test_tiers_declare_their_triggers() -> None:
    assert GenericStrategy().should_run(Outcome.EMPTY)
    assert GenericStrategy().should_run(Outcome.FAILED)
    assert not SectionStrategy().should_run(Outcome.EMPTY)
    assert SectionStrategy().should_run(Outcome.FAILED)
    assert WholeFileStrategy().should_run(Outcome.EMPTY)
    assert not WholeFileStrategy().should_run(Outcome.PRODUCED)


def test_oversized_chunks_are_split() -> None:
    module, cls, greet, farewell = greeter_tree()
    catalog = FakeCatalog(structured=FakeQuery([(cls, "class")]))

    chunks = _extract(FakeTree(module), GREETER_SOURCE, catalog, max_chunk_size=40)

    assert all(len(chunk.content) <= 40 for chunk in chunks)
    assert any(chunk.tag.endswith("_part") for chunk in chunks)
    starts = [chunk.start_line for chunk in chunks if chunk.tag.startswith("class_definition")]
    assert starts == sorted(starts)


def test_section_ranges_split_on_blank_runs() -> None:
    lines = ["a", "b", "c", "d", "e", "f", "", "", "g", "h"]

    assert section_ranges(lines, ChunkingThresholds()) == [(0, 7), (8, 9)]


def test_section_ranges_ignore_blank_lines_inside_block_comments() -> None:
    lines = ["a", "b", "c", "d", "/* start", "", "", "end */", "e", "f"]

    assert section_ranges(lines, ChunkingThresholds()) == [(0, 9)]


def test_section_ranges_cap_section_length() -> None:
    lines = [f"line {index}" for index in range(7)]
    thresholds = ChunkingThresholds(section_max_lines=3)

    assert section_ranges(lines, thresholds) == [(0, 2), (3, 5), (6, 6)]


def test_chunk_file_rejects_unsupported_extension(tmp_path: Path) -> None:
    sample = tmp_path / "notes.txt"
    sample.write_text("hello\n")

    with pytest.raises(ValueError):
        TreeSitterChunker().chunk_file(sample)


def test_chunk_repository_skips_unsupported_files(tmp_path: Path) -> None:
    sample = tmp_path / "notes.txt"
    sample.write_text("hello\n")
    seen = []

    chunked = TreeSitterChunker().chunk_repository([sample], progress_callback=seen.append)

    assert chunked == {}
    assert seen == [sample]
