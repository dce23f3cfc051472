"""In-memory syntax tree doubles for exercising the chunker without grammars."""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from codesherpa.chunking.languages import QueryConstructionError


class FakeNode:
    def __init__(
        self,
        type: str,
        start_byte: int,
        end_byte: int,
        start_point: Tuple[int, int],
        end_point: Tuple[int, int],
        children: Sequence["FakeNode"] = (),
        is_named: bool = True,
    ) -> None:
        self.type = type
        self.start_byte = start_byte
        self.end_byte = end_byte
        self.start_point = start_point
        self.end_point = end_point
        self.children = list(children)
        self.is_named = is_named

    @property
    def named_children(self) -> List["FakeNode"]:
        return [child for child in self.children if child.is_named]

    @property
    def named_child_count(self) -> int:
        return len(self.named_children)

    def __repr__(self) -> str:
        return f"FakeNode({self.type!r}, {self.start_byte}, {self.end_byte})"


def N(kind: str, text: str, *children: tuple, named: bool = True) -> tuple:
    """Describe a node by the first occurrence of ``text`` after its predecessor."""
    return (kind, text, children, named)


def _point(source: str, offset: int) -> Tuple[int, int]:
    row = source.count("\n", 0, offset)
    col = offset - (source.rfind("\n", 0, offset) + 1)
    return row, col


def build(source: str, shape: tuple, offset: int = 0) -> FakeNode:
    """Build a FakeNode tree over an ASCII ``source`` from nested ``N`` shapes."""
    kind, text, children, named = shape
    start = source.index(text, offset)
    end = start + len(text)
    built: List[FakeNode] = []
    cursor = start
    for child in children:
        node = build(source, child, cursor)
        cursor = node.end_byte
        built.append(node)
    return FakeNode(kind, start, end, _point(source, start), _point(source, end), built, named)


def whole(source: str, kind: str, *children: tuple) -> FakeNode:
    """A root node spanning all of ``source``."""
    node = build(source, N(kind, source, *children))
    return node


class FakeTree:
    def __init__(self, root_node: FakeNode) -> None:
        self.root_node = root_node


class FakeQuery:
    def __init__(self, captures: Sequence[Tuple[FakeNode, str]]) -> None:
        self._captures = list(captures)

    def captures(self, node: FakeNode) -> List[Tuple[FakeNode, str]]:
        return list(self._captures)


class FakeCatalog:
    """Hands out prepared queries; ``None`` means the query cannot be built."""

    def __init__(
        self,
        structured: Optional[FakeQuery] = None,
        generic: Optional[FakeQuery] = None,
    ) -> None:
        self._structured = structured
        self._generic = generic

    def structured(self, language: str) -> FakeQuery:
        if self._structured is None:
            raise QueryConstructionError(f"no structured query for {language}")
        return self._structured

    def generic(self, language: str) -> FakeQuery:
        if self._generic is None:
            raise QueryConstructionError(f"no generic query for {language}")
        return self._generic


GREETER_SOURCE = (
    "class Greeter:\n"
    "    def greet(self, name):\n"
    "        return name\n"
    "\n"
    "    def farewell(self, name):\n"
    "        return name\n"
)


def greeter_tree() -> Tuple[FakeNode, FakeNode, FakeNode, FakeNode]:
    """Return (module, class, greet, farewell) for ``GREETER_SOURCE``."""
    greet = N(
        "function_definition",
        "def greet(self, name):\n        return name",
        N("def", "def", named=False),
        N("identifier", "greet"),
        N("parameters", "(self, name)"),
        N("block", "return name"),
    )
    farewell = N(
        "function_definition",
        "def farewell(self, name):\n        return name",
        N("def", "def", named=False),
        N("identifier", "farewell"),
        N("parameters", "(self, name)"),
        N("block", "return name"),
    )
    body = GREETER_SOURCE[GREETER_SOURCE.index("def greet") : GREETER_SOURCE.rindex("name") + 4]
    cls = N(
        "class_definition",
        GREETER_SOURCE.rstrip("\n"),
        N("class", "class", named=False),
        N("identifier", "Greeter"),
        N("block", body, greet, farewell),
    )
    module = whole(GREETER_SOURCE, "module", cls)
    class_node = module.children[0]
    block = class_node.named_children[1]
    return module, class_node, block.children[0], block.children[1]
