"""Shared fixtures and helpers for tests."""

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest
from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_parser

from cache_diff.core.source import class_fields, find_declarations

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        if rel.parts and rel.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Shared unit-test fixtures
# ---------------------------------------------------------------------------


def find_first(node: Node, node_type: str) -> Node | None:
    if node.type == node_type:
        return node
    for child in node.children:
        found = find_first(child, node_type)
        if found is not None:
            return found
    return None


@pytest.fixture
def python_parser() -> Parser:
    """Return a tree-sitter parser for Python."""
    return get_parser("python")


@pytest.fixture
def parse_declaration(python_parser: Parser) -> Callable[[str], Node]:
    """Return a helper parsing source into its first ``cache_diff`` declaration."""

    def _parse(source: str) -> Node:
        tree = python_parser.parse(textwrap.dedent(source).encode("utf-8"))
        declarations = find_declarations(tree.root_node)
        assert declarations, "expected a cache_diff declaration"
        return declarations[0]

    return _parse


@pytest.fixture
def parse_call(python_parser: Parser) -> Callable[[str], Node]:
    """Return a helper parsing ``cache_diff(<text>)`` into its call node."""

    def _parse(text: str) -> Node:
        tree = python_parser.parse(f"cache_diff({text})\n".encode())
        call = find_first(tree.root_node, "call")
        assert call is not None
        return call

    return _parse


@pytest.fixture
def parse_field(python_parser: Parser) -> Callable[[str], Node]:
    """Return a helper parsing one class-body line into its annotated assignment."""

    def _parse(line: str) -> Node:
        tree = python_parser.parse(f"class Metadata:\n    {line}\n".encode())
        class_node = find_first(tree.root_node, "class_definition")
        assert class_node is not None
        fields = list(class_fields(class_node))
        assert fields, f"expected a field in {line!r}"
        return fields[0]

    return _parse

