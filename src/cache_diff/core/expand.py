import logging
from pathlib import Path

from pydantic import BaseModel
from tree_sitter import Node

from cache_diff.core.codegen import render_diff_function
from cache_diff.core.container import ContainerModel, build_container
from cache_diff.core.source import definition_of, find_declarations, node_text, parse_source
from cache_diff.errors import CacheDiffError
from cache_diff.models import Diagnostic, Span

logger = logging.getLogger(__name__)


class Expansion(BaseModel):
    """Outcome for one marked declaration: generated source or its diagnostics."""

    identifier: str
    span: Span
    model: ContainerModel | None = None
    generated: str | None = None
    diagnostics: list[Diagnostic] = []

    @property
    def ok(self) -> bool:
        return not self.diagnostics


def _declaration_name(decorated: Node) -> tuple[str, Span]:
    definition = definition_of(decorated)
    name = definition.child_by_field_name("name") if definition is not None else None
    if name is None:
        return "<unknown>", Span.of(decorated)
    return node_text(name), Span.of(name)


def expand_declaration(decorated: Node) -> Expansion:
    identifier, span = _declaration_name(decorated)
    try:
        model = build_container(decorated)
    except CacheDiffError as error:
        logger.debug("Declaration %s failed with %d diagnostic(s)", identifier, len(error))
        return Expansion(identifier=identifier, span=span, diagnostics=error.diagnostics)

    logger.debug("Declaration %s has %d active field(s)", identifier, len(model.active_fields))
    return Expansion(identifier=identifier, span=span, model=model, generated=render_diff_function(model))


def expand_source(source_bytes: bytes) -> list[Expansion]:
    """Expand every ``cache_diff`` declaration in a Python module.

    Each declaration is independent: one failing never blocks the others.
    """
    tree = parse_source(source_bytes)
    expansions = [expand_declaration(node) for node in find_declarations(tree.root_node)]
    logger.info(
        "Expanded %d declaration(s), %d with errors",
        len(expansions),
        sum(1 for expansion in expansions if not expansion.ok),
    )
    return expansions


def expand_file(path: str) -> list[Expansion]:
    file_path = Path(path)
    if file_path.suffix.lower() != ".py":
        raise ValueError(f"Only Python files are supported, got: {file_path.suffix}")

    try:
        source_bytes = file_path.read_bytes()
    except FileNotFoundError:
        raise FileNotFoundError(f"File not found: {path}") from None

    logger.info("Expanding %s", file_path)
    return expand_source(source_bytes)
