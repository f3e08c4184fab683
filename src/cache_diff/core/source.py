from collections.abc import Iterator

from tree_sitter import Node, Tree
from tree_sitter_language_pack import get_parser

NAMESPACE = "cache_diff"
MACRO_NAME = "CacheDiff"

_ANNOTATED = "Annotated"
_CLASS_VAR = "ClassVar"


def parse_source(source_bytes: bytes) -> Tree:
    parser = get_parser("python")
    return parser.parse(source_bytes)


def node_text(node: Node) -> str:
    return (node.text or b"").decode("utf-8")


def last_segment(dotted: str) -> str:
    return dotted.replace(" ", "").rsplit(".", 1)[-1]


# Spellings of the marker: ``from cache_diff import cache_diff`` or ``import cache_diff``
_MARKER_NAMES = frozenset({NAMESPACE, f"{NAMESPACE}.{NAMESPACE}"})


def _is_namespace_name(node: Node) -> bool:
    return node.type in ("identifier", "attribute") and "".join(node_text(node).split()) in _MARKER_NAMES


def _namespace_call(node: Node) -> bool:
    if node.type != "call":
        return False
    function = node.child_by_field_name("function")
    return function is not None and _is_namespace_name(function)


def _decorator_expression(decorator: Node) -> Node | None:
    for child in decorator.named_children:
        if child.type != "comment":
            return child
    return None


def _is_marker(decorator: Node) -> bool:
    expression = _decorator_expression(decorator)
    if expression is None:
        return False
    return _is_namespace_name(expression) or _namespace_call(expression)


def find_declarations(root: Node) -> list[Node]:
    """Return every decorated definition carrying the ``cache_diff`` marker, in source order."""
    found: list[Node] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "decorated_definition" and any(
            _is_marker(child) for child in node.named_children if child.type == "decorator"
        ):
            found.append(node)
        stack.extend(reversed(node.children))
    return found


def container_blocks(decorated: Node) -> list[Node]:
    """``cache_diff(...)`` calls among the decorators; a bare ``@cache_diff`` adds no block."""
    blocks: list[Node] = []
    for child in decorated.named_children:
        if child.type != "decorator":
            continue
        expression = _decorator_expression(child)
        if expression is not None and _namespace_call(expression):
            blocks.append(expression)
    return blocks


def definition_of(declaration: Node) -> Node | None:
    if declaration.type != "decorated_definition":
        return declaration
    return declaration.child_by_field_name("definition")


def unwrap_type(node: Node) -> Node:
    while node.type == "type" and node.named_child_count == 1:
        node = node.named_children[0]
    return node


def _subscription(node: Node) -> tuple[Node, list[Node]] | None:
    """Split ``Head[a, b]`` into its head and unwrapped arguments."""
    node = unwrap_type(node)
    if node.type == "subscript":
        value = node.child_by_field_name("value")
        if value is None:
            return None
        return value, [unwrap_type(arg) for arg in node.children_by_field_name("subscript")]
    if node.type == "generic_type":
        head = None
        arguments: list[Node] = []
        for child in node.named_children:
            if child.type == "type_parameter":
                arguments = [unwrap_type(arg) for arg in child.named_children if arg.type != "comment"]
            elif head is None:
                head = child
        if head is None:
            return None
        return head, arguments
    return None


def split_annotated(annotation: Node) -> tuple[Node, list[Node]]:
    """Return the declared type and the ``cache_diff(...)`` blocks of an annotation.

    ``Annotated[T, cache_diff(...), other]`` yields ``T`` and the namespace
    items in its metadata; any other annotation is its own declared type.
    A bare ``cache_diff`` is kept so the attribute parser can reject it.
    """
    parts = _subscription(annotation)
    if parts is None:
        return unwrap_type(annotation), []
    head, arguments = parts
    if last_segment(node_text(head)) != _ANNOTATED or not arguments:
        return unwrap_type(annotation), []
    declared, *metadata = arguments
    return declared, [item for item in metadata if _namespace_call(item) or _is_namespace_name(item)]


def is_class_var(annotation: Node) -> bool:
    declared, _ = split_annotated(annotation)
    parts = _subscription(declared)
    head = parts[0] if parts is not None else declared
    return last_segment(node_text(head)) == _CLASS_VAR


def subscripted(node: Node) -> bool:
    return _subscription(node) is not None


def class_fields(class_node: Node) -> Iterator[Node]:
    """Yield the annotated assignments directly in a class body, in declaration order."""
    body = class_node.child_by_field_name("body")
    if body is None:
        return
    for statement in body.named_children:
        if statement.type != "expression_statement":
            continue
        for child in statement.named_children:
            annotation = child.child_by_field_name("type") if child.type == "assignment" else None
            if annotation is not None and not is_class_var(annotation):
                yield child


def base_names(class_node: Node) -> list[str]:
    superclasses = class_node.child_by_field_name("superclasses")
    if superclasses is None:
        return []
    return [
        last_segment(node_text(arg))
        for arg in superclasses.named_children
        if arg.type in ("identifier", "attribute")
    ]


def first_error(node: Node) -> Node | None:
    """Depth-first search for the first ERROR or MISSING node below ``node``."""
    if node.is_error or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = first_error(child)
        if found is not None:
            return found
    return node
