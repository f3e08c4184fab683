"""Parsing of ``cache_diff(...)`` annotation blocks.

Each scope has a closed set of keys (a ``StrEnum`` whose declaration order is
the order keys are listed in diagnostics) and one model per key. Validators
compare attributes by ``key`` only, never by payload.
"""

import ast
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, Generic, TypeVar

from pydantic import BaseModel
from tree_sitter import Node

from cache_diff.core.source import NAMESPACE, first_error, node_text
from cache_diff.errors import CacheDiffError
from cache_diff.models import Diagnostic, Span, WithSpan

K = TypeVar("K", bound=StrEnum)
A = TypeVar("A", bound=BaseModel)


class ContainerKey(StrEnum):
    CUSTOM = "custom"


class FieldKey(StrEnum):
    RENAME = "rename"
    DISPLAY = "display"
    IGNORE = "ignore"


class Custom(BaseModel):
    """``cache_diff(custom = <function>)`` on a class."""

    key: ClassVar[ContainerKey] = ContainerKey.CUSTOM
    path: str


class Rename(BaseModel):
    """``cache_diff(rename = "...")`` on a field."""

    key: ClassVar[FieldKey] = FieldKey.RENAME
    value: str


class Display(BaseModel):
    """``cache_diff(display = <function>)`` on a field."""

    key: ClassVar[FieldKey] = FieldKey.DISPLAY
    path: str


class Ignore(BaseModel):
    """``cache_diff(ignore)`` or ``cache_diff(ignore = "<reason>")`` on a field."""

    key: ClassVar[FieldKey] = FieldKey.IGNORE
    reason: str = "default"


ContainerAttribute = Custom
FieldAttribute = Rename | Display | Ignore


@dataclass(frozen=True)
class AttributeScope(Generic[K, A]):
    name: str
    keys: type[K]
    build: Callable[[K, Node | None, Node], A]


def known_attribute(identifier: Node, keys: type[K]) -> K:
    """Map one bare identifier to a key of ``keys``. Nothing else is consumed."""
    name = node_text(identifier)
    try:
        return keys(name)
    except ValueError:
        valid_keys = ", ".join(f"`{key}`" for key in keys)
        raise CacheDiffError.at(
            Span.of(identifier),
            f"Unknown {NAMESPACE} attribute: `{name}`. Must be one of {valid_keys}",
        ) from None


def string_value(node: Node) -> str:
    error = CacheDiffError.at(Span.of(node), f"expected string literal, found `{node_text(node)}`")
    if node.type not in ("string", "concatenated_string"):
        raise error
    try:
        value = ast.literal_eval(node_text(node))
    except (SyntaxError, ValueError):
        raise error from None
    if not isinstance(value, str):
        raise error
    return value


def _is_path(node: Node) -> bool:
    if node.type == "identifier":
        return True
    if node.type != "attribute":
        return False
    obj = node.child_by_field_name("object")
    attribute = node.child_by_field_name("attribute")
    return obj is not None and attribute is not None and _is_path(obj)


def path_value(node: Node) -> str:
    if not _is_path(node):
        raise CacheDiffError.at(Span.of(node), f"expected function path, found `{node_text(node)}`")
    return "".join(node_text(node).split())


def _require_value(key: StrEnum, value: Node | None, name: Node) -> Node:
    if value is None:
        raise CacheDiffError.at(Span.of(name), f"expected `=` after `{key}`")
    return value


def _build_container_attribute(key: ContainerKey, value: Node | None, name: Node) -> ContainerAttribute:
    match key:
        case ContainerKey.CUSTOM:
            return Custom(path=path_value(_require_value(key, value, name)))


def _build_field_attribute(key: FieldKey, value: Node | None, name: Node) -> FieldAttribute:
    match key:
        case FieldKey.RENAME:
            return Rename(value=string_value(_require_value(key, value, name)))
        case FieldKey.DISPLAY:
            return Display(path=path_value(_require_value(key, value, name)))
        case FieldKey.IGNORE:
            if value is None:
                return Ignore()
            return Ignore(reason=string_value(value))


CONTAINER_SCOPE: AttributeScope[ContainerKey, ContainerAttribute] = AttributeScope(
    "container", ContainerKey, _build_container_attribute
)
FIELD_SCOPE: AttributeScope[FieldKey, FieldAttribute] = AttributeScope("field", FieldKey, _build_field_attribute)


def _parse_argument(argument: Node, scope: AttributeScope[K, A]) -> WithSpan[A]:
    if argument.type == "identifier":
        name, value = argument, None
    elif argument.type == "keyword_argument":
        name = argument.child_by_field_name("name")
        value = argument.child_by_field_name("value")
        if name is None or value is None:
            raise CacheDiffError.at(Span.of(argument), f"invalid {NAMESPACE} attribute syntax")
    else:
        raise CacheDiffError.at(Span.of(argument), f"expected attribute name, found `{node_text(argument)}`")

    key = known_attribute(name, scope.keys)
    return WithSpan(value=scope.build(key, value, name), span=Span.of(argument))


def parse_block(block: Node, scope: AttributeScope[K, A]) -> list[WithSpan[A]]:
    """Parse the comma-separated attributes of one ``cache_diff(...)`` call.

    Raises on the first problem inside the block; later attributes of the
    same block are not examined.
    """
    arguments = block.child_by_field_name("arguments")
    if arguments is None or arguments.type != "argument_list":
        raise CacheDiffError.at(Span.of(block), f"expected `{NAMESPACE}(...)` attribute list")

    attributes: list[WithSpan[A]] = []
    for child in arguments.children:
        if child.is_error or child.is_missing or child.has_error:
            broken = first_error(child) or child
            raise CacheDiffError.at(Span.of(broken), f"invalid {NAMESPACE} attribute syntax")
        if not child.is_named or child.type == "comment":
            continue
        attributes.append(_parse_argument(child, scope))
    return attributes


def parse_attrs(blocks: Sequence[Node], scope: AttributeScope[K, A]) -> tuple[list[WithSpan[A]], list[Diagnostic]]:
    """Parse every block of one item; each malformed block reports its own error."""
    attributes: list[WithSpan[A]] = []
    errors: list[Diagnostic] = []
    for block in blocks:
        try:
            attributes.extend(parse_block(block, scope))
        except CacheDiffError as error:
            errors.extend(error)
    return attributes, errors
