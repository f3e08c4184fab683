from pydantic import BaseModel
from tree_sitter import Node

from cache_diff.core.attributes import CONTAINER_SCOPE, ContainerKey, Custom, FieldKey, parse_attrs
from cache_diff.core.field import CUSTOM_IGNORE_REASON, FieldModel, build_field
from cache_diff.core.source import (
    MACRO_NAME,
    NAMESPACE,
    base_names,
    class_fields,
    container_blocks,
    definition_of,
    node_text,
)
from cache_diff.core.validate import unique
from cache_diff.errors import CacheDiffError, ErrorBank
from cache_diff.models import Span

_ENUM_BASES = frozenset({"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"})


class ContainerModel(BaseModel):
    """A ``cache_diff`` class and its parsed attributes."""

    identifier: str
    type_params: str | None = None
    """PEP 695 parameter list (``[T]``), copied verbatim into the generated function."""
    custom_fn: str | None = None
    """Dotted path of a ``(old, current) -> list[str]`` hook from ``cache_diff(custom = ...)``."""
    active_fields: list[FieldModel]
    span: Span


def _class_definition(decorated: Node) -> Node:
    definition = definition_of(decorated)
    name = definition.child_by_field_name("name") if definition is not None else None
    span = Span.of(name if name is not None else decorated)
    if definition is None or definition.type != "class_definition":
        raise CacheDiffError.at(span, f"{MACRO_NAME} can only be used on classes with named fields")
    if _ENUM_BASES.intersection(base_names(definition)):
        raise CacheDiffError.at(span, f"{MACRO_NAME} can only be used on classes with named fields, not enums")
    return definition


def build_container(decorated: Node) -> ContainerModel:
    """Resolve a decorated class into a ``ContainerModel``.

    Container attribute errors do not stop field processing, so one
    ``CacheDiffError`` carries every problem in the declaration.
    """
    definition = _class_definition(decorated)
    name_node = definition.child_by_field_name("name")
    identifier = node_text(name_node) if name_node is not None else ""
    span = Span.of(name_node if name_node is not None else definition)
    type_params_node = definition.child_by_field_name("type_parameters")

    errors = ErrorBank()
    custom_fn: str | None = None

    attributes, parse_errors = parse_attrs(container_blocks(decorated), CONTAINER_SCOPE)
    seen, duplicate_errors = unique(attributes)
    if parse_errors or duplicate_errors:
        errors.extend(parse_errors)
        errors.extend(duplicate_errors)
    else:
        custom = seen.get(ContainerKey.CUSTOM)
        if custom is not None and isinstance(custom.value, Custom):
            custom_fn = custom.value.path

    fields: list[FieldModel] = []
    for assignment in class_fields(definition):
        try:
            field = build_field(assignment)
        except CacheDiffError as error:
            errors.extend(error)
            continue

        if field.ignore_reason is None:
            fields.append(field)
        elif field.ignore_reason == CUSTOM_IGNORE_REASON and custom_fn is None:
            errors.push(
                field.span,
                f"field `{field.identifier}` on {identifier} marked ignored as custom, "
                f"but missing `{NAMESPACE}({ContainerKey.CUSTOM} = ...)` found on `{identifier}`",
            )

    errors.raise_if_any()
    if not fields:
        raise CacheDiffError.at(
            span,
            f"No fields to compare for {MACRO_NAME}, ensure class has at least one named field "
            f"that isn't `{NAMESPACE}({FieldKey.IGNORE})`",
        )

    return ContainerModel(
        identifier=identifier,
        type_params=node_text(type_params_node) if type_params_node is not None else None,
        custom_fn=custom_fn,
        active_fields=fields,
        span=span,
    )
