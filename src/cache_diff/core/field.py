from pydantic import BaseModel
from tree_sitter import Node

from cache_diff.core.attributes import FIELD_SCOPE, Display, FieldKey, Ignore, Rename, parse_attrs
from cache_diff.core.source import MACRO_NAME, last_segment, node_text, split_annotated, subscripted
from cache_diff.core.validate import check_exclusive, unique
from cache_diff.errors import CacheDiffError, ErrorBank
from cache_diff.models import Span

DEFAULT_DISPLAY = "str"
CUSTOM_IGNORE_REASON = "custom"

# Types rendered through a dedicated text conversion instead of ``str()``,
# matched on the bare or ``pathlib.``-qualified name.
OPAQUE_TYPE_RENDERERS: dict[str, str] = {
    "Path": "os.fspath",
    "PurePath": "os.fspath",
    "PosixPath": "os.fspath",
    "WindowsPath": "os.fspath",
    "PurePosixPath": "os.fspath",
    "PureWindowsPath": "os.fspath",
}
_OPAQUE_TYPE_MODULES = ("", "pathlib")


class FieldModel(BaseModel):
    """A field of a class and its resolved ``cache_diff`` configuration."""

    identifier: str
    """Attribute name used to read the value, i.e. ``ruby_version``."""
    display_name: str
    """What the user sees when the field differs, i.e. ``ruby version``."""
    ignore_reason: str | None = None
    """``None`` when the field takes part in the comparison."""
    display_fn: str = DEFAULT_DISPLAY
    """Dotted path of the one-argument function used to render values."""
    span: Span


def builtin_renderer(declared_type: Node) -> str | None:
    if subscripted(declared_type):
        return None
    text = "".join(node_text(declared_type).split())
    module, _, name = text.rpartition(".")
    if module not in _OPAQUE_TYPE_MODULES:
        return None
    return OPAQUE_TYPE_RENDERERS.get(last_segment(name))


def build_field(assignment: Node) -> FieldModel:
    """Resolve one annotated assignment of a class body into a ``FieldModel``.

    Raises ``CacheDiffError`` with every problem found on the field.
    """
    left = assignment.child_by_field_name("left")
    annotation = assignment.child_by_field_name("type")
    # Without a name nothing else can be resolved
    if left is None or annotation is None or left.type != "identifier":
        raise CacheDiffError.at(Span.of(assignment), f"{MACRO_NAME} can only be used on classes with named fields")

    identifier = node_text(left)
    declared_type, blocks = split_annotated(annotation)

    errors = ErrorBank()
    attributes, parse_errors = parse_attrs(blocks, FIELD_SCOPE)
    errors.extend(parse_errors)
    errors.extend(check_exclusive(FieldKey.IGNORE, attributes))
    seen, duplicate_errors = unique(attributes)
    errors.extend(duplicate_errors)
    errors.raise_if_any()

    rename = seen.get(FieldKey.RENAME)
    display = seen.get(FieldKey.DISPLAY)
    ignore = seen.get(FieldKey.IGNORE)

    if rename is not None and isinstance(rename.value, Rename):
        display_name = rename.value.value
    else:
        display_name = identifier.replace("_", " ").strip()

    if display is not None and isinstance(display.value, Display):
        display_fn = display.value.path
    else:
        display_fn = builtin_renderer(declared_type) or DEFAULT_DISPLAY

    ignore_reason = ignore.value.reason if ignore is not None and isinstance(ignore.value, Ignore) else None

    return FieldModel(
        identifier=identifier,
        display_name=display_name,
        ignore_reason=ignore_reason,
        display_fn=display_fn,
        span=Span.of(assignment),
    )
