import re
from collections.abc import Sequence

from cache_diff.core.container import ContainerModel
from cache_diff.core.field import OPAQUE_TYPE_RENDERERS

_INDENT = "    "
_GENERATED_HEADER = "# Generated by cache-diff. Do not edit."


def builtin_imports(model: ContainerModel) -> list[str]:
    """Modules the built-in renderers used by ``model`` live in."""
    builtins = set(OPAQUE_TYPE_RENDERERS.values())
    modules = {field.display_fn.rpartition(".")[0] for field in model.active_fields if field.display_fn in builtins}
    return sorted(module for module in modules if module)


def function_name(model: ContainerModel) -> str:
    snake = re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", model.identifier).lower()
    return f"diff_{snake}"


def render_diff_function(model: ContainerModel, name: str = "diff") -> str:
    """Render the comparison function for ``model``.

    Custom hook output comes first, then one check per active field in
    declaration order. Output only depends on the model.
    """
    annotation = repr(model.identifier)
    lines = [
        f"def {name}{model.type_params or ''}(current: {annotation}, old: {annotation}) -> list[str]:",
        f"{_INDENT}differences: list[str] = []",
    ]
    if model.custom_fn is not None:
        lines.append(f"{_INDENT}for difference in {model.custom_fn}(old, current):")
        lines.append(f"{_INDENT * 2}differences.append(str(difference))")

    for field in model.active_fields:
        attribute = field.identifier
        lines.extend(
            [
                f"{_INDENT}if current.{attribute} != old.{attribute}:",
                f"{_INDENT * 2}differences.append(",
                f'{_INDENT * 3}"{{name}} ({{old}} to {{new}})".format(',
                f"{_INDENT * 4}name={field.display_name!r},",
                f"{_INDENT * 4}old={field.display_fn}(old.{attribute}),",
                f"{_INDENT * 4}new={field.display_fn}(current.{attribute}),",
                f"{_INDENT * 3})",
                f"{_INDENT * 2})",
            ]
        )

    lines.append(f"{_INDENT}return differences")
    return "\n".join(lines) + "\n"


def render_module(models: Sequence[ContainerModel], source: str | None = None) -> str:
    """Render one ``diff_<class>`` function per model as a standalone module."""
    lines = [_GENERATED_HEADER]
    if source:
        lines.append(f"# Source: {source}")

    imports = sorted({module for model in models for module in builtin_imports(model)})
    if imports:
        lines.append("")
        lines.extend(f"import {module}" for module in imports)

    used: set[str] = set()
    for model in models:
        name = base = function_name(model)
        # Same-named classes in different scopes get numbered functions
        suffix = 2
        while name in used:
            name = f"{base}_{suffix}"
            suffix += 1
        used.add(name)
        lines.extend(["", ""])
        lines.append(render_diff_function(model, name).rstrip("\n"))
    return "\n".join(lines) + "\n"
