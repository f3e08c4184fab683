"""Import-time derivation of ``diff`` for ``@cache_diff`` classes.

The decorator reads the class source, runs the same pipeline as the CLI and
attaches the generated function as a method. Names used by ``custom`` and
``display`` are looked up in the globals of the module defining the class
when ``diff`` runs.
"""

import inspect
import logging
import os
import sys
import textwrap
from collections.abc import Callable
from typing import Any, Protocol, Self, TypeVar, runtime_checkable

from cache_diff.core.codegen import render_diff_function
from cache_diff.core.container import build_container
from cache_diff.core.source import NAMESPACE, container_blocks, parse_source
from cache_diff.errors import CacheDiffError
from cache_diff.models import Span

logger = logging.getLogger(__name__)

C = TypeVar("C")

_GENERATED_ATTRIBUTE = "__cache_diff_source__"
# Names the generated body may reference that the defining module might not import
_HELPERS: dict[str, Any] = {"os": os}


@runtime_checkable
class CacheDiff(Protocol):
    def diff(self, old: Self) -> list[str]: ...


class _Ignore:
    def __repr__(self) -> str:
        return "ignore"


ignore = _Ignore()


class Attributes:
    """What a ``cache_diff(...)`` call evaluates to at runtime.

    Inside ``Annotated`` metadata it is inert; used as a class decorator it
    derives ``diff``.
    """

    def __init__(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        self.args = args
        self.kwargs = kwargs

    def __call__(self, cls: type[C]) -> type[C]:
        return derive(cls, self)

    def __repr__(self) -> str:
        parts = [repr(arg) for arg in self.args] + [f"{key}={value!r}" for key, value in self.kwargs.items()]
        return f"{NAMESPACE}({', '.join(parts)})"


def cache_diff(*args: Any, **kwargs: Any) -> Any:
    """Mark a class for ``diff`` generation, or carry field attributes.

    ``@cache_diff`` and ``@cache_diff(custom=fn)`` decorate a class;
    ``Annotated[T, cache_diff(rename="...")]`` annotates a field.
    """
    if len(args) == 1 and not kwargs and callable(args[0]):
        return derive(args[0])
    return Attributes(args, kwargs)


def _create_fn(name: str, text: str, globals_: dict[str, Any], locals_: dict[str, Any]) -> Callable[..., Any]:
    # Helpers are closure variables, the function itself sees the module globals
    local_vars = ", ".join(locals_)
    wrapped = f"def __create_fn__({local_vars}):\n{textwrap.indent(text, '  ')}\n  return {name}"
    ns: dict[str, Any] = {}
    exec(wrapped, globals_, ns)
    return ns["__create_fn__"](**locals_)


def _module_globals(cls: type[Any]) -> dict[str, Any]:
    module = sys.modules.get(cls.__module__)
    return vars(module) if module is not None else {}


def derive(cls: type[C], marker: Attributes | None = None) -> type[C]:
    """Generate and attach ``diff`` to ``cls``; raises ``CacheDiffError`` on invalid annotations.

    ``marker`` is the called decorator, if any. Its arguments are only read
    back from source, so they must be spelled ``@cache_diff(...)`` or
    ``@cache_diff.cache_diff(...)`` there.
    """
    if _GENERATED_ATTRIBUTE in vars(cls):
        return cls

    try:
        source = textwrap.dedent(inspect.getsource(cls))
    except (OSError, TypeError) as error:
        raise TypeError(f"{NAMESPACE} could not read the source of {cls!r}") from error

    # getsource starts at the first decorator, so the declaration is the first statement
    root = parse_source(source.encode("utf-8")).root_node
    declaration = next((node for node in root.named_children if node.type != "comment"), None)
    if declaration is None:
        raise TypeError(f"{NAMESPACE} found no declaration in the source of {cls!r}")

    if marker is not None and (marker.args or marker.kwargs) and not container_blocks(declaration):
        raise CacheDiffError.at(
            Span.of(declaration),
            f"{NAMESPACE} was called with arguments on `{cls.__qualname__}` under a name "
            "that cannot be read from its source, "
            f"use `@{NAMESPACE}(...)` or `@{NAMESPACE}.{NAMESPACE}(...)`",
        )

    model = build_container(declaration)
    if "diff" in vars(cls):
        raise TypeError(f"{cls.__qualname__} already defines diff")

    generated = render_diff_function(model)
    fn = _create_fn("diff", generated, _module_globals(cls), _HELPERS)
    fn.__qualname__ = f"{cls.__qualname__}.diff"
    setattr(cls, "diff", fn)
    setattr(cls, _GENERATED_ATTRIBUTE, generated)
    logger.debug("Derived %s.diff over %d field(s)", cls.__qualname__, len(model.active_fields))
    return cls
