from collections.abc import Iterable, Sequence
from enum import StrEnum
from typing import Any, TypeVar

from cache_diff.core.source import MACRO_NAME, NAMESPACE
from cache_diff.models import Diagnostic, WithSpan

K = TypeVar("K", bound=StrEnum)


def unique(attributes: Iterable[WithSpan[Any]]) -> tuple[dict[StrEnum, WithSpan[Any]], list[Diagnostic]]:
    """Guarantee every attribute kind appears at most once.

    A repeat reports two diagnostics, one at the duplicate and one at the
    occurrence it collides with.
    """
    seen: dict[StrEnum, WithSpan[Any]] = {}
    errors: list[Diagnostic] = []
    for attribute in attributes:
        key = attribute.value.key
        prior = seen.get(key)
        seen[key] = attribute
        if prior is not None:
            errors.append(Diagnostic(message=f"{MACRO_NAME} duplicate attribute: `{key}`", span=attribute.span))
            errors.append(Diagnostic(message=f"previously `{key}` defined here", span=prior.span))
    return seen, errors


def check_exclusive(exclusive: K, attributes: Sequence[WithSpan[Any]]) -> list[Diagnostic]:
    """Reject ``exclusive`` appearing alongside any other kind.

    Does not look for repeats of the same kind, ``unique`` covers that.
    """
    keys = {attribute.value.key for attribute in attributes}
    if exclusive not in keys or len(keys) == 1:
        return []

    others = [key for key in type(exclusive) if key in keys and key != exclusive]
    other_keys = ", ".join(f"`{key}`" for key in others)

    own: list[Diagnostic] = []
    rest: list[Diagnostic] = []
    for attribute in attributes:
        if attribute.value.key == exclusive:
            own.append(
                Diagnostic(
                    message=f"cannot be used with other attributes. Remove either `{exclusive}` or {other_keys}",
                    span=attribute.span,
                )
            )
        else:
            rest.append(Diagnostic(message=f"cannot be used with {NAMESPACE}({exclusive})", span=attribute.span))
    return own + rest
