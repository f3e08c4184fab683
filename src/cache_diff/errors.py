from collections.abc import Iterable, Iterator

from cache_diff.models import Diagnostic, Span


class CacheDiffError(Exception):
    """One or more build diagnostics for a single declaration."""

    def __init__(self, diagnostics: Iterable[Diagnostic]) -> None:
        self.diagnostics = list(diagnostics)
        if not self.diagnostics:
            raise ValueError("CacheDiffError requires at least one diagnostic")
        super().__init__("\n".join(str(d) for d in self.diagnostics))

    @classmethod
    def at(cls, span: Span, message: str) -> "CacheDiffError":
        return cls([Diagnostic(message=message, span=span)])

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self.diagnostics)

    def __len__(self) -> int:
        return len(self.diagnostics)

    @property
    def messages(self) -> list[str]:
        return [d.message for d in self.diagnostics]


class ErrorBank:
    """Ordered collection of zero or more diagnostics.

    Nothing is raised while collecting; call ``combine`` or ``raise_if_any``
    once every check for the current scope has run.
    """

    def __init__(self) -> None:
        self._diagnostics: list[Diagnostic] = []

    def __len__(self) -> int:
        return len(self._diagnostics)

    def __bool__(self) -> bool:
        return bool(self._diagnostics)

    def push(self, span: Span, message: str) -> None:
        self._diagnostics.append(Diagnostic(message=message, span=span))

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        # CacheDiffError is iterable, so it can be absorbed directly
        self._diagnostics.extend(diagnostics)

    def combine(self) -> CacheDiffError | None:
        if not self._diagnostics:
            return None
        return CacheDiffError(self._diagnostics)

    def raise_if_any(self) -> None:
        error = self.combine()
        if error is not None:
            raise error
