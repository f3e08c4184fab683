from cache_diff.core.source import MACRO_NAME, NAMESPACE
from cache_diff.errors import CacheDiffError, ErrorBank
from cache_diff.models import Diagnostic, Span, WithSpan
from cache_diff.runtime import CacheDiff, cache_diff, derive, ignore

__all__ = [
    "MACRO_NAME",
    "NAMESPACE",
    "CacheDiff",
    "CacheDiffError",
    "Diagnostic",
    "ErrorBank",
    "Span",
    "WithSpan",
    "cache_diff",
    "derive",
    "ignore",
]
