"""Unit tests for import-time derivation of diff."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import pytest

from cache_diff import CacheDiff, CacheDiffError, cache_diff, derive, ignore

MAX = 200.0


@cache_diff
@dataclass
class Metadata:
    ruby_version: str
    architecture: str


@cache_diff
@dataclass
class Changed:
    version: str
    changed_by: Annotated[str, cache_diff(ignore)]


@cache_diff
@dataclass
class Renamed:
    version: Annotated[str, cache_diff(rename="Ruby version")]


@dataclass
class NoDisplay:
    value: str


def my_function(value: NoDisplay) -> str:
    return f"custom {value.value}"


@cache_diff
@dataclass
class Displayed:
    version: Annotated[NoDisplay, cache_diff(display=my_function)]


def diff_cache_usage_count(_old: "Usage", now: "Usage") -> list[str]:
    if now.cache_usage_count > MAX:
        return [f"Cache count ({now.cache_usage_count}) exceeded limit {MAX}"]
    return []


@cache_diff(custom=diff_cache_usage_count)
@dataclass
class Usage:
    cache_usage_count: Annotated[float, cache_diff(ignore="custom")]
    binary_version: str
    target_arch: str


@cache_diff
@dataclass
class Layer:
    root: Path


def diff_always(_old: object, _now: object) -> list[str]:
    return ["hook ran"]


class TestDerivedDiff:
    def test_changed_metadata(self) -> None:
        old = Metadata(ruby_version="3.3.1", architecture="amd64")
        new = Metadata(ruby_version="3.4.2", architecture="arm64")
        assert new.diff(old) == ["ruby version (3.3.1 to 3.4.2)", "architecture (amd64 to arm64)"]

    def test_unchanged_metadata(self) -> None:
        old = Metadata(ruby_version="3.1.4", architecture="amd64")
        diff = old.diff(old)
        assert diff == [], f"Expected diff to be empty but is {diff!r}"

    def test_single_difference(self) -> None:
        old = Metadata(ruby_version="3.3.1", architecture="amd64")
        new = Metadata(ruby_version="3.3.1", architecture="arm64")
        assert new.diff(old) == ["architecture (amd64 to arm64)"]

    def test_ignore(self) -> None:
        now = Changed(version="3.4.0", changed_by="Alice")
        assert now.diff(Changed(version=now.version, changed_by="Bob")) == []

    def test_rename(self) -> None:
        now = Renamed(version="3.4.0")
        assert " ".join(now.diff(Renamed(version="3.3.0"))) == "Ruby version (3.3.0 to 3.4.0)"

    def test_display(self) -> None:
        now = Displayed(version=NoDisplay("3.4.0"))
        diff = now.diff(Displayed(version=NoDisplay("3.3.0")))
        assert " ".join(diff) == "version (custom 3.3.0 to custom 3.4.0)"

    def test_custom_runs_before_fields(self) -> None:
        old = Usage(cache_usage_count=1.0, binary_version="1.0", target_arch="amd64")
        now = Usage(cache_usage_count=201.0, binary_version="1.1", target_arch="amd64")
        assert now.diff(old) == [
            "Cache count (201.0) exceeded limit 200.0",
            "binary version (1.0 to 1.1)",
        ]

    def test_custom_field_is_not_compared(self) -> None:
        old = Usage(cache_usage_count=1.0, binary_version="1.0", target_arch="amd64")
        now = Usage(cache_usage_count=2.0, binary_version="1.0", target_arch="amd64")
        assert now.diff(old) == []

    def test_path_field(self) -> None:
        old = Layer(root=Path("layers") / "ruby")
        now = Layer(root=Path("layers") / "gems")
        assert now.diff(old) == [f"root ({os.fspath(old.root)} to {os.fspath(now.root)})"]

    def test_generated_source_is_kept(self) -> None:
        assert "os.fspath(old.root)" in Layer.__cache_diff_source__  # type: ignore[attr-defined]

    def test_protocol(self) -> None:
        assert isinstance(Metadata(ruby_version="3.3.1", architecture="amd64"), CacheDiff)
        assert not isinstance(NoDisplay("x"), CacheDiff)


class TestDerive:
    def test_derive_is_idempotent(self) -> None:
        diff = Metadata.diff  # type: ignore[attr-defined]
        assert derive(Metadata) is Metadata
        assert Metadata.diff is diff  # type: ignore[attr-defined]

    def test_marker_repr(self) -> None:
        assert repr(cache_diff(ignore)) == "cache_diff(ignore)"
        assert repr(cache_diff(rename="Ruby version")) == "cache_diff(rename='Ruby version')"

    def test_invalid_class_raises(self) -> None:
        with pytest.raises(CacheDiffError, match="No fields to compare for CacheDiff"):

            @cache_diff
            class AllIgnored:
                changed_by: Annotated[str, cache_diff(ignore)]

    def test_missing_custom_raises(self) -> None:
        with pytest.raises(CacheDiffError, match="marked ignored as custom"):

            @cache_diff
            class MissingCustom:
                count: Annotated[int, cache_diff(ignore="custom")]
                name: str

    def test_function_raises(self) -> None:
        with pytest.raises(CacheDiffError, match="can only be used on classes"):

            @cache_diff
            def not_a_class() -> None:
                pass

    def test_qualified_decorator_keeps_custom(self) -> None:
        import cache_diff

        @cache_diff.cache_diff(custom=diff_always)
        @dataclass
        class Qualified:
            count: Annotated[int, cache_diff.cache_diff(ignore="custom")]
            name: str

        now = Qualified(count=2, name="a")
        assert now.diff(Qualified(count=1, name="a")) == ["hook ran"]  # type: ignore[attr-defined]

    def test_aliased_decorator_with_arguments_raises(self) -> None:
        derive_with = cache_diff
        with pytest.raises(CacheDiffError, match="cannot be read from its source"):

            @derive_with(custom=diff_always)
            @dataclass
            class Aliased:
                name: str

    def test_aliased_bare_decorator(self) -> None:
        derive_with = cache_diff

        @derive_with
        @dataclass
        class Aliased:
            name: str

        now = Aliased(name="b")
        assert now.diff(Aliased(name="a")) == ["name (a to b)"]  # type: ignore[attr-defined]

    def test_bare_marker_in_field_metadata_raises(self) -> None:
        with pytest.raises(CacheDiffError, match=r"expected `cache_diff\(\.\.\.\)` attribute list"):

            @cache_diff
            class BareMarker:
                name: Annotated[str, cache_diff]

    def test_existing_diff_raises(self) -> None:
        with pytest.raises(TypeError, match="already defines diff"):

            @cache_diff
            class HasDiff:
                name: str

                def diff(self, old: "HasDiff") -> list[str]:
                    return []
