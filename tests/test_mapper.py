"""Tests for entry name mappers."""

from __future__ import annotations

from zipmerge.mapper import add_prefix, chain, resolve, strip_prefix


def test_add_prefix() -> None:
    assert add_prefix("docs/")("a.txt") == "docs/a.txt"


def test_strip_prefix_keeps_only_entries_below() -> None:
    mapper = strip_prefix("web/")
    assert mapper("web/index.html") == "index.html"
    assert mapper("web/") is None
    assert mapper("other/file") is None


def test_chain_applies_in_order() -> None:
    mapper = chain(strip_prefix("v1/"), add_prefix("v2/"))
    assert mapper("v1/app.cfg") == "v2/app.cfg"


def test_chain_stops_at_first_exclusion() -> None:
    calls = []

    def spy(name: str) -> str:
        calls.append(name)
        return name

    mapper = chain(strip_prefix("keep/"), spy)
    assert mapper("drop/me") is None
    assert calls == []


def test_resolve_without_mapper_is_identity() -> None:
    assert resolve(None, "a/b") == "a/b"
    assert resolve(str.upper, "a/b") == "A/B"
