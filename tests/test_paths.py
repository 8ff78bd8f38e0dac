"""Path normalization tests."""

from __future__ import annotations

import pytest

from docsite.paths import (
    first_suffix_match,
    has_scheme,
    join_source,
    normalize_key,
    relative_link,
    to_output_name,
)


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("README.md", "index.html"),
        ("docs/readme.md", "docs/index.html"),
        ("guide/Index.markdown", "guide/index.html"),
        ("main.md", "index.html"),
        ("root.md", "index.html"),
        ("home.md", "index.html"),
        ("Guide/Setup.MD", "Guide/setup.html"),
    ],
)
def test_to_output_name(source: str, expected: str) -> None:
    assert to_output_name(source) == expected


def test_normalize_key_strips_dot_segments() -> None:
    assert normalize_key("./docs//setup.md") == "docs/setup.md"
    assert normalize_key("docs\\guide\\start.md") == "docs/guide/start.md"
    assert normalize_key("../../outside.md") == "outside.md"


def test_join_source_resolves_against_document_directory() -> None:
    assert join_source("docs/setup.md", "../guide/start.md") == "guide/start.md"
    assert join_source("docs/setup.md", "/guide/start.md") == "guide/start.md"
    assert join_source("setup.md", "guide/start.md") == "guide/start.md"


@pytest.mark.parametrize(
    ("source", "target", "expected"),
    [
        ("docs/a.html", "docs/b.html", "b.html"),
        ("index.html", "docs/a.html", "docs/a.html"),
        ("docs/a.html", "index.html", "../index.html"),
        ("a/b/c.html", "x/y/z.html", "../../x/y/z.html"),
    ],
)
def test_relative_link(source: str, target: str, expected: str) -> None:
    assert relative_link(source, target) == expected


def test_has_scheme_detects_external_targets() -> None:
    assert has_scheme("https://example.com")
    assert has_scheme("mailto:someone@example.com")
    assert has_scheme("//cdn.example.com/x.js")
    assert not has_scheme("docs/setup.md")


def test_first_suffix_match_prefers_registration_order() -> None:
    candidates = ["a/docs/setup.md", "b/docs/setup.md"]
    assert first_suffix_match("docs/setup.md", candidates) == "a/docs/setup.md"
    assert first_suffix_match("b/DOCS/setup.md", candidates) == "b/docs/setup.md"
    assert first_suffix_match("c/setup.md", candidates) is None
