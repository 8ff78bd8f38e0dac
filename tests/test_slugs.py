"""Alias derivation tests."""

from __future__ import annotations

from docsite.slugs import format_name, slugify, title_for_file


def test_slugify_collapses_symbols_and_whitespace() -> None:
    assert slugify("Getting Started!") == "getting-started"
    assert slugify("  API_reference -- v2 ") == "api-reference-v2"


def test_slugify_transliterates_non_ascii() -> None:
    assert slugify("Документация") == "dokumentatsiya"
    assert slugify("Café Straße") == "cafe-strasse"


def test_title_for_file_maps_index_family_to_overview() -> None:
    assert title_for_file("README") == "Overview"
    assert title_for_file("home") == "Overview"
    assert title_for_file("getting-started") == "Getting Started"


def test_format_name_replaces_underscores() -> None:
    assert format_name("api_reference") == "Api reference"
