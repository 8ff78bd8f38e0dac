"""Repository fetcher tests."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from docsite.fetch import RepositoryCache, parse_repository_url
from docsite.models import EntryKind
from tests._fixtures.github import FakeGitHub


def test_parse_repository_url_variants() -> None:
    plain = parse_repository_url("https://github.com/acme/widgets")
    assert (plain.owner, plain.repo, plain.branch, plain.sub_path) == ("acme", "widgets", None, "")

    nested = parse_repository_url("https://github.com/acme/widgets/tree/dev/docs/guide/")
    assert (nested.branch, nested.sub_path) == ("dev", "docs/guide")

    assert parse_repository_url("https://github.com/acme/widgets.git").repo == "widgets"
    with pytest.raises(ValueError):
        parse_repository_url("https://example.com/acme/widgets")


def test_fetch_mirrors_markdown_and_images_only(fake_github: FakeGitHub, make_fetcher) -> None:
    fake_github.add_repository(
        "acme",
        "widgets",
        {"README.md": "# Widgets\n", "docs/api.md": "# API\n", "logo.png": b"\x89PNG", "setup.py": "x"},
    )

    manifest = make_fetcher().fetch_repository("https://github.com/acme/widgets", alias="widgets")

    assert manifest.alias == "widgets"
    assert manifest.branch == "main"
    assert {entry.original_path: entry.kind for entry in manifest.entries} == {
        "README.md": EntryKind.MARKDOWN,
        "docs/api.md": EntryKind.MARKDOWN,
        "logo.png": EntryKind.IMAGE,
    }
    for entry in manifest.entries:
        assert Path(entry.local_path).is_file()
    assert Path(manifest.entries[1].local_path).read_text(encoding="utf-8") == "# API\n"


def test_repeated_fetches_hit_the_network_once(fake_github: FakeGitHub, make_fetcher) -> None:
    fake_github.add_repository("acme", "widgets", {"README.md": "# Widgets\n"})
    fetcher = make_fetcher()

    with ThreadPoolExecutor(max_workers=4) as pool:
        manifests = list(
            pool.map(lambda _: fetcher.fetch_repository("https://github.com/acme/widgets"), range(8))
        )

    assert len(fake_github.tree_calls()) == 1
    assert all(manifest.entries == manifests[0].entries for manifest in manifests)


def test_missing_main_branch_falls_back_to_master(fake_github: FakeGitHub, make_fetcher) -> None:
    fake_github.add_repository("acme", "legacy", {"README.md": "# Legacy\n"}, branch="master")

    manifest = make_fetcher().fetch_repository("https://github.com/acme/legacy")

    assert manifest.branch == "master"
    assert len(manifest.entries) == 1


def test_sub_path_limits_mirrored_files(fake_github: FakeGitHub, make_fetcher) -> None:
    fake_github.add_repository(
        "acme", "widgets", {"README.md": "# Root\n", "docs/README.md": "# Docs\n", "docs/a.md": "# A\n"}
    )

    manifest = make_fetcher().fetch_repository("https://github.com/acme/widgets/tree/main/docs")

    assert manifest.sub_path == "docs"
    assert sorted(entry.original_path for entry in manifest.entries) == ["docs/README.md", "docs/a.md"]
    assert manifest.main_entry().original_path == "docs/README.md"


def test_failed_fetch_yields_empty_manifest(
    fake_github: FakeGitHub, make_fetcher, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING, logger="docsite"):
        manifest = make_fetcher().fetch_repository("https://github.com/acme/ghost")

    assert manifest.entries == []
    assert "Could not fetch repository acme/ghost" in caplog.text


def test_failed_download_skips_file(fake_github: FakeGitHub, make_fetcher) -> None:
    fake_github.add_repository("acme", "widgets", {"README.md": "# W\n", "broken.md": "# B\n"})
    fake_github.failing_downloads.add("broken.md")

    manifest = make_fetcher().fetch_repository("https://github.com/acme/widgets")

    assert [entry.original_path for entry in manifest.entries] == ["README.md"]


def test_disk_cache_serves_later_builds(tmp_path: Path, fake_github: FakeGitHub, make_fetcher) -> None:
    fake_github.add_repository("acme", "widgets", {"README.md": "# Widgets\n"})
    cache_file = tmp_path / "cache" / "repos.json"

    first = make_fetcher(cache=RepositoryCache(cache_file))
    first.fetch_repository("https://github.com/acme/widgets")
    first.cache.persist()

    second = make_fetcher(cache=RepositoryCache(cache_file))
    manifest = second.fetch_repository("https://github.com/acme/widgets")

    assert len(fake_github.tree_calls()) == 1
    assert [entry.original_path for entry in manifest.entries] == ["README.md"]


def test_offline_mode_never_touches_the_network(fake_github: FakeGitHub, make_fetcher) -> None:
    fake_github.add_repository("acme", "widgets", {"README.md": "# Widgets\n"})

    manifest = make_fetcher(offline=True).fetch_repository("https://github.com/acme/widgets")

    assert manifest.entries == []
    assert fake_github.calls == []
