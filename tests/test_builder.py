"""End-to-end build tests with an in-memory GitHub."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from docsite.builder import SiteBuilder
from docsite.config import load_config
from tests._fixtures.github import FakeGitHub
from tests._fixtures.site_builder import SiteTreeBuilder


@pytest.fixture
def widgets_site(site_tree: SiteTreeBuilder, fake_github: FakeGitHub) -> SiteTreeBuilder:
    fake_github.add_repository(
        "acme",
        "widgets",
        {
            "README.md": "# Widgets\n\nRead the [API](docs/api.md).\n\n![Diagram](docs/diagram.png)\n",
            "docs/api.md": "# API\n\n[Home](../README.md) and [source](../src/widget.py).\n",
            "docs/diagram.png": b"\x89PNG-diagram",
        },
    )
    site_tree.write(
        {
            "docsite.yml": """
                site:
                  title: Acme Docs
                  base_url: https://docs.acme.test
            """,
            "doc-config.yaml": """
                hierarchy:
                  - Home: README.md
                  - Docs: docs/
                  - Guide: guide/
                  - Widgets: https://github.com/acme/widgets
            """,
            "README.md": "# Acme\n\n![Logo](img/logo.png)\n\n[Widgets API](https://github.com/acme/widgets/blob/main/docs/diagram.png)\n",
            "docs/setup.md": "# Setup\n\nNext: [Start](../guide/start.md) or [missing](nowhere.md).\n",
            "guide/start.md": "# Start\n\nBack to [setup](../docs/setup.md#top).\n",
            "img/logo.png": b"\x89PNG-logo",
        }
    )
    return site_tree


def _builder(site: SiteTreeBuilder, make_fetcher) -> SiteBuilder:
    config = load_config(site.path())
    return SiteBuilder(config, fetcher=make_fetcher())


def test_build_renders_local_and_repository_documents(widgets_site: SiteTreeBuilder, make_fetcher) -> None:
    report = _builder(widgets_site, make_fetcher).build()
    dist = widgets_site.path() / "dist"

    assert report.generated == [
        "widgets/index.html",
        "widgets/docs/api.html",
        "index.html",
        "docs/setup.html",
        "guide/start.html",
    ]
    assert report.failed == {}

    setup = (dist / "docs" / "setup.html").read_text(encoding="utf-8")
    assert 'href="../guide/start.html"' in setup
    assert 'href="nowhere.html"' in setup

    start = (dist / "guide" / "start.html").read_text(encoding="utf-8")
    assert 'href="../docs/setup.html#top"' in start

    api = (dist / "widgets" / "docs" / "api.html").read_text(encoding="utf-8")
    assert 'href="../index.html"' in api
    assert 'href="https://github.com/acme/widgets/blob/main/src/widget.py"' in api

    widgets_index = (dist / "widgets" / "index.html").read_text(encoding="utf-8")
    assert 'href="docs/api.html"' in widgets_index
    assert 'src="../assets/images/' in widgets_index


def test_build_copies_deduplicated_assets(widgets_site: SiteTreeBuilder, make_fetcher) -> None:
    report = _builder(widgets_site, make_fetcher).build()
    images = sorted((widgets_site.path() / "dist" / "assets" / "images").iterdir())

    assert report.assets_copied == len(images) == 2
    home = (widgets_site.path() / "dist" / "index.html").read_text(encoding="utf-8")
    assert 'src="assets/images/' in home
    assert 'href="assets/images/' in home


def test_build_writes_reports(widgets_site: SiteTreeBuilder, make_fetcher) -> None:
    report = _builder(widgets_site, make_fetcher).build()

    assert report.link_stats["unresolved"] == 1
    assert report.unresolved_links == {"nowhere.md": ["docs/setup.md"]}
    link_report = json.loads(report.link_report.read_text(encoding="utf-8"))
    assert any(link["url"] == "nowhere.md" and not link["resolved"] for link in link_report["links"])

    search = json.loads(report.search_index.read_text(encoding="utf-8"))
    urls = [document["url"] for document in search["documents"]]
    assert "widgets/docs/api.html" in urls
    api_entry = next(document for document in search["documents"] if document["url"] == "widgets/docs/api.html")
    assert api_entry["headings"] == ["API"]

    sitemap = report.sitemap.read_text(encoding="utf-8")
    assert "<loc>https://docs.acme.test/widgets/docs/api.html</loc>" in sitemap
    assert "<loc>https://docs.acme.test/</loc>" in sitemap


def test_failed_repository_fetch_does_not_abort_build(
    site_tree: SiteTreeBuilder, make_fetcher
) -> None:
    site_tree.write(
        {
            "doc-config.yaml": """
                hierarchy:
                  - Intro: intro.md
                  - Ghost: https://github.com/acme/ghost
            """,
            "intro.md": "# Intro\n\n[Ghost docs](https://github.com/acme/ghost)\n",
        }
    )

    report = _builder(site_tree, make_fetcher).build()

    assert report.generated == ["intro.html", "index.html"]
    assert report.repositories == {"https://github.com/acme/ghost": 0}
    assert report.warnings["fetch"] == 1
    assert any(line.startswith("Warnings: ") for line in report.summary_lines())
    assert (site_tree.path() / "dist" / "index.html").is_file()


def test_document_failure_is_recorded(
    site_tree: SiteTreeBuilder, make_fetcher, monkeypatch: pytest.MonkeyPatch
) -> None:
    site_tree.write({"README.md": "# Home\n", "bad.md": "# Bad\n"})
    builder = _builder(site_tree, make_fetcher)
    original = builder.markdown_renderer.render

    def _render(text: str):
        if "Bad" in text:
            raise ValueError("boom")
        return original(text)

    monkeypatch.setattr(builder.markdown_renderer, "render", _render)

    report = builder.build()

    assert report.failed == {"bad.md": "boom"}
    assert report.generated == ["index.html"]


def test_missing_root_is_fatal(tmp_path: Path, make_fetcher) -> None:
    config = load_config(tmp_path)
    config.source.root = tmp_path / "absent"

    with pytest.raises(FileNotFoundError):
        SiteBuilder(config, fetcher=make_fetcher()).build()


def test_build_writes_error_page_with_site_navigation(widgets_site: SiteTreeBuilder, make_fetcher) -> None:
    report = _builder(widgets_site, make_fetcher).build()

    assert report.error_page == widgets_site.path() / "dist" / "404.html"
    page = report.error_page.read_text(encoding="utf-8")
    assert "Page Not Found" in page
    assert '<a href="https://docs.acme.test/">Back to the home page</a>' in page
    assert 'href="docs/setup.html"' in page
    assert 'href="widgets/index.html"' in page
    assert "404.html" not in report.generated
    assert "404.html" not in report.sitemap.read_text(encoding="utf-8")
    assert report.to_dict()["error_page"] == str(report.error_page)


def test_error_page_links_home_relatively_without_base_url(
    site_tree: SiteTreeBuilder, make_fetcher
) -> None:
    site_tree.write({"README.md": "# Home\n"})

    report = _builder(site_tree, make_fetcher).build()

    page = report.error_page.read_text(encoding="utf-8")
    assert '<a href="index.html">Back to the home page</a>' in page
