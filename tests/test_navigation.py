"""Breadcrumb and sidebar tests."""

from __future__ import annotations

from docsite.index import build_index
from docsite.navigation import build_navigation, derive_breadcrumb
from tests._fixtures.site_builder import SiteTreeBuilder


def _write_site(site_tree: SiteTreeBuilder) -> None:
    site_tree.write(
        {
            "doc-config.yaml": """
                hierarchy:
                  - Welcome: README.md
                  - User Guides: guides/
                  - Reference:
                      path: reference/
                      alias: ref
            """,
            "README.md": "# Welcome\n",
            "guides/README.md": "# Guides\n",
            "guides/installing-things.md": "# Installing\n",
            "reference/api.md": "# API\n",
        }
    )


def test_breadcrumb_uses_tree_titles(site_tree: SiteTreeBuilder) -> None:
    _write_site(site_tree)
    tree = site_tree.tree(site_title="Docs")

    assert derive_breadcrumb("user-guides/installing-things.html", tree) == "User Guides / Installing Things"
    assert derive_breadcrumb("user-guides/index.html", tree) == "User Guides"
    assert derive_breadcrumb("ref/api.html", tree, separator=" > ") == "Reference > Api"
    assert derive_breadcrumb("index.html", tree) == "Docs"


def test_breadcrumb_falls_back_to_segment_names(site_tree: SiteTreeBuilder) -> None:
    _write_site(site_tree)
    tree = site_tree.tree()

    assert derive_breadcrumb("widgets/docs/getting-started.html", tree) == "Widgets / Docs / Getting Started"


def test_breadcrumb_drops_deepest_segments_first(site_tree: SiteTreeBuilder) -> None:
    _write_site(site_tree)
    tree = site_tree.tree()

    crumb = derive_breadcrumb("alpha/beta/gamma/page.html", tree, max_length=15)

    assert crumb == "Alpha / Beta"
    assert len(crumb) <= 15

    assert derive_breadcrumb("guide/very-long-page-title.html", tree, max_length=20) == "Guide"


def test_breadcrumb_cuts_single_long_segment(site_tree: SiteTreeBuilder) -> None:
    _write_site(site_tree)
    tree = site_tree.tree()

    crumb = derive_breadcrumb("a-very-long-page-name-indeed.html", tree, max_length=12)

    assert crumb == "A Very Lo..."


def test_navigation_marks_active_page_with_relative_hrefs(site_tree: SiteTreeBuilder) -> None:
    _write_site(site_tree)
    tree = site_tree.tree()
    site = build_index(tree, {}, site_tree.path())

    items = build_navigation(tree, site.paths, "user-guides/installing-things.html")

    assert [item.title for item in items] == ["Welcome", "User Guides", "Reference"]
    welcome, guides, reference = items
    assert welcome.href == "../index.html"
    assert guides.href == "index.html"
    assert guides.active is True
    assert [(child.title, child.href, child.active) for child in guides.children] == [
        ("Overview", "index.html", False),
        ("Installing Things", "installing-things.html", True),
    ]
    assert reference.href is None
    assert reference.children[0].href == "../ref/api.html"
