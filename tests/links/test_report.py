"""Link report aggregation tests."""

from __future__ import annotations

import json
from pathlib import Path

from docsite.links import LinkReport
from docsite.models import LinkClass, LinkRecord


def test_report_groups_by_url_and_tracks_resolution(tmp_path: Path) -> None:
    report = LinkReport()
    report.aggregate(
        [
            LinkRecord("../guide/start.md", "docs/a.md", LinkClass.INTERNAL, "guide/start.html"),
            LinkRecord("../guide/start.md", "docs/b.md", LinkClass.INTERNAL, "guide/start.html"),
            LinkRecord("missing.md", "docs/a.md", LinkClass.INTERNAL, None),
            LinkRecord("https://example.com", "docs/a.md", LinkClass.EXTERNAL, None),
        ]
    )

    stats = report.stats()
    assert stats["total"] == 3
    assert stats["resolved"] == 2
    assert stats["unresolved"] == 1
    assert [entry.url for entry in report.unresolved()] == ["missing.md"]

    path = report.write_json(tmp_path / "cache" / "link-report.json")
    payload = json.loads(path.read_text(encoding="utf-8"))
    start = next(link for link in payload["links"] if link["url"] == "../guide/start.md")
    assert start["source_documents"] == ["docs/a.md", "docs/b.md"]
    assert start["resolved"] is True
    assert any("unresolved missing.md" in line for line in report.summary())


def test_unresolved_sources_exclude_documents_where_the_link_worked() -> None:
    report = LinkReport()
    report.aggregate(
        [
            LinkRecord("setup.md", "docs/index.md", LinkClass.INTERNAL, "docs/setup.html"),
            LinkRecord("setup.md", "index.md", LinkClass.INTERNAL, None),
        ]
    )

    (entry,) = report.unresolved()
    assert entry.source_documents == ["docs/index.md", "index.md"]
    assert entry.unresolved_in == ["index.md"]
    assert entry.resolution == "docs/setup.html"
    assert entry.to_dict()["resolved"] is False
    assert report.summary()[1] == "  unresolved setup.md (in index.md)"
