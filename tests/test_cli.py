"""CLI behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsite.cli import _build_parser, main
from tests._fixtures.site_builder import SiteTreeBuilder


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "build"])
    assert args.verbose is True
    assert args.command == "build"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["build", "--verbose"])
    assert args.verbose is True
    assert args.command == "build"


def test_cli_build_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(["build", "docs", "--output", "public", "--workers", "3", "--offline"])
    assert args.path == "docs"
    assert args.output == "public"
    assert args.workers == 3
    assert args.offline is True


def test_cli_cache_requires_known_action() -> None:
    parser = _build_parser()
    assert parser.parse_args(["cache", "info"]).action == "info"
    with pytest.raises(SystemExit):
        parser.parse_args(["cache", "purge"])


def test_build_missing_root_exits_with_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["build", str(tmp_path / "absent")])
    assert excinfo.value.code == 1


def test_build_with_broken_config_exits_with_error(tmp_path: Path) -> None:
    (tmp_path / "docsite.yml").write_text("site: [unclosed\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        main(["build", str(tmp_path)])
    assert excinfo.value.code == 1


def test_build_writes_site(site_tree: SiteTreeBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    site_tree.write({"README.md": "# Home\n\nSee [setup](docs/setup.md).\n", "docs/setup.md": "# Setup\n"})

    main(["build", str(site_tree.path()), "--offline"])

    output = capsys.readouterr().out
    assert "Documents: 2 generated, 0 failed" in output
    assert (site_tree.path() / "dist" / "index.html").is_file()
    assert (site_tree.path() / "dist" / "docs" / "setup.html").is_file()


def test_tree_command_prints_hierarchy(site_tree: SiteTreeBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    site_tree.write({"README.md": "# Home\n", "guide/start.md": "# Start\n"})

    main(["tree", str(site_tree.path())])

    output = capsys.readouterr().out
    assert "Overview (README.md)" in output
    assert "Start (guide/start.md)" in output


def test_cache_info_on_empty_cache(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    main(["cache", "info", str(tmp_path)])

    assert "No cached repositories" in capsys.readouterr().out
