from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tests._fixtures.github import API_ROOT, RAW_ROOT, FakeGitHub
from tests._fixtures.site_builder import SiteTreeBuilder
from docsite.fetch import GitHubFetcher, RepositoryCache


@pytest.fixture
def site_tree(tmp_path: Path) -> SiteTreeBuilder:
    """Provide a reusable source tree builder rooted at the pytest tmp_path."""
    return SiteTreeBuilder(tmp_path)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def make_fetcher(tmp_path: Path, fake_github: FakeGitHub):
    """Build fetchers wired to the in-memory GitHub."""

    def _make(*, cache: RepositoryCache | None = None, offline: bool = False) -> GitHubFetcher:
        return GitHubFetcher(
            tmp_path / "mirror",
            cache=cache,
            token="",
            http_get=fake_github,
            api_root=API_ROOT,
            raw_root=RAW_ROOT,
            offline=offline,
        )

    return _make


@pytest.fixture(autouse=True)
def _reset_docsite_logger():
    """Undo CLI logging configuration so caplog sees docsite records."""
    yield
    logger = logging.getLogger("docsite")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
