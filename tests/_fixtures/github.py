"""In-memory stand-in for the GitHub trees API and raw downloads."""

from __future__ import annotations

import json
from typing import Dict, List, Mapping, Tuple

from docsite.fetch import FetchError

API_ROOT = "https://api.test"
RAW_ROOT = "https://raw.test"


class FakeGitHub:
    """Serves registered repositories through the fetcher's ``http_get`` hook."""

    def __init__(self) -> None:
        self._repos: Dict[Tuple[str, str, str], Dict[str, bytes]] = {}
        self.calls: List[str] = []
        self.failing_downloads: set[str] = set()

    def add_repository(
        self, owner: str, repo: str, files: Mapping[str, str | bytes], *, branch: str = "main"
    ) -> None:
        self._repos[(owner, repo, branch)] = {
            path: content.encode("utf-8") if isinstance(content, str) else content
            for path, content in files.items()
        }

    def tree_calls(self) -> List[str]:
        return [url for url in self.calls if url.startswith(API_ROOT)]

    def __call__(self, url: str, headers: Mapping[str, str], timeout: float) -> bytes:
        self.calls.append(url)
        if url.startswith(f"{API_ROOT}/repos/"):
            parts = url[len(f"{API_ROOT}/repos/") :].split("?", 1)[0].split("/")
            owner, repo, branch = parts[0], parts[1], parts[4]
            files = self._repos.get((owner, repo, branch))
            if files is None:
                raise FetchError(f"HTTP 404 for {url}")
            tree = [{"path": path, "type": "blob"} for path in files]
            tree.append({"path": "docs", "type": "tree"})
            return json.dumps({"tree": tree, "truncated": False}).encode("utf-8")
        if url.startswith(f"{RAW_ROOT}/"):
            owner, repo, branch, path = url[len(f"{RAW_ROOT}/") :].split("/", 3)
            files = self._repos.get((owner, repo, branch), {})
            if path in self.failing_downloads or path not in files:
                raise FetchError(f"HTTP 404 for {url}")
            return files[path]
        raise FetchError(f"Unexpected URL {url}")


__all__ = ["API_ROOT", "FakeGitHub", "RAW_ROOT"]
