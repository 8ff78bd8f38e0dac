"""Mirror markdown and image files from GitHub repositories."""

from __future__ import annotations

import json
import os
import re
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..logging import get_logger
from ..models import EntryKind, ManifestEntry, RepositoryManifest
from ..paths import is_image, is_markdown, normalize_key
from .cache import RepositoryCache

API_ROOT = "https://api.github.com"
RAW_ROOT = "https://raw.githubusercontent.com"
DEFAULT_BRANCHES = ("main", "master")
USER_AGENT = "docsite/0.1"

_REPOSITORY_URL = re.compile(
    r"^https?://(?:www\.)?github\.com/"
    r"(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+?)(?:\.git)?"
    r"(?:/tree/(?P<branch>[^/]+)(?:/(?P<path>.+?))?)?/?$"
)

HttpGet = Callable[[str, Mapping[str, str], float], bytes]


class FetchError(RuntimeError):
    """Raised when a repository listing or download fails."""


@dataclass(frozen=True)
class RepositoryRef:
    """Parsed coordinates of a repository URL."""

    owner: str
    repo: str
    branch: Optional[str] = None
    sub_path: str = ""


def parse_repository_url(url: str) -> RepositoryRef:
    """Parse ``https://github.com/<owner>/<repo>[/tree/<branch>[/<path>]]``."""
    match = _REPOSITORY_URL.match(url.strip())
    if not match:
        raise ValueError(f"Unrecognized repository URL: {url}")
    return RepositoryRef(
        owner=match.group("owner"),
        repo=match.group("repo"),
        branch=match.group("branch"),
        sub_path=normalize_key(match.group("path") or ""),
    )


class GitHubFetcher:
    """Fetches repository trees and mirrors their markdown and image blobs.

    Manifests are memoized per ``(owner, repo, branch, sub-path)`` for the
    lifetime of the fetcher. Concurrent callers asking for the same
    repository wait for the first fetch instead of repeating it.
    """

    ENV_TOKEN_KEYS = ("DOCSITE_GITHUB_TOKEN", "GITHUB_TOKEN")

    def __init__(
        self,
        mirror_dir: Path,
        *,
        cache: RepositoryCache | None = None,
        timeout: float = 30.0,
        token: str | None = None,
        http_get: HttpGet | None = None,
        api_root: str = API_ROOT,
        raw_root: str = RAW_ROOT,
        offline: bool = False,
    ) -> None:
        self.mirror_dir = mirror_dir
        self.cache = cache
        self.timeout = timeout
        self.token = token if token is not None else self._token_from_env()
        self.api_root = api_root.rstrip("/")
        self.raw_root = raw_root.rstrip("/")
        self.offline = offline
        self._http_get = http_get or self._urllib_get
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}
        self._manifests: Dict[str, RepositoryManifest] = {}
        self.logger = get_logger("fetch")

    def fetch_repository(self, url: str, alias: str | None = None) -> RepositoryManifest:
        """Return the manifest for ``url``, fetching it at most once."""
        ref = parse_repository_url(url)
        key = self._memo_key(ref)
        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())
        with key_lock:
            manifest = self._manifests.get(key)
            if manifest is None:
                manifest = self._load_or_fetch(ref)
                self._manifests[key] = manifest
        if alias is not None and manifest.alias != alias:
            return replace(manifest, alias=alias)
        return manifest

    # ------------------------------------------------------------------
    # Fetching

    def _load_or_fetch(self, ref: RepositoryRef) -> RepositoryManifest:
        branches: Sequence[str] = (ref.branch,) if ref.branch else DEFAULT_BRANCHES
        if self.cache is not None:
            for branch in branches:
                cached = self.cache.get(self._cache_key(ref, branch))
                if cached is not None:
                    self.logger.debug("Using cached manifest for %s/%s@%s", ref.owner, ref.repo, branch)
                    return cached

        if self.offline:
            self.logger.warning(
                "Offline mode: no cached copy of %s/%s; it contributes no documents", ref.owner, ref.repo
            )
            return RepositoryManifest(
                owner=ref.owner, repo_name=ref.repo, branch=branches[0], sub_path=ref.sub_path
            )

        errors: List[str] = []
        for branch in branches:
            try:
                tree = self._list_tree(ref, branch)
            except FetchError as exc:
                errors.append(f"{branch}: {exc}")
                continue
            manifest = self._mirror(ref, branch, tree)
            if self.cache is not None:
                self.cache.store(self._cache_key(ref, branch), manifest)
            self.logger.info(
                "Mirrored %s/%s@%s (%d files)",
                ref.owner,
                ref.repo,
                branch,
                len(manifest.entries),
            )
            return manifest

        self.logger.warning(
            "Could not fetch repository %s/%s (%s); it contributes no documents",
            ref.owner,
            ref.repo,
            "; ".join(errors),
        )
        return RepositoryManifest(
            owner=ref.owner,
            repo_name=ref.repo,
            branch=branches[0],
            sub_path=ref.sub_path,
        )

    def _list_tree(self, ref: RepositoryRef, branch: str) -> List[str]:
        url = (
            f"{self.api_root}/repos/{ref.owner}/{ref.repo}/git/trees/"
            f"{quote(branch, safe='')}?recursive=1"
        )
        raw = self._http_get(url, self._headers(api=True), self.timeout)
        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise FetchError("tree listing is not valid JSON") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("tree"), list):
            raise FetchError("tree listing has no 'tree' array")
        if payload.get("truncated"):
            self.logger.warning(
                "Tree listing for %s/%s@%s was truncated by the API", ref.owner, ref.repo, branch
            )

        paths: List[str] = []
        prefix = f"{ref.sub_path}/" if ref.sub_path else ""
        for item in payload["tree"]:
            if not isinstance(item, dict) or item.get("type") != "blob":
                continue
            path = item.get("path")
            if not isinstance(path, str):
                continue
            if prefix and not path.startswith(prefix):
                continue
            if is_markdown(path) or is_image(path):
                paths.append(path)
        return paths

    def _mirror(self, ref: RepositoryRef, branch: str, paths: Sequence[str]) -> RepositoryManifest:
        target_dir = self.mirror_dir / f"{ref.owner}__{ref.repo}__{_safe_segment(branch)}"
        entries: List[ManifestEntry] = []
        for original_path in paths:
            url = f"{self.raw_root}/{ref.owner}/{ref.repo}/{quote(branch, safe='')}/{quote(original_path)}"
            try:
                content = self._http_get(url, self._headers(api=False), self.timeout)
            except FetchError as exc:
                self.logger.warning("Skipping %s from %s/%s: %s", original_path, ref.owner, ref.repo, exc)
                continue
            local_path = target_dir / original_path
            local_path.parent.mkdir(parents=True, exist_ok=True)
            local_path.write_bytes(content)
            entries.append(
                ManifestEntry(
                    original_path=original_path,
                    local_path=str(local_path),
                    kind=EntryKind.MARKDOWN if is_markdown(original_path) else EntryKind.IMAGE,
                )
            )
        return RepositoryManifest(
            owner=ref.owner,
            repo_name=ref.repo,
            branch=branch,
            sub_path=ref.sub_path,
            entries=entries,
        )

    # ------------------------------------------------------------------
    # HTTP

    def _headers(self, *, api: bool) -> Dict[str, str]:
        headers = {"User-Agent": USER_AGENT}
        if api:
            headers["Accept"] = "application/vnd.github+json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _urllib_get(url: str, headers: Mapping[str, str], timeout: float) -> bytes:
        request = Request(url, headers=dict(headers), method="GET")
        try:
            with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
                return response.read()
        except HTTPError as exc:
            raise FetchError(f"HTTP {exc.code} for {url}") from exc
        except URLError as exc:
            raise FetchError(f"{exc.reason} for {url}") from exc
        except TimeoutError as exc:
            raise FetchError(f"timed out after {timeout}s for {url}") from exc

    @classmethod
    def _token_from_env(cls) -> str | None:
        for key in cls.ENV_TOKEN_KEYS:
            value = os.getenv(key)
            if value:
                return value
        return None

    @staticmethod
    def _memo_key(ref: RepositoryRef) -> str:
        branch = ref.branch or "*"
        suffix = f":{ref.sub_path}" if ref.sub_path else ""
        return f"{ref.owner}/{ref.repo}@{branch}{suffix}".lower()

    @staticmethod
    def _cache_key(ref: RepositoryRef, branch: str) -> str:
        suffix = f":{ref.sub_path}" if ref.sub_path else ""
        return f"{ref.owner}/{ref.repo}@{branch}{suffix}"


def _safe_segment(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", value)


__all__ = [
    "FetchError",
    "GitHubFetcher",
    "RepositoryRef",
    "parse_repository_url",
]
