"""Persistent cache of repository manifests."""

from __future__ import annotations

import json
import threading
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..models import RepositoryManifest

_CACHE_VERSION = 1

DEFAULT_TTL_HOURS = 12.0


class RepositoryCache:
    """Stores mirrored repository manifests keyed ``owner/repo@branch``.

    A cached manifest is only returned while it is younger than the freshness
    window and every mirrored file still exists on disk. Writes are serialized
    behind a lock; :meth:`persist` is called once after all fetches finish.
    """

    def __init__(
        self,
        path: Path | None,
        *,
        ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = path
        self._ttl_seconds = max(ttl_hours, 0.0) * 3600.0
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, object]] = {}
        self._dirty = False
        if self._path is not None:
            self._load(self._path)

    @property
    def path(self) -> Path | None:
        return self._path

    def get(self, key: str) -> Optional[RepositoryManifest]:
        with self._lock:
            entry = self._entries.get(key)
        if not entry:
            return None
        fetched_at = entry.get("fetched_at")
        if not isinstance(fetched_at, (int, float)):
            return None
        if self._clock() - float(fetched_at) > self._ttl_seconds:
            return None
        manifest = RepositoryManifest.from_dict(entry.get("manifest"))
        if manifest is None:
            return None
        if not all(Path(item.local_path).is_file() for item in manifest.entries):
            return None
        return manifest

    def store(self, key: str, manifest: RepositoryManifest) -> None:
        with self._lock:
            self._entries[key] = {
                "fetched_at": self._clock(),
                "manifest": manifest.to_dict(),
            }
            self._dirty = True

    def persist(self) -> None:
        with self._lock:
            if not self._dirty or self._path is None:
                return
            payload = {
                "version": _CACHE_VERSION,
                "entries": self._entries,
            }
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
            )
            self._dirty = False

    def clear(self) -> int:
        """Drop every entry and return how many were removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._dirty = True
        self.persist()
        return removed

    def info(self) -> List[Dict[str, object]]:
        """Describe cached repositories for the ``cache info`` command."""
        now = self._clock()
        rows: List[Dict[str, object]] = []
        with self._lock:
            items = sorted(self._entries.items())
        for key, entry in items:
            fetched_at = entry.get("fetched_at")
            manifest = RepositoryManifest.from_dict(entry.get("manifest"))
            if not isinstance(fetched_at, (int, float)) or manifest is None:
                continue
            rows.append(
                {
                    "key": key,
                    "files": len(manifest.entries),
                    "fetched_at": datetime.fromtimestamp(float(fetched_at), UTC)
                    .isoformat()
                    .replace("+00:00", "Z"),
                    "fresh": now - float(fetched_at) <= self._ttl_seconds,
                }
            )
        return rows

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        valid_entries: Dict[str, Dict[str, object]] = {}
        for key, raw in entries.items():
            if not isinstance(key, str) or not isinstance(raw, dict):
                continue
            if "fetched_at" not in raw or "manifest" not in raw:
                continue
            valid_entries[key] = raw
        self._entries = valid_entries
        self._dirty = False


__all__ = ["DEFAULT_TTL_HOURS", "RepositoryCache"]
