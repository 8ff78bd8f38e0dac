"""Search index emitted for client-side search."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List

_INDEX_VERSION = 1
_MAX_TEXT = 5000


@dataclass
class SearchDocument:
    title: str
    url: str
    breadcrumb: str = ""
    headings: List[str] = field(default_factory=list)
    text: str = ""


class SearchIndex:
    """Collects one entry per rendered page and writes ``search-index.json``."""

    def __init__(self, max_text: int = _MAX_TEXT) -> None:
        self.max_text = max_text
        self._documents: List[SearchDocument] = []
        self._lock = threading.Lock()

    def add(self, document: SearchDocument) -> None:
        if len(document.text) > self.max_text:
            document = SearchDocument(
                title=document.title,
                url=document.url,
                breadcrumb=document.breadcrumb,
                headings=list(document.headings),
                text=document.text[: self.max_text],
            )
        with self._lock:
            self._documents.append(document)

    def documents(self) -> List[SearchDocument]:
        with self._lock:
            return sorted(self._documents, key=lambda item: item.url)

    def write_json(self, path: Path) -> Path:
        payload = {
            "version": _INDEX_VERSION,
            "documents": [asdict(document) for document in self.documents()],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        return path

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)


__all__ = ["SearchDocument", "SearchIndex"]
