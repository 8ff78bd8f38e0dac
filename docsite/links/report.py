"""Build-wide link diagnostics."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List

from ..models import LinkClass, LinkRecord


@dataclass
class LinkReportEntry:
    """One raw target; ``unresolved_in`` names only the documents where it failed."""

    url: str
    classification: LinkClass
    source_documents: List[str] = field(default_factory=list)
    unresolved_in: List[str] = field(default_factory=list)
    resolution: str | None = None

    @property
    def resolved(self) -> bool:
        return not self.unresolved_in

    def to_dict(self) -> Dict[str, object]:
        return {
            "url": self.url,
            "type": self.classification.value,
            "source_documents": list(self.source_documents),
            "resolved": self.resolved,
            "unresolved_in": list(self.unresolved_in),
            "resolution": self.resolution,
        }


class LinkReport:
    """Aggregates link records by raw target across the whole build."""

    def __init__(self) -> None:
        self._entries: Dict[str, LinkReportEntry] = {}
        self._lock = threading.Lock()

    def aggregate(self, records: Iterable[LinkRecord]) -> None:
        with self._lock:
            for record in records:
                entry = self._entries.get(record.raw_target)
                if entry is None:
                    entry = LinkReportEntry(url=record.raw_target, classification=record.classification)
                    self._entries[record.raw_target] = entry
                if record.source_document not in entry.source_documents:
                    entry.source_documents.append(record.source_document)
                if not record.resolved:
                    if record.source_document not in entry.unresolved_in:
                        entry.unresolved_in.append(record.source_document)
                elif entry.resolution is None and record.resolution is not None:
                    entry.resolution = record.resolution

    def entries(self) -> List[LinkReportEntry]:
        with self._lock:
            return list(self._entries.values())

    def unresolved(self) -> List[LinkReportEntry]:
        return [entry for entry in self.entries() if not entry.resolved]

    def stats(self) -> Dict[str, int]:
        entries = self.entries()
        counts = {"total": len(entries), "resolved": 0, "unresolved": 0}
        for classification in LinkClass:
            counts[classification.value] = 0
        for entry in entries:
            counts[entry.classification.value] += 1
            counts["resolved" if entry.resolved else "unresolved"] += 1
        return counts

    def write_json(self, path: Path) -> Path:
        payload = {
            "stats": self.stats(),
            "links": [entry.to_dict() for entry in sorted(self.entries(), key=lambda item: item.url)],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path

    def summary(self, *, limit: int = 20) -> List[str]:
        """Human-readable lines for the end-of-build log."""
        stats = self.stats()
        lines = [f"Links: {stats['resolved']} resolved, {stats['unresolved']} unresolved"]
        unresolved = self.unresolved()
        for entry in unresolved[:limit]:
            sources = ", ".join(entry.unresolved_in)
            lines.append(f"  unresolved {entry.url} (in {sources})")
        if len(unresolved) > limit:
            lines.append(f"  ... and {len(unresolved) - limit} more")
        return lines


__all__ = ["LinkReport", "LinkReportEntry"]
