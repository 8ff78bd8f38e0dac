"""Core data models shared across docsite components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


_MAIN_FILE_STEMS = ("readme", "index", "main")


class NodeKind(str, Enum):
    """Variant tag for hierarchy nodes."""

    FILE = "file"
    FOLDER = "folder"
    REPOSITORY = "repository"
    SECTION = "section"


class EntryKind(str, Enum):
    """Kind of a mirrored repository file."""

    MARKDOWN = "markdown"
    IMAGE = "image"


class LinkClass(str, Enum):
    """Classification of an observed link target."""

    INTERNAL = "internal"
    EXTERNAL = "external"
    ASSET = "asset"
    ANCHOR = "anchor-only"


@dataclass(frozen=True)
class DocumentNode:
    """One addressable unit in the documentation hierarchy."""

    kind: NodeKind
    title: str
    alias: str
    source: Optional[str] = None
    branch: Optional[str] = None
    children: Tuple["DocumentNode", ...] = ()
    is_section_container: bool = False
    description: Optional[str] = None
    auto_discovered: bool = False

    def walk(self) -> Iterator["DocumentNode"]:
        """Yield this node and its descendants depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class ManifestEntry:
    """A single file mirrored from a remote repository."""

    original_path: str
    local_path: str
    kind: EntryKind


@dataclass
class RepositoryManifest:
    """Files mirrored from one repository, keyed by their repo-relative path."""

    owner: str
    repo_name: str
    branch: str
    alias: Optional[str] = None
    sub_path: str = ""
    entries: List[ManifestEntry] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo_name}"

    @property
    def source_prefix(self) -> str:
        """Prefix under which the repository's files are indexed."""
        return f"github.com/{self.owner}/{self.repo_name}"

    @property
    def web_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo_name}"

    def source_key(self, original_path: str) -> str:
        return f"{self.source_prefix}/{original_path}"

    def markdown_entries(self) -> List[ManifestEntry]:
        return [entry for entry in self.entries if entry.kind is EntryKind.MARKDOWN]

    def image_entries(self) -> List[ManifestEntry]:
        return [entry for entry in self.entries if entry.kind is EntryKind.IMAGE]

    def relative_to_root(self, original_path: str) -> str:
        """Return ``original_path`` relative to the mirrored sub-path."""
        if self.sub_path and original_path.startswith(f"{self.sub_path}/"):
            return original_path[len(self.sub_path) + 1 :]
        return original_path

    def main_entry(self) -> Optional[ManifestEntry]:
        """Return the first root README, falling back to the first markdown file."""
        markdown = self.markdown_entries()
        root_level = [
            entry
            for entry in markdown
            if "/" not in self.relative_to_root(entry.original_path)
        ]
        for preferred in _MAIN_FILE_STEMS:
            for entry in root_level:
                stem = self.relative_to_root(entry.original_path).rsplit(".", 1)[0].lower()
                if stem == preferred:
                    return entry
        if root_level:
            return root_level[0]
        return markdown[0] if markdown else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "repo_name": self.repo_name,
            "branch": self.branch,
            "alias": self.alias,
            "sub_path": self.sub_path,
            "entries": [
                {
                    "original_path": entry.original_path,
                    "local_path": entry.local_path,
                    "kind": entry.kind.value,
                }
                for entry in self.entries
            ],
        }

    @classmethod
    def from_dict(cls, payload: object) -> Optional["RepositoryManifest"]:
        if not isinstance(payload, dict):
            return None
        owner = payload.get("owner")
        repo_name = payload.get("repo_name")
        branch = payload.get("branch")
        if not isinstance(owner, str) or not isinstance(repo_name, str) or not isinstance(branch, str):
            return None
        alias = payload.get("alias")
        sub_path = payload.get("sub_path")
        entries: List[ManifestEntry] = []
        raw_entries = payload.get("entries")
        if isinstance(raw_entries, list):
            for raw in raw_entries:
                if not isinstance(raw, dict):
                    continue
                original = raw.get("original_path")
                local = raw.get("local_path")
                kind = raw.get("kind")
                if not isinstance(original, str) or not isinstance(local, str):
                    continue
                try:
                    entry_kind = EntryKind(kind)
                except ValueError:
                    continue
                entries.append(ManifestEntry(original_path=original, local_path=local, kind=entry_kind))
        return cls(
            owner=owner,
            repo_name=repo_name,
            branch=branch,
            alias=alias if isinstance(alias, str) else None,
            sub_path=sub_path if isinstance(sub_path, str) else "",
            entries=entries,
        )


@dataclass(frozen=True)
class PathIndexEntry:
    """Maps one source document to its output location."""

    source_key: str
    output_path: str
    case_normalized_name: str


@dataclass(frozen=True)
class SourceDocument:
    """A markdown document scheduled for rendering."""

    source_key: str
    local_path: str
    output_path: str
    title: str
    manifest: Optional[RepositoryManifest] = None

    @property
    def is_mirrored(self) -> bool:
        return self.manifest is not None

    def original_path(self) -> Optional[str]:
        """Return the repo-relative path for mirrored documents."""
        if self.manifest is None:
            return None
        prefix = f"{self.manifest.source_prefix}/"
        if self.source_key.startswith(prefix):
            return self.source_key[len(prefix) :]
        return None


@dataclass(frozen=True)
class LinkRecord:
    """One observed link or asset reference."""

    raw_target: str
    source_document: str
    classification: LinkClass
    resolution: Optional[str] = None

    @property
    def resolved(self) -> bool:
        if self.classification in (LinkClass.EXTERNAL, LinkClass.ANCHOR):
            return True
        return self.resolution is not None


__all__ = [
    "DocumentNode",
    "EntryKind",
    "LinkClass",
    "LinkRecord",
    "ManifestEntry",
    "NodeKind",
    "PathIndexEntry",
    "RepositoryManifest",
    "SourceDocument",
]
