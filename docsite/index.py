"""Global path and asset indexes built before any link is resolved."""

from __future__ import annotations

import hashlib
import posixpath
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .logging import get_logger
from .models import DocumentNode, NodeKind, PathIndexEntry, RepositoryManifest, SourceDocument
from .paths import INDEX_NAME, first_suffix_match, join_output, normalize_key, to_output_name
from .slugs import title_for_file
from .tree import iter_local_images, iter_placements

ASSET_DIRECTORY = "assets/images"

_HASH_CHUNK = 64 * 1024


class IndexFrozenError(RuntimeError):
    """Raised when registering into an index after indexing has finished."""


class PathIndex:
    """Maps normalized source keys to site-relative output paths."""

    def __init__(self) -> None:
        self._entries: Dict[str, PathIndexEntry] = {}
        self._by_name: Dict[str, List[str]] = {}
        self._by_output: Dict[str, str] = {}
        self._frozen = False
        self.logger = get_logger("index")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(self, source_key: str, output_path: str) -> PathIndexEntry:
        """Record ``source_key -> output_path``; the last registration wins."""
        if self._frozen:
            raise IndexFrozenError(f"Cannot register '{source_key}': the path index is frozen")
        key = normalize_key(source_key)
        output = normalize_key(output_path)
        existing = self._entries.get(key)
        if existing is not None:
            if existing.output_path == output:
                return existing
            self.logger.warning(
                "Source '%s' re-registered: %s replaces %s", key, output, existing.output_path
            )
            if self._by_output.get(existing.output_path) == key:
                del self._by_output[existing.output_path]

        owner = self._by_output.get(output)
        if owner is not None and owner != key:
            self.logger.warning("Sources '%s' and '%s' both render to %s", owner, key, output)

        name = posixpath.basename(key).lower()
        entry = PathIndexEntry(source_key=key, output_path=output, case_normalized_name=name)
        self._entries[key] = entry
        if existing is None:
            self._by_name.setdefault(name, []).append(key)
        self._by_output[output] = key
        return entry

    def lookup(self, source_key: str) -> Optional[PathIndexEntry]:
        return self._entries.get(normalize_key(source_key))

    def resolve(self, target: str) -> Optional[str]:
        """Return the output path for ``target``.

        An exact match on the normalized key wins; otherwise the first entry,
        in registration order, whose trailing path segments match the
        target's wins.
        """
        key = normalize_key(target)
        if not key:
            return None
        entry = self._entries.get(key)
        if entry is not None:
            return entry.output_path
        bucket = self._by_name.get(posixpath.basename(key).lower(), [])
        match = first_suffix_match(key, bucket)
        if match is None:
            return None
        return self._entries[match].output_path

    def entries(self) -> List[PathIndexEntry]:
        return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, source_key: object) -> bool:
        return isinstance(source_key, str) and normalize_key(source_key) in self._entries


class AssetIndex:
    """Maps image source keys to content-addressed output paths.

    Content hashes are computed the first time an asset is resolved and then
    memoized, so unreferenced images are never read. Two sources with the same
    bytes share one output file.
    """

    def __init__(self, directory: str = ASSET_DIRECTORY) -> None:
        self.directory = normalize_key(directory)
        self._sources: Dict[str, Path] = {}
        self._by_name: Dict[str, List[str]] = {}
        self._outputs: Dict[str, str] = {}
        self._files: Dict[str, Path] = {}
        self._lock = threading.Lock()
        self._frozen = False
        self.logger = get_logger("index.assets")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(self, source_key: str, local_path: Path) -> bool:
        """Add an asset if absent; returns ``False`` for duplicates."""
        if self._frozen:
            raise IndexFrozenError(f"Cannot register '{source_key}': the asset index is frozen")
        key = normalize_key(source_key)
        with self._lock:
            if key in self._sources:
                self.logger.debug("Asset '%s' already registered", key)
                return False
            self._sources[key] = local_path
            self._by_name.setdefault(posixpath.basename(key).lower(), []).append(key)
        return True

    def locate(self, target: str) -> Optional[str]:
        """Return the registered source key matching ``target``."""
        key = normalize_key(target)
        if not key:
            return None
        if key in self._sources:
            return key
        bucket = self._by_name.get(posixpath.basename(key).lower(), [])
        return first_suffix_match(key, bucket)

    def resolve(self, target: str) -> Optional[str]:
        """Return the site-relative output path for ``target``."""
        key = self.locate(target)
        if key is None:
            return None
        return self.output_for(key)

    def output_for(self, source_key: str) -> Optional[str]:
        with self._lock:
            cached = self._outputs.get(source_key)
            local_path = self._sources.get(source_key)
        if cached is not None:
            return cached
        if local_path is None:
            return None
        try:
            digest = _file_digest(local_path)
        except OSError as exc:
            self.logger.warning("Could not read asset %s: %s", local_path, exc)
            return None
        extension = posixpath.splitext(source_key)[1].lower()
        output = f"{self.directory}/{digest[:16]}{extension}"
        with self._lock:
            existing = self._outputs.setdefault(source_key, output)
            self._files.setdefault(existing, local_path)
        return existing

    def materialized(self) -> Dict[str, Path]:
        """Return ``output path -> local file`` for every asset resolved so far."""
        with self._lock:
            return dict(sorted(self._files.items()))

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "registered": len(self._sources),
                "referenced": len(self._outputs),
                "unique": len(self._files),
            }

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source_key: object) -> bool:
        return isinstance(source_key, str) and normalize_key(source_key) in self._sources


@dataclass
class SiteIndex:
    """Result of the indexing pass."""

    paths: PathIndex
    assets: AssetIndex
    documents: List[SourceDocument] = field(default_factory=list)

    @property
    def repository_documents(self) -> List[SourceDocument]:
        return [document for document in self.documents if document.is_mirrored]

    @property
    def local_documents(self) -> List[SourceDocument]:
        return [document for document in self.documents if not document.is_mirrored]


def build_index(
    tree: DocumentNode,
    manifests: Mapping[str, RepositoryManifest],
    root: Path,
    *,
    exclude: Sequence[Path] = (),
    asset_directory: str = ASSET_DIRECTORY,
) -> SiteIndex:
    """Register every document and image, then freeze both indexes.

    ``manifests`` maps repository node URLs to their fetched manifests.
    """
    root = root.resolve()
    paths = PathIndex()
    assets = AssetIndex(asset_directory)
    documents: Dict[str, SourceDocument] = {}
    placed_repositories: Dict[Tuple[str, str], str] = {}
    logger = get_logger("index")

    for placement in iter_placements(tree):
        node = placement.node
        if node.kind is NodeKind.FILE:
            output = placement.output_path
            if output is None or node.source is None:
                continue
            entry = paths.register(node.source, output)
            documents[entry.source_key] = SourceDocument(
                source_key=entry.source_key,
                local_path=str(root / node.source),
                output_path=entry.output_path,
                title=node.title,
            )
        elif node.kind is NodeKind.REPOSITORY and node.source:
            manifest = manifests.get(node.source)
            if manifest is None:
                continue
            repository = (manifest.key.lower(), manifest.sub_path)
            first_directory = placed_repositories.setdefault(repository, placement.directory)
            if first_directory != placement.directory:
                logger.warning(
                    "Repository %s is placed at both %s/ and %s/; keeping the first placement",
                    node.source,
                    first_directory,
                    placement.directory,
                )
                continue
            for document in _register_manifest(paths, assets, manifest, node, placement.directory):
                documents[document.source_key] = document

    for key, path in iter_local_images(root, exclude=exclude):
        assets.register(key, path)

    paths.freeze()
    assets.freeze()
    return SiteIndex(paths=paths, assets=assets, documents=list(documents.values()))


def _register_manifest(
    paths: PathIndex,
    assets: AssetIndex,
    manifest: RepositoryManifest,
    node: DocumentNode,
    directory: str,
) -> List[SourceDocument]:
    main = manifest.main_entry()
    documents: List[SourceDocument] = []
    for entry in manifest.markdown_entries():
        relative = manifest.relative_to_root(entry.original_path)
        if main is not None and entry.original_path == main.original_path:
            output = join_output(directory, INDEX_NAME)
            title = node.title
        else:
            output = join_output(directory, to_output_name(relative))
            title = title_for_file(posixpath.splitext(posixpath.basename(relative))[0])
        registered = paths.register(manifest.source_key(entry.original_path), output)
        documents.append(
            SourceDocument(
                source_key=registered.source_key,
                local_path=entry.local_path,
                output_path=registered.output_path,
                title=title,
                manifest=manifest,
            )
        )
    for entry in manifest.image_entries():
        assets.register(manifest.source_key(entry.original_path), Path(entry.local_path))
    return documents


def _file_digest(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_HASH_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()


__all__ = [
    "ASSET_DIRECTORY",
    "AssetIndex",
    "IndexFrozenError",
    "PathIndex",
    "SiteIndex",
    "build_index",
]
