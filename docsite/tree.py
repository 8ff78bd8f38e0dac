"""Source tree model: parses per-directory hierarchy descriptions into nodes."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import yaml

from .fetch.github import parse_repository_url
from .logging import get_logger
from .models import DocumentNode, NodeKind
from .paths import is_image, is_index_name, is_markdown, join_output, to_output_name
from .slugs import format_name, slugify, title_for_file

HIERARCHY_FILE = "doc-config.yaml"

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".docsite",
}

_LEGACY_KEYS = {"file", "folder", "repository"}


class HierarchyError(ValueError):
    """Raised when a hierarchy entry has an unrecognized shape."""


@dataclass
class HierarchyEntry:
    """One hierarchy entry after shape classification, before touching the disk."""

    kind: NodeKind
    title: str
    target: Optional[str] = None
    alias: Optional[str] = None
    description: Optional[str] = None
    section: bool = False
    sub: Optional[List[Any]] = None
    branch: Optional[str] = None


@dataclass
class HierarchyDescription:
    """Parsed contents of one ``doc-config.yaml``."""

    entries: List[Any] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Placement:
    """A node together with the output directory it lives in."""

    node: DocumentNode
    directory: str

    @property
    def output_path(self) -> Optional[str]:
        """Output path of a file node; ``None`` for containers."""
        if self.node.kind is not NodeKind.FILE or not self.node.source:
            return None
        name = self.node.source.rsplit("/", 1)[-1]
        return join_output(self.directory, to_output_name(name))


def parse_entry(raw: Any) -> HierarchyEntry:
    """Classify a raw hierarchy item into a tagged entry."""
    if isinstance(raw, str):
        return _classify(None, raw, {})
    if not isinstance(raw, dict) or not raw:
        raise HierarchyError(f"Unsupported hierarchy entry: {raw!r}")
    if _LEGACY_KEYS & set(raw.keys()) or ("title" in raw and "children" in raw):
        return _parse_explicit(raw)
    if len(raw) != 1:
        raise HierarchyError(f"Hierarchy entry must map one title to a target: {raw!r}")

    title, value = next(iter(raw.items()))
    title_text = str(title).strip()
    if isinstance(value, str):
        return _classify(title_text, value, {})
    if isinstance(value, dict):
        path = value.get("path")
        if path is None:
            sub = value.get("sub")
            if isinstance(sub, list):
                return HierarchyEntry(
                    kind=NodeKind.SECTION,
                    title=title_text,
                    alias=_as_optional_str(value.get("alias")),
                    description=_as_optional_str(value.get("description")),
                    section=True,
                    sub=sub,
                )
            raise HierarchyError(f"Entry '{title_text}' has neither a path nor sub-entries")
        return _classify(title_text, str(path), value)
    raise HierarchyError(f"Entry '{title_text}' has an unsupported value: {value!r}")


def _parse_explicit(raw: Dict[str, Any]) -> HierarchyEntry:
    title = _as_optional_str(raw.get("title"))
    options = {
        "alias": raw.get("alias"),
        "description": raw.get("description"),
        "section": raw.get("section"),
        "sub": raw.get("children"),
    }
    if raw.get("file") is not None:
        entry = _classify(title, str(raw["file"]), options)
        if entry.kind is not NodeKind.FILE:
            raise HierarchyError(f"'file' entry does not name a file: {raw['file']!r}")
        return entry
    if raw.get("folder") is not None:
        folder = str(raw["folder"]).rstrip("/") + "/"
        return _classify(title, folder, options)
    if raw.get("repository") is not None:
        entry = _classify(title, str(raw["repository"]), options)
        if entry.kind is not NodeKind.REPOSITORY:
            raise HierarchyError(f"'repository' entry is not a repository URL: {raw['repository']!r}")
        return entry
    children = raw.get("children")
    if title and isinstance(children, list):
        return HierarchyEntry(
            kind=NodeKind.SECTION,
            title=title,
            alias=_as_optional_str(raw.get("alias")),
            description=_as_optional_str(raw.get("description")),
            section=True,
            sub=children,
        )
    raise HierarchyError(f"Unsupported hierarchy entry: {raw!r}")


def _classify(title: Optional[str], target: str, options: Dict[str, Any]) -> HierarchyEntry:
    target = target.strip()
    if not target:
        raise HierarchyError(f"Entry '{title}' has an empty target")

    branch: Optional[str] = None
    if target.lower().startswith(("http://", "https://")):
        try:
            ref = parse_repository_url(target)
        except ValueError as exc:
            raise HierarchyError(str(exc)) from exc
        kind = NodeKind.REPOSITORY
        branch = ref.branch
        default_title = format_name(ref.repo)
    elif target.endswith("/"):
        kind = NodeKind.FOLDER
        target = target.rstrip("/")
        default_title = format_name(target.rsplit("/", 1)[-1])
    else:
        kind = NodeKind.FILE
        stem = target.rsplit("/", 1)[-1].rsplit(".", 1)[0]
        default_title = title_for_file(stem)

    sub = options.get("sub")
    return HierarchyEntry(
        kind=kind,
        title=title or default_title,
        target=target,
        alias=_as_optional_str(options.get("alias")),
        description=_as_optional_str(options.get("description")),
        section=options.get("section") is True,
        sub=sub if isinstance(sub, list) else None,
        branch=branch,
    )


class TreeBuilder:
    """Builds the immutable document tree rooted at a source directory."""

    def __init__(
        self,
        root: Path,
        *,
        hierarchy_file: str = HIERARCHY_FILE,
        exclude: Sequence[Path] = (),
    ) -> None:
        self.root = root.expanduser().resolve()
        self.hierarchy_file = hierarchy_file
        self._exclude = {path.expanduser().resolve() for path in exclude}
        self.logger = get_logger("tree")

    def build(self, site_title: str | None = None) -> DocumentNode:
        if not self.root.is_dir():
            raise FileNotFoundError(f"Source root not found: {self.root}")
        children = self._children_for_directory(self.root, inherited_ignored=[])
        return DocumentNode(
            kind=NodeKind.FOLDER,
            title=site_title or "Home",
            alias="",
            source="",
            children=tuple(children),
        )

    # ------------------------------------------------------------------
    # Directory handling

    def _children_for_directory(
        self, directory: Path, *, inherited_ignored: List[str]
    ) -> List[DocumentNode]:
        description = self._load_description(directory)
        if description is not None and description.entries:
            return self._materialize_entries(
                description.entries,
                directory,
                ignored=description.ignored or inherited_ignored,
            )
        ignored = description.ignored if description is not None and description.ignored else inherited_ignored
        return self._scan_directory(directory, ignored=ignored)

    def _load_description(self, directory: Path) -> Optional[HierarchyDescription]:
        config_path = directory / self.hierarchy_file
        if not config_path.is_file():
            return None
        try:
            loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            self.logger.warning(
                "Could not parse %s (%s); scanning the directory instead",
                self._display(config_path),
                exc,
            )
            return None
        if loaded is None:
            return HierarchyDescription()
        if not isinstance(loaded, dict):
            self.logger.warning(
                "%s must contain a mapping; scanning the directory instead",
                self._display(config_path),
            )
            return None
        entries = loaded.get("hierarchy")
        if entries is not None and not isinstance(entries, list):
            self.logger.warning("'hierarchy' in %s must be a list", self._display(config_path))
            entries = None
        ignored = loaded.get("ignored")
        if isinstance(ignored, str):
            ignored = [ignored]
        return HierarchyDescription(
            entries=list(entries or []),
            ignored=[str(item) for item in ignored or [] if isinstance(item, (str, int, float))],
        )

    def _scan_directory(self, directory: Path, *, ignored: List[str]) -> List[DocumentNode]:
        try:
            items = list(os.scandir(directory))
        except OSError as exc:
            self.logger.warning("Could not scan %s: %s", self._display(directory), exc)
            return []

        files = sorted(
            (item for item in items if item.is_file() and is_markdown(item.name)),
            key=lambda item: (not is_index_name(item.name), item.name.lower()),
        )
        folders = sorted(
            (item for item in items if item.is_dir() and self._is_scannable_dir(item)),
            key=lambda item: item.name.lower(),
        )

        nodes: List[DocumentNode] = []
        for item in files:
            if _is_ignored(item.name, ignored):
                self.logger.debug("Ignoring %s", self._display(Path(item.path)))
                continue
            stem = item.name.rsplit(".", 1)[0]
            nodes.append(
                DocumentNode(
                    kind=NodeKind.FILE,
                    title=title_for_file(stem),
                    alias=slugify(stem),
                    source=self._relative(Path(item.path)),
                    auto_discovered=True,
                )
            )

        containers: List[DocumentNode] = []
        for item in folders:
            folder_path = Path(item.path)
            children = self._children_for_directory(folder_path, inherited_ignored=ignored)
            if not children:
                continue
            containers.append(
                DocumentNode(
                    kind=NodeKind.FOLDER,
                    title=format_name(item.name),
                    alias=slugify(item.name) or item.name,
                    source=self._relative(folder_path),
                    children=tuple(children),
                    auto_discovered=True,
                )
            )
        return nodes + self._dedupe_aliases(containers, explicit=set())

    def _is_scannable_dir(self, item: os.DirEntry) -> bool:
        if item.name.startswith(".") or item.name in _EXCLUDED_DIRS:
            return False
        return Path(item.path).resolve() not in self._exclude

    # ------------------------------------------------------------------
    # Hierarchy entries

    def _materialize_entries(
        self, raw_entries: List[Any], directory: Path, *, ignored: List[str]
    ) -> List[DocumentNode]:
        nodes: List[DocumentNode] = []
        explicit: set[int] = set()
        for raw in raw_entries:
            try:
                entry = parse_entry(raw)
            except HierarchyError as exc:
                self.logger.warning(
                    "Skipping malformed entry in %s: %s",
                    self._display(directory / self.hierarchy_file),
                    exc,
                )
                continue
            node = self._materialize(entry, directory, ignored=ignored)
            if node is None:
                continue
            if entry.alias:
                explicit.add(len(nodes))
            nodes.append(node)
        return self._dedupe_aliases(nodes, explicit=explicit)

    def _materialize(
        self, entry: HierarchyEntry, directory: Path, *, ignored: List[str]
    ) -> Optional[DocumentNode]:
        if entry.kind is NodeKind.SECTION:
            children = self._materialize_entries(entry.sub or [], directory, ignored=ignored)
            return DocumentNode(
                kind=NodeKind.SECTION,
                title=entry.title,
                alias=entry.alias or slugify(entry.title),
                children=tuple(children),
                is_section_container=True,
                description=entry.description,
            )

        target = entry.target
        if not target:
            self.logger.warning("Entry '%s' has no target; skipping", entry.title)
            return None

        if entry.kind is NodeKind.REPOSITORY:
            ref = parse_repository_url(target)
            return DocumentNode(
                kind=NodeKind.REPOSITORY,
                title=entry.title,
                alias=entry.alias or slugify(entry.title) or slugify(ref.repo),
                source=target,
                branch=entry.branch,
                is_section_container=entry.section,
                description=entry.description,
            )

        path = self._resolve_target(directory, target)
        if path is None:
            return None

        if entry.kind is NodeKind.FILE:
            if not path.is_file():
                self.logger.warning("File not found in hierarchy: %s", self._display(path))
                return None
            return DocumentNode(
                kind=NodeKind.FILE,
                title=entry.title,
                alias=entry.alias or slugify(entry.title),
                source=self._relative(path),
                description=entry.description,
            )

        if not path.is_dir():
            self.logger.warning("Folder not found in hierarchy: %s", self._display(path))
            return None
        if entry.sub is not None:
            children = self._materialize_entries(entry.sub, path, ignored=ignored)
        else:
            children = self._children_for_directory(path, inherited_ignored=ignored)
        return DocumentNode(
            kind=NodeKind.FOLDER,
            title=entry.title,
            alias=entry.alias or slugify(entry.title) or slugify(path.name),
            source=self._relative(path),
            children=tuple(children),
            is_section_container=entry.section,
            description=entry.description,
        )

    def _resolve_target(self, directory: Path, target: str) -> Optional[Path]:
        path = (directory / target).resolve()
        try:
            path.relative_to(self.root)
        except ValueError:
            self.logger.warning("Hierarchy target %s escapes the source root", target)
            return None
        return path

    def _dedupe_aliases(self, nodes: List[DocumentNode], *, explicit: set[int]) -> List[DocumentNode]:
        seen: Dict[str, str] = {}
        result: List[DocumentNode] = []
        for position, node in enumerate(nodes):
            if node.kind is NodeKind.FILE:
                result.append(node)
                continue
            alias = node.alias
            if alias in seen:
                if position in explicit:
                    self.logger.warning(
                        "Alias '%s' of '%s' collides with '%s'; the first entry wins lookups",
                        alias,
                        node.title,
                        seen[alias],
                    )
                else:
                    suffix = 2
                    while f"{alias}-{suffix}" in seen:
                        suffix += 1
                    disambiguated = f"{alias}-{suffix}"
                    self.logger.warning(
                        "Alias '%s' of '%s' collides with '%s'; using '%s'",
                        alias,
                        node.title,
                        seen[alias],
                        disambiguated,
                    )
                    node = _replace_alias(node, disambiguated)
                    alias = disambiguated
            seen.setdefault(alias, node.title)
            result.append(node)
        return result

    def _relative(self, path: Path) -> str:
        return path.resolve().relative_to(self.root).as_posix()

    def _display(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            return str(path)


def build_tree(
    root_directory: Path | str,
    *,
    hierarchy_file: str = HIERARCHY_FILE,
    site_title: str | None = None,
    exclude: Sequence[Path] = (),
) -> DocumentNode:
    """Build the document tree for ``root_directory``."""
    builder = TreeBuilder(Path(root_directory), hierarchy_file=hierarchy_file, exclude=exclude)
    return builder.build(site_title)


def iter_placements(root: DocumentNode) -> Iterator[Placement]:
    """Yield every descendant of ``root`` with its output directory, depth-first.

    Containers contribute their alias as a directory segment, except section
    containers nested inside another section container.
    """

    def _visit(node: DocumentNode, directory: str, inside_section: bool) -> Iterator[Placement]:
        for child in node.children:
            if child.kind is NodeKind.FILE:
                yield Placement(child, directory)
                continue
            if child.is_section_container and inside_section:
                child_dir = directory
            else:
                child_dir = join_output(directory, child.alias)
            yield Placement(child, child_dir)
            yield from _visit(child, child_dir, inside_section or child.is_section_container)

    yield from _visit(root, "", False)


def iter_local_images(root: Path, *, exclude: Sequence[Path] = ()) -> Iterator[Tuple[str, Path]]:
    """Yield ``(root-relative key, path)`` for every image under ``root``."""
    root = root.resolve()
    excluded = {path.expanduser().resolve() for path in exclude}
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            name
            for name in dirnames
            if not name.startswith(".")
            and name not in _EXCLUDED_DIRS
            and (current / name).resolve() not in excluded
        )
        for filename in sorted(filenames):
            if is_image(filename):
                path = current / filename
                yield path.relative_to(root).as_posix(), path


def render_tree(tree: DocumentNode) -> str:
    """Draw ``tree`` as an indented outline for terminal output."""
    lines: List[str] = []

    def _render(node: DocumentNode, prefix: str) -> None:
        for position, child in enumerate(node.children):
            last = position == len(node.children) - 1
            connector = "└─ " if last else "├─ "
            label = child.title
            if child.kind is NodeKind.FILE:
                marker = "auto" if child.auto_discovered else "hierarchy"
                label = f"{label} ({child.source}) [{marker}]"
            elif child.kind is NodeKind.REPOSITORY:
                label = f"{label} -> {child.source} [repository: {child.alias}]"
            elif child.kind is NodeKind.SECTION:
                label = f"{label} [section]"
            else:
                label = f"{label}/ [{child.alias}]"
            lines.append(f"{prefix}{connector}{label}")
            _render(child, prefix + ("   " if last else "│  "))

    lines.append(tree.title)
    if not tree.children:
        lines.append("(empty tree)")
    _render(tree, "")
    return "\n".join(lines)


def _is_ignored(filename: str, patterns: Sequence[str]) -> bool:
    for pattern in patterns:
        if fnmatchcase(filename, pattern) or filename == f"{pattern}.md":
            return True
    return False


def _replace_alias(node: DocumentNode, alias: str) -> DocumentNode:
    return DocumentNode(
        kind=node.kind,
        title=node.title,
        alias=alias,
        source=node.source,
        branch=node.branch,
        children=node.children,
        is_section_container=node.is_section_container,
        description=node.description,
        auto_discovered=node.auto_discovered,
    )


def _as_optional_str(value: Any) -> Optional[str]:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        text = str(value).strip()
        return text or None
    return None


__all__ = [
    "HIERARCHY_FILE",
    "HierarchyEntry",
    "HierarchyError",
    "Placement",
    "TreeBuilder",
    "build_tree",
    "iter_local_images",
    "iter_placements",
    "parse_entry",
    "render_tree",
]
