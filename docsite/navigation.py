"""Breadcrumbs and sidebar navigation derived from the document tree."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .index import PathIndex
from .models import DocumentNode, NodeKind
from .paths import INDEX_NAME, join_output, normalize_key, relative_link
from .slugs import format_name
from .tree import iter_placements

DEFAULT_SEPARATOR = " / "
DEFAULT_MAX_LENGTH = 60
_ELLIPSIS = "..."


@dataclass
class NavItem:
    title: str
    href: Optional[str]
    kind: NodeKind
    active: bool = False
    children: List["NavItem"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "href": self.href,
            "kind": self.kind.value,
            "active": self.active,
            "children": [child.to_dict() for child in self.children],
        }


def derive_breadcrumb(
    output_path: str,
    tree: DocumentNode,
    *,
    separator: str = DEFAULT_SEPARATOR,
    max_length: int = DEFAULT_MAX_LENGTH,
    page_title: str | None = None,
) -> str:
    """Return the breadcrumb for the page at ``output_path``.

    Each ancestor directory is titled from the tree, falling back to its
    formatted name. The page's own title is appended unless the page is a
    directory index. While the result is longer than ``max_length`` the
    deepest segment is dropped, starting with the page title; a lone crumb
    that is still too long is cut and suffixed with ``...``.
    """
    output = normalize_key(output_path)
    directory_titles: Dict[str, str] = {}
    page_titles: Dict[str, str] = {}
    for placement in iter_placements(tree):
        if placement.node.kind is NodeKind.FILE:
            if placement.output_path is not None:
                page_titles.setdefault(placement.output_path, placement.node.title)
        else:
            directory_titles.setdefault(placement.directory, placement.node.title)

    directory = posixpath.dirname(output)
    crumbs: List[str] = []
    prefix = ""
    for segment in directory.split("/") if directory else []:
        prefix = f"{prefix}/{segment}" if prefix else segment
        crumbs.append(directory_titles.get(prefix) or format_name(segment))

    if posixpath.basename(output) != INDEX_NAME:
        stem = posixpath.splitext(posixpath.basename(output))[0]
        crumbs.append(page_title or page_titles.get(output) or format_name(stem))
    if not crumbs:
        crumbs.append(page_title or tree.title)

    while len(crumbs) > 1 and len(separator.join(crumbs)) > max_length:
        del crumbs[-1]
    text = separator.join(crumbs)
    if len(text) > max_length:
        text = text[: max(max_length - len(_ELLIPSIS), 0)].rstrip() + _ELLIPSIS
    return text


def build_navigation(tree: DocumentNode, index: PathIndex, current_output: str) -> List[NavItem]:
    """Build the sidebar for the page at ``current_output``.

    Hrefs are relative to ``current_output``. The path index is only used to
    find which directories have an index page and which page is active.
    """
    current = normalize_key(current_output)
    outputs: Set[str] = {entry.output_path for entry in index.entries()}
    directories: Dict[int, str] = {}
    file_outputs: Dict[int, Optional[str]] = {}
    for placement in iter_placements(tree):
        directories[id(placement.node)] = placement.directory
        file_outputs[id(placement.node)] = placement.output_path

    def _build(node: DocumentNode) -> List[NavItem]:
        items: List[NavItem] = []
        for child in node.children:
            if child.kind is NodeKind.FILE:
                output = file_outputs.get(id(child))
                if output is None or output not in outputs:
                    continue
                items.append(
                    NavItem(
                        title=child.title,
                        href=relative_link(current, output),
                        kind=child.kind,
                        active=output == current,
                    )
                )
                continue

            directory = directories.get(id(child), "")
            landing = join_output(directory, INDEX_NAME)
            href = None
            if child.kind is not NodeKind.SECTION and landing in outputs:
                href = relative_link(current, landing)
            children = _build(child)
            if href is None and not children:
                continue
            in_directory = bool(directory) and current.startswith(f"{directory}/")
            items.append(
                NavItem(
                    title=child.title,
                    href=href,
                    kind=child.kind,
                    active=in_directory or any(item.active for item in children),
                    children=children,
                )
            )
        return items

    return _build(tree)


__all__ = ["DEFAULT_MAX_LENGTH", "DEFAULT_SEPARATOR", "NavItem", "build_navigation", "derive_breadcrumb"]
