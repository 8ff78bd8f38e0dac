"""Path normalization shared by the tree model, the indexes and the link resolver.

All paths handled here are POSIX-style strings relative to either the source
root (``source keys``) or the site root (``output paths``). Host separators
never leak past :func:`normalize_key`.
"""

from __future__ import annotations

import posixpath
import re
from typing import Iterable, Optional, Sequence, Tuple

MARKDOWN_EXTENSIONS = (".md", ".markdown")
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".bmp", ".ico")

INDEX_NAME = "index.html"

_INDEX_STEMS = {"readme", "index", "main", "root", "home"}
_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")


def normalize_key(path: str) -> str:
    """Return ``path`` with forward slashes, no ``./`` segments and no leading slash.

    Leading ``..`` segments are dropped: keys never point above their root.
    """
    cleaned = path.replace("\\", "/").strip()
    if not cleaned:
        return ""
    normalized = posixpath.normpath(cleaned)
    parts = [part for part in normalized.split("/") if part not in ("", ".")]
    while parts and parts[0] == "..":
        parts.pop(0)
    return "/".join(parts)


def join_source(source_key: str, target: str) -> str:
    """Resolve ``target`` as written inside the document at ``source_key``."""
    target = target.replace("\\", "/")
    if target.startswith("/"):
        return normalize_key(target)
    base = posixpath.dirname(source_key)
    return normalize_key(posixpath.join(base, target) if base else target)


def has_scheme(target: str) -> bool:
    return bool(_SCHEME.match(target)) or target.startswith("//")


def split_fragment(target: str) -> Tuple[str, str]:
    """Split ``target`` into its path and ``#fragment`` (fragment keeps the ``#``)."""
    if "#" in target:
        path, fragment = target.split("#", 1)
        return path, f"#{fragment}"
    return target, ""


def strip_query(path: str) -> Tuple[str, str]:
    if "?" in path:
        base, query = path.split("?", 1)
        return base, f"?{query}"
    return path, ""


def is_markdown(path: str) -> bool:
    return path.lower().endswith(MARKDOWN_EXTENSIONS)


def is_image(path: str) -> bool:
    return path.lower().endswith(IMAGE_EXTENSIONS)


def is_index_name(filename: str) -> bool:
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    return stem.lower() in _INDEX_STEMS


def to_output_name(source_path: str) -> str:
    """Map a markdown source path to its HTML output path.

    The directory part is preserved; the file name is lower-cased, its markdown
    extension swapped for ``.html``, and readme-family names become
    ``index.html``.
    """
    path = source_path.replace("\\", "/")
    directory, _, filename = path.rpartition("/")
    if is_index_name(filename) and (is_markdown(filename) or "." not in filename):
        name = INDEX_NAME
    else:
        lowered = filename.lower()
        for extension in MARKDOWN_EXTENSIONS:
            if lowered.endswith(extension):
                lowered = lowered[: -len(extension)] + ".html"
                break
        name = lowered
    return f"{directory}/{name}" if directory else name


def relative_link(from_output: str, to_output: str) -> str:
    """Return the link from the page at ``from_output`` to ``to_output``.

    Both arguments are site-root relative; the result always uses forward
    slashes.
    """
    source = normalize_key(from_output)
    target = normalize_key(to_output)
    start = posixpath.dirname(source) or "."
    relative = posixpath.relpath(target, start)
    return relative


def output_directory(output_path: str) -> str:
    return posixpath.dirname(normalize_key(output_path))


def join_output(*parts: str) -> str:
    return normalize_key("/".join(part for part in parts if part))


def segments_match(target: Sequence[str], candidate: Sequence[str]) -> bool:
    """Compare path segments right-to-left, case-insensitively, up to the shorter length."""
    if not target or not candidate:
        return False
    for left, right in zip(reversed(target), reversed(candidate)):
        if left.lower() != right.lower():
            return False
    return True


def first_suffix_match(target: str, candidates: Iterable[str]) -> Optional[str]:
    """Return the first candidate key whose trailing segments match ``target``."""
    target_parts = normalize_key(target).split("/")
    for candidate in candidates:
        if segments_match(target_parts, candidate.split("/")):
            return candidate
    return None


__all__ = [
    "IMAGE_EXTENSIONS",
    "INDEX_NAME",
    "MARKDOWN_EXTENSIONS",
    "first_suffix_match",
    "has_scheme",
    "is_image",
    "is_index_name",
    "is_markdown",
    "join_output",
    "join_source",
    "normalize_key",
    "output_directory",
    "relative_link",
    "segments_match",
    "split_fragment",
    "strip_query",
    "to_output_name",
]
