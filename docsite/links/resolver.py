"""Rewrite links in markdown and rendered HTML against the frozen indexes."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import unquote

from ..index import AssetIndex, PathIndex
from ..logging import get_logger
from ..models import LinkClass, LinkRecord, RepositoryManifest, SourceDocument
from ..paths import (
    has_scheme,
    is_image,
    is_markdown,
    join_source,
    normalize_key,
    relative_link,
    split_fragment,
    strip_query,
    to_output_name,
)

_FENCE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_CODE_SPAN = re.compile(r"(`+)(?:.|\n)*?(?<!`)\1(?!`)")

_LABEL = r"(?:[^\[\]]|\[[^\]]*\])*"
_DESTINATION = r"(<[^>\n]*>|[^\s)]+)"
_TITLE = r"""(\s+(?:"[^"]*"|'[^']*'|\([^)]*\)))?"""

_IMAGE_LINK = re.compile(r"!\[(?P<label>" + _LABEL + r")\]\(\s*" + _DESTINATION + _TITLE + r"\s*\)")
_INLINE_LINK = re.compile(r"(?<!!)\[(?P<label>" + _LABEL + r")\]\(\s*" + _DESTINATION + _TITLE + r"\s*\)")
_REFERENCE_DEFINITION = re.compile(
    r"^(?P<lead>[ \t]{0,3}\[(?P<label>[^\]^][^\]]*)\]:[ \t]*)(?P<target><[^>\n]*>|\S+)(?P<rest>.*)$",
    re.MULTILINE,
)

_HTML_HREF = re.compile(r"""(<a\b[^>]*?\bhref\s*=\s*)(["'])(.*?)\2""", re.IGNORECASE | re.DOTALL)
_HTML_SRC = re.compile(r"""(<img\b[^>]*?\bsrc\s*=\s*)(["'])(.*?)\2""", re.IGNORECASE | re.DOTALL)

_GITHUB_FILE_URL = re.compile(
    r"^https?://(?:www\.)?github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)/(?:blob|raw)/[^/]+/(?P<path>[^?#]+)"
)
_GITHUB_RAW_URL = re.compile(
    r"^https?://raw\.githubusercontent\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)/[^/]+/(?P<path>[^?#]+)"
)


@dataclass
class RewriteResult:
    """Rewritten text plus every link observed while rewriting it."""

    text: str
    records: List[LinkRecord] = field(default_factory=list)


class LinkResolver:
    """Rewrites link targets to paths relative to a document's output.

    Both indexes must be frozen: resolution happens only after every source
    has been registered, so forward references resolve.
    """

    def __init__(
        self,
        index: PathIndex,
        assets: AssetIndex,
        manifests: Mapping[str, RepositoryManifest] | None = None,
    ) -> None:
        if not index.frozen or not assets.frozen:
            raise RuntimeError("Indexes must be frozen before links are resolved")
        self.index = index
        self.assets = assets
        self._repositories = {
            manifest.key.lower(): manifest for manifest in (manifests or {}).values()
        }
        self.logger = get_logger("links")

    # ------------------------------------------------------------------
    # Markdown

    def rewrite_markdown(self, text: str, document: SourceDocument) -> RewriteResult:
        records: List[LinkRecord] = []

        def _rewrite_prose(chunk: str) -> str:
            chunk = _sub_outside_code(
                _IMAGE_LINK, chunk, lambda match: self._rewrite_inline(match, document, records, image=True)
            )
            chunk = _sub_outside_code(
                _INLINE_LINK, chunk, lambda match: self._rewrite_inline(match, document, records, image=False)
            )
            return _sub_outside_code(
                _REFERENCE_DEFINITION, chunk, lambda match: self._rewrite_definition(match, document, records)
            )

        rewritten = "".join(
            segment if is_code else _rewrite_prose(segment)
            for segment, is_code in _split_fenced(text)
        )
        return RewriteResult(text=rewritten, records=records)

    def _rewrite_inline(
        self,
        match: "re.Match[str]",
        document: SourceDocument,
        records: List[LinkRecord],
        *,
        image: bool,
    ) -> str:
        destination = match.group(2)
        title = match.group(3) or ""
        new_destination = self._rewrite_destination(destination, document, records, image=image)
        prefix = "!" if image else ""
        return f"{prefix}[{match.group('label')}]({new_destination}{title})"

    def _rewrite_definition(
        self, match: "re.Match[str]", document: SourceDocument, records: List[LinkRecord]
    ) -> str:
        new_target = self._rewrite_destination(match.group("target"), document, records, image=False)
        return f"{match.group('lead')}{new_target}{match.group('rest')}"

    def _rewrite_destination(
        self,
        destination: str,
        document: SourceDocument,
        records: List[LinkRecord],
        *,
        image: bool,
    ) -> str:
        bracketed = destination.startswith("<") and destination.endswith(">")
        target = destination[1:-1] if bracketed else destination
        rewritten, record = self.resolve_target(target, document, image=image)
        if record is not None:
            records.append(record)
        if rewritten == target:
            return destination
        return f"<{rewritten}>" if bracketed else rewritten

    # ------------------------------------------------------------------
    # HTML

    def rewrite_html(self, html: str, document: SourceDocument) -> RewriteResult:
        """Rewrite ``href`` and ``src`` attributes left over after rendering.

        Only markdown hrefs and image sources not already pointing into the
        asset directory are touched.
        """
        records: List[LinkRecord] = []

        def _href(match: "re.Match[str]") -> str:
            target = match.group(3)
            path = strip_query(split_fragment(target)[0])[0]
            if has_scheme(target) or not is_markdown(unquote(path)):
                return match.group(0)
            rewritten, record = self.resolve_target(target, document, image=False)
            if record is not None:
                records.append(record)
            return f"{match.group(1)}{match.group(2)}{rewritten}{match.group(2)}"

        def _src(match: "re.Match[str]") -> str:
            target = match.group(3)
            if not target or target.startswith("data:") or self._points_into_assets(target, document):
                return match.group(0)
            rewritten, record = self.resolve_target(target, document, image=True)
            if record is not None:
                records.append(record)
            return f"{match.group(1)}{match.group(2)}{rewritten}{match.group(2)}"

        rewritten = _HTML_SRC.sub(_src, html)
        rewritten = _HTML_HREF.sub(_href, rewritten)
        return RewriteResult(text=rewritten, records=records)

    def _points_into_assets(self, target: str, document: SourceDocument) -> bool:
        if has_scheme(target):
            return False
        base = posixpath.dirname(document.output_path)
        joined = posixpath.normpath(posixpath.join(base, target)) if base else posixpath.normpath(target)
        return joined.startswith(f"{self.assets.directory}/")

    # ------------------------------------------------------------------
    # Single targets

    def resolve_target(
        self, target: str, document: SourceDocument, *, image: bool = False
    ) -> Tuple[str, Optional[LinkRecord]]:
        """Return the rewritten target and the record describing it."""
        raw = target.strip()
        if not raw:
            return target, None

        def _record(classification: LinkClass, resolution: Optional[str]) -> LinkRecord:
            return LinkRecord(
                raw_target=raw,
                source_document=document.source_key,
                classification=classification,
                resolution=resolution,
            )

        if raw.startswith("#"):
            return target, _record(LinkClass.ANCHOR, None)

        if has_scheme(raw):
            asset_output = self._mirrored_asset(raw)
            if asset_output is not None:
                return relative_link(document.output_path, asset_output), _record(LinkClass.ASSET, asset_output)
            return target, _record(LinkClass.EXTERNAL, None)

        path_part, fragment = split_fragment(raw)
        path_part, query = strip_query(path_part)
        path = unquote(path_part)
        if not path:
            return target, _record(LinkClass.ANCHOR, None)

        if image or is_image(path):
            output = self._first(self.assets.resolve, self._candidates(path, document))
            if output is None:
                return target, _record(LinkClass.ASSET, None)
            return relative_link(document.output_path, output), _record(LinkClass.ASSET, output)

        if is_markdown(path):
            output = self._first(self.index.resolve, self._candidates(path, document))
            if output is None:
                self.logger.debug("Unresolved link %s in %s", raw, document.source_key)
                return f"{to_output_name(path_part)}{fragment}", _record(LinkClass.INTERNAL, None)
            link = relative_link(document.output_path, output)
            return f"{link}{fragment}", _record(LinkClass.INTERNAL, output)

        if document.manifest is not None:
            url = self._repository_url(path, document.source_key, document.manifest)
            if url is not None:
                return f"{url}{query}{fragment}", _record(LinkClass.INTERNAL, url)
        return target, _record(LinkClass.INTERNAL, None)

    def _candidates(self, path: str, document: SourceDocument) -> List[str]:
        manifest = document.manifest
        if path.startswith("/") and manifest is not None:
            candidates = [manifest.source_key(normalize_key(path)), normalize_key(path)]
        else:
            candidates = [join_source(document.source_key, path), normalize_key(path)]
        unique: List[str] = []
        for candidate in candidates:
            if candidate and candidate not in unique:
                unique.append(candidate)
        return unique

    @staticmethod
    def _first(resolver: Callable[[str], Optional[str]], candidates: Iterable[str]) -> Optional[str]:
        for candidate in candidates:
            output = resolver(candidate)
            if output is not None:
                return output
        return None

    @staticmethod
    def _repository_url(path: str, source_key: str, manifest: RepositoryManifest) -> Optional[str]:
        prefix = f"{manifest.source_prefix}/"
        if path.startswith("/"):
            repo_path = normalize_key(path)
        else:
            joined = join_source(source_key, path)
            if not joined.startswith(prefix):
                return None
            repo_path = joined[len(prefix) :]
        if not repo_path:
            return f"{manifest.web_url}/tree/{manifest.branch}"
        bare_name = "/" not in path.strip("/") and "." not in path
        mode = "tree" if path.endswith("/") or bare_name else "blob"
        return f"{manifest.web_url}/{mode}/{manifest.branch}/{repo_path}"

    def _mirrored_asset(self, url: str) -> Optional[str]:
        match = _GITHUB_FILE_URL.match(url) or _GITHUB_RAW_URL.match(url)
        if match is None:
            return None
        path = unquote(match.group("path"))
        if not is_image(path):
            return None
        manifest = self._repositories.get(f"{match.group('owner')}/{match.group('repo')}".lower())
        if manifest is None:
            return None
        key = manifest.source_key(normalize_key(path))
        if key not in self.assets:
            return None
        return self.assets.output_for(key)


def _split_fenced(text: str) -> List[Tuple[str, bool]]:
    """Split markdown into ``(chunk, is_fenced_code)`` pieces."""
    segments: List[Tuple[str, bool]] = []
    buffer: List[str] = []
    fence: Optional[str] = None
    for line in text.splitlines(keepends=True):
        match = _FENCE.match(line)
        if fence is None:
            if match:
                if buffer:
                    segments.append(("".join(buffer), False))
                buffer = [line]
                fence = match.group(1)
            else:
                buffer.append(line)
        else:
            buffer.append(line)
            if match and match.group(1)[0] == fence[0] and len(match.group(1)) >= len(fence):
                segments.append(("".join(buffer), True))
                buffer = []
                fence = None
    if buffer:
        segments.append(("".join(buffer), fence is not None))
    return segments


def _sub_outside_code(
    pattern: "re.Pattern[str]", text: str, replace: Callable[["re.Match[str]"], str]
) -> str:
    """Like ``pattern.sub`` but leaves matches starting inside a code span alone."""
    spans = [(match.start(), match.end()) for match in _CODE_SPAN.finditer(text)]

    def _guarded(match: "re.Match[str]") -> str:
        start = match.start()
        if any(begin <= start < end for begin, end in spans):
            return match.group(0)
        return replace(match)

    return pattern.sub(_guarded, text)


__all__ = ["LinkResolver", "RewriteResult"]
