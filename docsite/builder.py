"""Two-phase site build: fetch, index, then render repositories before local files."""

from __future__ import annotations

import posixpath
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import SiteConfig
from .fetch import GitHubFetcher, RepositoryCache
from .index import SiteIndex, build_index
from .links import LinkReport, LinkResolver
from .logging import count_warnings, get_logger
from .models import DocumentNode, LinkRecord, NodeKind, RepositoryManifest, SourceDocument
from .navigation import build_navigation, derive_breadcrumb
from .paths import INDEX_NAME
from .render import MarkdownRenderer, PageContext, PageRenderer
from .search import SearchDocument, SearchIndex
from .sitemap import write_sitemap
from .tree import build_tree

SEARCH_INDEX_NAME = "search-index.json"
SITEMAP_NAME = "sitemap.xml"
ERROR_PAGE_NAME = "404.html"

_ERROR_PAGE_BODY = (
    "<h1>Page Not Found</h1>\n"
    "<p>The page you requested does not exist or has moved.</p>\n"
    '<p><a href="{home}">Back to the home page</a></p>\n'
)


@dataclass
class DocumentResult:
    """Outcome of rendering one document."""

    source_key: str
    output_path: str
    title: str
    records: List[LinkRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BuildReport:
    """Summary of a finished build."""

    output_dir: Path
    generated: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    repositories: Dict[str, int] = field(default_factory=dict)
    link_stats: Dict[str, int] = field(default_factory=dict)
    unresolved_links: Dict[str, List[str]] = field(default_factory=dict)
    assets_copied: int = 0
    warnings: Dict[str, int] = field(default_factory=dict)
    link_report: Optional[Path] = None
    search_index: Optional[Path] = None
    sitemap: Optional[Path] = None
    error_page: Optional[Path] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "output_dir": str(self.output_dir),
            "generated": list(self.generated),
            "failed": dict(self.failed),
            "repositories": dict(self.repositories),
            "links": dict(self.link_stats),
            "unresolved_links": {url: list(sources) for url, sources in self.unresolved_links.items()},
            "assets_copied": self.assets_copied,
            "warnings": dict(self.warnings),
            "link_report": str(self.link_report) if self.link_report else None,
            "search_index": str(self.search_index) if self.search_index else None,
            "sitemap": str(self.sitemap) if self.sitemap else None,
            "error_page": str(self.error_page) if self.error_page else None,
        }

    def summary_lines(self) -> List[str]:
        lines = [
            f"Documents: {len(self.generated)} generated, {len(self.failed)} failed",
            "Links: {resolved} resolved, {unresolved} unresolved".format(
                resolved=self.link_stats.get("resolved", 0),
                unresolved=self.link_stats.get("unresolved", 0),
            ),
        ]
        if self.warnings:
            detail = ", ".join(f"{name} {count}" for name, count in self.warnings.items())
            lines.append(f"Warnings: {sum(self.warnings.values())} ({detail})")
        for source, error in self.failed.items():
            lines.append(f"  failed {source}: {error}")
        for url, sources in self.unresolved_links.items():
            lines.append(f"  unresolved {url} (in {', '.join(sources)})")
        return lines


@dataclass
class _BuildSession:
    tree: DocumentNode
    index: SiteIndex
    resolver: LinkResolver
    output_dir: Path
    search: SearchIndex = field(default_factory=SearchIndex)


class SiteBuilder:
    """Coordinates a full site build.

    Work happens in explicit phases: every repository is fetched before
    indexing starts, and both indexes are frozen before any link is
    resolved. Documents render in parallel within a phase; results are
    collected in submission order so output is deterministic.
    """

    def __init__(
        self,
        config: SiteConfig,
        *,
        fetcher: GitHubFetcher | None = None,
        markdown_renderer: MarkdownRenderer | None = None,
        page_renderer: PageRenderer | None = None,
    ) -> None:
        self.config = config
        self.cache: RepositoryCache | None = None
        if fetcher is None:
            self.cache = RepositoryCache(config.cache.manifest_file, ttl_hours=config.cache.ttl_hours)
            fetcher = GitHubFetcher(
                config.cache.mirror_dir,
                cache=self.cache,
                timeout=config.github.timeout,
                token=config.github.token,
                api_root=config.github.api_url,
                raw_root=config.github.raw_url,
                offline=config.build.offline,
            )
        else:
            self.cache = fetcher.cache
        self.fetcher = fetcher
        self.markdown_renderer = markdown_renderer or MarkdownRenderer()
        self.page_renderer = page_renderer or PageRenderer(config.output.templates_dir)
        self.logger = get_logger("builder")

    def build(self) -> BuildReport:
        with count_warnings() as warnings:
            report = self._build()
        report.warnings = dict(sorted(warnings.by_logger.items()))
        for line in report.summary_lines():
            self.logger.info(line)
        return report

    def _build(self) -> BuildReport:
        root = self.config.source.root
        if not root.is_dir():
            raise FileNotFoundError(f"Source root not found: {root}")
        output_dir = self.config.output.directory
        exclude = self._excluded_paths()
        self.logger.info("Building %s into %s", root, output_dir)

        tree = build_tree(
            root,
            hierarchy_file=self.config.source.hierarchy_file,
            site_title=self.config.site.title,
            exclude=exclude,
        )

        manifests = self._fetch_repositories(tree)
        if self.cache is not None:
            self.cache.persist()

        site_index = build_index(tree, manifests, root, exclude=exclude)
        self.logger.debug(
            "Indexed %d documents and %d assets", len(site_index.paths), len(site_index.assets)
        )
        session = _BuildSession(
            tree=tree,
            index=site_index,
            resolver=LinkResolver(site_index.paths, site_index.assets, manifests),
            output_dir=output_dir,
        )

        results = self._render_repository_documents(session)
        results.extend(self._render_local_documents(session))

        report = BuildReport(output_dir=output_dir)
        report.repositories = {url: len(manifest.entries) for url, manifest in manifests.items()}
        link_report = LinkReport()
        for result in results:
            link_report.aggregate(result.records)
            if result.ok:
                report.generated.append(result.output_path)
            else:
                report.failed[result.source_key] = result.error or "unknown error"

        if INDEX_NAME not in report.generated:
            report.generated.append(self._write_landing_page(session))
        report.error_page = self._write_error_page(session)

        report.assets_copied = self._copy_assets(session)
        report.search_index = session.search.write_json(output_dir / SEARCH_INDEX_NAME)
        if self.config.site.base_url:
            report.sitemap = write_sitemap(
                output_dir / SITEMAP_NAME, self.config.site.base_url, report.generated
            )
        report.link_report = link_report.write_json(self.config.cache.link_report)
        report.link_stats = link_report.stats()
        report.unresolved_links = {
            entry.url: list(entry.unresolved_in) for entry in link_report.unresolved()
        }
        return report

    # ------------------------------------------------------------------
    # Phases

    def _fetch_repositories(self, tree: DocumentNode) -> Dict[str, RepositoryManifest]:
        requested: Dict[str, str] = {}
        for node in tree.walk():
            if node.kind is NodeKind.REPOSITORY and node.source:
                requested.setdefault(node.source, node.alias)
        if not requested:
            return {}

        manifests: Dict[str, RepositoryManifest] = {}
        with ThreadPoolExecutor(max_workers=self._workers(len(requested))) as pool:
            futures = {
                url: pool.submit(self.fetcher.fetch_repository, url, alias)
                for url, alias in requested.items()
            }
            for url, future in futures.items():
                try:
                    manifests[url] = future.result()
                except Exception as exc:  # pragma: no cover - fetcher converts expected failures
                    self.logger.warning("Repository %s failed: %s", url, exc)
        return manifests

    def _render_repository_documents(self, session: _BuildSession) -> List[DocumentResult]:
        return self._render_phase(session.index.repository_documents, session)

    def _render_local_documents(self, session: _BuildSession) -> List[DocumentResult]:
        return self._render_phase(session.index.local_documents, session)

    def _render_phase(
        self, documents: Sequence[SourceDocument], session: _BuildSession
    ) -> List[DocumentResult]:
        if not documents:
            return []
        with ThreadPoolExecutor(max_workers=self._workers(len(documents))) as pool:
            futures = [pool.submit(self._render_document, document, session) for document in documents]
            return [future.result() for future in futures]

    def _render_document(self, document: SourceDocument, session: _BuildSession) -> DocumentResult:
        try:
            text = Path(document.local_path).read_text(encoding="utf-8")
            markdown_result = session.resolver.rewrite_markdown(text, document)
            rendered = self.markdown_renderer.render(markdown_result.text)
            html_result = session.resolver.rewrite_html(rendered.html, document)
            title = document.title or rendered.title or document.output_path
            breadcrumb = derive_breadcrumb(
                document.output_path,
                session.tree,
                separator=self.config.output.breadcrumb_separator,
                max_length=self.config.output.breadcrumb_max_length,
                page_title=title,
            )
            page = self.page_renderer.render_page(
                PageContext(
                    title=title,
                    content=html_result.text,
                    site_title=self.config.site.title,
                    breadcrumb=breadcrumb,
                    navigation=build_navigation(session.tree, session.index.paths, document.output_path),
                    root_prefix=_root_prefix(document.output_path),
                    description=self.config.site.description,
                    source_url=_source_url(document),
                    footer=self.config.site.footer,
                )
            )
            target = session.output_dir / document.output_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(page, encoding="utf-8")
        except Exception as exc:
            self.logger.error("Failed to render %s: %s", document.source_key, exc)
            return DocumentResult(
                source_key=document.source_key,
                output_path=document.output_path,
                title=document.title,
                error=str(exc) or exc.__class__.__name__,
            )

        session.search.add(
            SearchDocument(
                title=title,
                url=document.output_path,
                breadcrumb=breadcrumb,
                headings=[heading.text for heading in rendered.headings],
                text=rendered.plain_text(),
            )
        )
        self.logger.debug("Rendered %s -> %s", document.source_key, document.output_path)
        return DocumentResult(
            source_key=document.source_key,
            output_path=document.output_path,
            title=title,
            records=markdown_result.records + html_result.records,
        )

    def _write_landing_page(self, session: _BuildSession) -> str:
        """Write a root ``index.html`` listing the top-level entries."""
        page = self.page_renderer.render_page(
            PageContext(
                title=self.config.site.title,
                content="",
                site_title=self.config.site.title,
                navigation=build_navigation(session.tree, session.index.paths, INDEX_NAME),
                description=self.config.site.description,
                footer=self.config.site.footer,
            )
        )
        session.output_dir.mkdir(parents=True, exist_ok=True)
        (session.output_dir / INDEX_NAME).write_text(page, encoding="utf-8")
        return INDEX_NAME

    def _write_error_page(self, session: _BuildSession) -> Path:
        """Write ``404.html`` at the site root for static hosts."""
        base_url = self.config.site.base_url
        home = f"{base_url.rstrip('/')}/" if base_url else INDEX_NAME
        page = self.page_renderer.render_page(
            PageContext(
                title="Page Not Found",
                content=_ERROR_PAGE_BODY.format(home=home),
                site_title=self.config.site.title,
                navigation=build_navigation(session.tree, session.index.paths, ERROR_PAGE_NAME),
                root_prefix="",
                description=self.config.site.description,
                footer=self.config.site.footer,
            )
        )
        target = session.output_dir / ERROR_PAGE_NAME
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(page, encoding="utf-8")
        return target

    def _copy_assets(self, session: _BuildSession) -> int:
        copied = 0
        for output_path, local_path in session.index.assets.materialized().items():
            target = session.output_dir / output_path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(local_path, target)
            except OSError as exc:
                self.logger.warning("Could not copy asset %s: %s", local_path, exc)
                continue
            copied += 1
        self.logger.debug("Copied %d assets", copied)
        return copied

    # ------------------------------------------------------------------
    # Helpers

    def _excluded_paths(self) -> List[Path]:
        excluded = list(self.config.source.exclude)
        excluded.append(self.config.output.directory)
        excluded.append(self.config.cache.directory)
        return excluded

    def _workers(self, jobs: int) -> int:
        return max(1, min(self.config.build.max_workers, jobs))


def _root_prefix(output_path: str) -> str:
    depth = posixpath.dirname(output_path).count("/") + 1 if posixpath.dirname(output_path) else 0
    return "../" * depth


def _source_url(document: SourceDocument) -> Optional[str]:
    manifest = document.manifest
    original = document.original_path()
    if manifest is None or original is None:
        return None
    return f"{manifest.web_url}/blob/{manifest.branch}/{original}"


__all__ = ["BuildReport", "DocumentResult", "SiteBuilder"]
