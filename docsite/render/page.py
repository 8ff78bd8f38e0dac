"""Jinja2 page templates."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader

from ..navigation import NavItem

PAGE_TEMPLATE = "page.html.j2"


@dataclass
class PageContext:
    """Everything the page template needs for one document."""

    title: str
    content: str
    site_title: str
    breadcrumb: str = ""
    navigation: List[NavItem] = field(default_factory=list)
    root_prefix: str = ""
    description: Optional[str] = None
    source_url: Optional[str] = None
    footer: Optional[str] = None


class PageRenderer:
    """Wraps rendered document bodies in the site layout.

    ``templates_dir`` is searched before the bundled templates so a site can
    override any of them by name.
    """

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.env = self._create_env(templates_dir)

    def render_page(self, context: PageContext) -> str:
        template = self.env.get_template(PAGE_TEMPLATE)
        return template.render(page=context, nav=[item.to_dict() for item in context.navigation])

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(Path(__file__).with_name("templates")))
        seen: set[str] = set()
        ordered: list[str] = []
        for directory in directories:
            if directory not in seen:
                ordered.append(directory)
                seen.add(directory)
        loader = FileSystemLoader(ordered)
        return Environment(loader=loader, autoescape=True, trim_blocks=True, lstrip_blocks=True)


__all__ = ["PAGE_TEMPLATE", "PageContext", "PageRenderer"]
