"""Markdown to HTML conversion."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import markdown

DEFAULT_EXTENSIONS = ("extra", "fenced_code", "tables", "toc", "sane_lists")

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class Heading:
    level: int
    id: str
    text: str


@dataclass
class RenderedMarkdown:
    html: str
    title: Optional[str] = None
    headings: List[Heading] = field(default_factory=list)

    def plain_text(self) -> str:
        """Return the rendered body without markup, for the search index."""
        text = html.unescape(_TAG.sub(" ", self.html))
        return _WHITESPACE.sub(" ", text).strip()


class MarkdownRenderer:
    """Renders markdown with Python-Markdown.

    A fresh ``markdown.Markdown`` instance is used per document because
    instances keep per-conversion state and documents render in parallel.
    """

    def __init__(
        self,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        extension_configs: Dict[str, Dict[str, Any]] | None = None,
    ) -> None:
        self.extensions = list(extensions)
        self.extension_configs = extension_configs or {"toc": {"permalink": False}}

    def render(self, text: str) -> RenderedMarkdown:
        converter = markdown.Markdown(
            extensions=self.extensions,
            extension_configs=self.extension_configs,
            output_format="html",
        )
        body = converter.convert(text)
        headings = _flatten_tokens(getattr(converter, "toc_tokens", []))
        title = next((heading.text for heading in headings if heading.level == 1), None)
        return RenderedMarkdown(html=body, title=title, headings=headings)


def _flatten_tokens(tokens: List[Dict[str, Any]]) -> List[Heading]:
    headings: List[Heading] = []
    for token in tokens:
        headings.append(
            Heading(
                level=int(token.get("level", 0)),
                id=str(token.get("id", "")),
                text=html.unescape(str(token.get("name", ""))),
            )
        )
        headings.extend(_flatten_tokens(token.get("children", [])))
    return headings


__all__ = ["DEFAULT_EXTENSIONS", "Heading", "MarkdownRenderer", "RenderedMarkdown"]
