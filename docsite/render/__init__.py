"""Markdown rendering and page templating."""

from .content import Heading, MarkdownRenderer, RenderedMarkdown
from .page import PageContext, PageRenderer

__all__ = ["Heading", "MarkdownRenderer", "PageContext", "PageRenderer", "RenderedMarkdown"]
