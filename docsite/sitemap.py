"""sitemap.xml generation."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterable

_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"


def page_url(base_url: str, output_path: str) -> str:
    """Absolute URL of a page; directory indexes map to their directory."""
    base = base_url.rstrip("/")
    if output_path == "index.html":
        return f"{base}/"
    if output_path.endswith("/index.html"):
        return f"{base}/{output_path[: -len('index.html')]}"
    return f"{base}/{output_path}"


def write_sitemap(
    path: Path,
    base_url: str,
    output_paths: Iterable[str],
    *,
    lastmod: datetime | None = None,
) -> Path:
    stamp = (lastmod or datetime.now(UTC)).date().isoformat()
    urlset = ET.Element("urlset", xmlns=_NAMESPACE)
    for output in sorted(set(output_paths)):
        url = ET.SubElement(urlset, "url")
        ET.SubElement(url, "loc").text = page_url(base_url, output)
        ET.SubElement(url, "lastmod").text = stamp
        ET.SubElement(url, "priority").text = "1.0" if output == "index.html" else "0.8"
    tree = ET.ElementTree(urlset)
    ET.indent(tree)
    path.parent.mkdir(parents=True, exist_ok=True)
    tree.write(path, encoding="utf-8", xml_declaration=True)
    return path


__all__ = ["page_url", "write_sitemap"]
