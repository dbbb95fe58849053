# FILE: sitesmith/pipeline/preview.py
"""
Static preview rendering.

Takes the project's index.html and inlines any local stylesheets it links,
so the preview can be shown from a single HTML string. Projects without an
index.html get no preview.

Static sites only: React/JSX sources are not transpiled or bundled here, so
a component-based project previews as whatever its index.html contains.
Pipelines that can render such projects pass their own preview_html.
"""
from __future__ import annotations

import posixpath
import re
from typing import Dict, Optional

INDEX_CANDIDATES = ("index.html", "public/index.html")

_STYLESHEET_LINK = re.compile(
    r"<link\b[^>]*\brel=[\"']stylesheet[\"'][^>]*>",
    re.IGNORECASE,
)
_HREF = re.compile(r"\bhref=[\"']([^\"']+)[\"']", re.IGNORECASE)


def _local_path(index_path: str, href: str) -> Optional[str]:
    if "://" in href or href.startswith("//") or href.startswith("data:"):
        return None
    if href.startswith("/"):
        return posixpath.normpath(href.lstrip("/"))
    return posixpath.normpath(posixpath.join(posixpath.dirname(index_path), href))


def render_preview(files: Dict[str, str]) -> Optional[str]:
    index_path = next((p for p in INDEX_CANDIDATES if (files.get(p) or "").strip()), None)
    if index_path is None:
        return None

    def _inline(match: "re.Match[str]") -> str:
        tag = match.group(0)
        href = _HREF.search(tag)
        if not href:
            return tag
        path = _local_path(index_path, href.group(1))
        css = files.get(path) if path else None
        if css is None:
            return tag
        return f"<style>\n{css}\n</style>"

    return _STYLESHEET_LINK.sub(_inline, files[index_path])
