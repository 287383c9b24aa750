"""Conversion of normalized results into markup that is safe to display."""

from __future__ import annotations

import html
import logging
from typing import Optional

import nh3
from markdown_it import MarkdownIt

LOGGER = logging.getLogger(__name__)

_STRUCTURED_PREFIXES: tuple[str, ...] = ("{", "[")
_MARKDOWN_RENDERER: Optional[MarkdownIt] = None


def looks_structured(content: str) -> bool:
    """Return ``True`` when ``content`` is JSON the service failed to summarize."""

    return content.strip().startswith(_STRUCTURED_PREFIXES)


def render(content: str) -> str:
    """Render ``content`` into sanitized HTML.

    Structured payloads are escaped into a ``<pre>`` block and never reach the
    markdown parser. Everything else is converted from markdown and passed
    through the HTML sanitizer.
    """

    if looks_structured(content):
        return render_preformatted(content)
    return sanitize(_build_renderer().render(content))


def render_preformatted(content: str) -> str:
    return f"<pre>{html.escape(content, quote=True)}</pre>"


def render_message(message: str) -> str:
    """Render a plain status or error message for the content slot."""

    return sanitize(html.escape(message, quote=False))


def sanitize(markup: str) -> str:
    """Strip scripts, event handlers, and unsafe URLs from ``markup``."""

    return nh3.clean(markup)


def _build_renderer() -> MarkdownIt:
    global _MARKDOWN_RENDERER
    if _MARKDOWN_RENDERER is None:
        renderer = MarkdownIt("commonmark", {"html": True, "typographer": False})
        renderer.enable("table")
        renderer.enable("strikethrough")
        _MARKDOWN_RENDERER = renderer
        LOGGER.debug("Markdown renderer initialised")
    return _MARKDOWN_RENDERER


__all__ = ["looks_structured", "render", "render_message", "render_preformatted", "sanitize"]
