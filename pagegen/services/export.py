from __future__ import annotations

import re
from html import escape

import bleach

from pagegen.schemas import GeneratedCopyResult, PreviewModel, PreviewSection

DEFAULT_EXPORT_TITLE = "Product Page"
DEFAULT_EXPORT_FILENAME = "product-page.html"

_ALLOWED_TAGS = frozenset(
    {
        "a",
        "article",
        "b",
        "blockquote",
        "br",
        "div",
        "em",
        "footer",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "header",
        "i",
        "img",
        "li",
        "ol",
        "p",
        "section",
        "small",
        "span",
        "strong",
        "ul",
    }
)
_ALLOWED_ATTRS = {
    "*": ["class", "id"],
    "a": ["href", "title", "rel"],
    "img": ["src", "alt", "title", "width", "height"],
}
_ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})

# Whole executable/style blocks go before bleach, which would otherwise keep their text.
_BLOCK_STRIP_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<style[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<(iframe|object|embed|template|noscript)[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL),
]
_SLUG_RE = re.compile(r"[^a-z0-9]+")


class ExportError(ValueError):
    pass


def sanitize_html(raw_html: str) -> str:
    """Strip scripts, styles, embeds and event-handler attributes from rendered copy."""
    content = raw_html or ""
    for pattern in _BLOCK_STRIP_PATTERNS:
        content = pattern.sub("", content)
    cleaned = bleach.clean(
        content,
        tags=_ALLOWED_TAGS,
        attributes=_ALLOWED_ATTRS,
        protocols=_ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )
    return cleaned.strip()


def build_export_document(raw_html: str, title: str | None = None) -> str:
    content = sanitize_html(raw_html)
    if not content:
        raise ExportError("There is no content to export.")
    page_title = escape((title or "").strip() or DEFAULT_EXPORT_TITLE)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{page_title}</title>
</head>
<body>
{content}
</body>
</html>
"""


def export_filename(title: str | None = None, filename: str | None = None) -> str:
    candidate = (filename or "").strip()
    if candidate.lower().endswith(".html"):
        candidate = candidate[: -len(".html")]
    if not candidate:
        candidate = (title or "").strip()
    slug = _SLUG_RE.sub("-", candidate.lower()).strip("-")
    if not slug:
        return DEFAULT_EXPORT_FILENAME
    return f"{slug}.html"


def build_preview(result: GeneratedCopyResult) -> PreviewModel:
    sections = [
        PreviewSection(
            id=block.id,
            type=block.type,
            cssClass=f"preview-block preview-block--{block.type}",
            title=block.title,
            headline=block.headline,
            body=block.body,
            bullets=list(block.bullets or []),
            callToAction=block.callToAction,
        )
        for block in result.blocks
    ]
    return PreviewModel(
        frameworkLabel=f"Framework: {result.framework}",
        headline=result.headline,
        subheadline=result.subheadline,
        synopsis=result.synopsis,
        sections=sections,
    )
