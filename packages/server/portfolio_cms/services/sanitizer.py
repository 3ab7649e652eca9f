"""
Allow-list HTML sanitizer for project descriptions.

Every description is cleaned on the server before it is persisted or
returned from a translation, whatever the client already did.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

import nh3

ALLOWED_TAGS = {
    "p", "br", "strong", "b", "em", "i", "u", "span",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "blockquote", "a",
    "table", "thead", "tbody", "tr", "th", "td",
    "img", "iframe", "hr",
}

ALLOWED_ATTRIBUTES = {
    # `rel` and `target` are set by the cleaner itself
    "a": {"href"},
    "img": {"src", "alt", "title", "width", "height"},
    "iframe": {"src", "width", "height", "frameborder", "allow", "allowfullscreen", "title"},
}

URL_SCHEMES = {"http", "https", "mailto"}

IFRAME_HOSTS = {"youtube.com", "www.youtube.com", "youtu.be", "player.vimeo.com", "vimeo.com"}

LINK_REL = "noopener noreferrer"

_TAG_TOKEN_RE = re.compile(r"</?([a-z0-9]+)\b[^>]*>", re.IGNORECASE)
_URL_ATTR_RE = re.compile(r"\b(?:href|src)\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)


def _filter_attribute(element: str, attribute: str, value: str) -> Optional[str]:
    if element == "iframe" and attribute == "src":
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or (parts.hostname or "").lower() not in IFRAME_HOSTS:
            return None
    return value


def sanitize_description(html: object, allow_inline_style: bool = False) -> str:
    """Clean rich-text HTML against the fixed allow-list.

    Anchors always open in a new tab with `rel="noopener noreferrer"`;
    iframes keep their `src` only for known video embed hosts.
    """
    attributes = {tag: set(names) for tag, names in ALLOWED_ATTRIBUTES.items()}
    if allow_inline_style:
        attributes["*"] = {"style"}
    return nh3.clean(
        str(html or ""),
        tags=ALLOWED_TAGS,
        attributes=attributes,
        attribute_filter=_filter_attribute,
        url_schemes=URL_SCHEMES,
        link_rel=LINK_REL,
        set_tag_attribute_values={"a": {"target": "_blank"}},
    )


def html_tag_tokens(html: object) -> list[str]:
    """Ordered open/close tag names: `<p><b>x</b></p>` -> p, b, /b, /p."""
    tokens = []
    for match in _TAG_TOKEN_RE.finditer(str(html or "")):
        name = match.group(1).lower()
        tokens.append(f"/{name}" if match.group(0).startswith("</") else name)
    return tokens


def html_urls(html: object) -> list[str]:
    """Ordered `href`/`src` values."""
    return _URL_ATTR_RE.findall(str(html or ""))
