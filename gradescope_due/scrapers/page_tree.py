"""Helpers for treating a rendered page snapshot as an attributed tree.

Pages are captured as HTML and parsed with BeautifulSoup. The browser
stamps layout geometry on elements as a ``data-gs-box`` attribute of the
form ``"left,top,width,height"`` (``top`` includes the scroll offset), so
extraction can stay a pure function of the parsed tree.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

BOX_ATTR = "data-gs-box"

BLOCK_TAGS = {
    "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt",
    "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3",
    "h4", "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p", "pre",
    "section", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "ul",
}

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Box:
    """Bounding box of a rendered element in page coordinates."""

    left: float
    top: float
    width: float
    height: float


def parse_page(html: str) -> BeautifulSoup:
    """Parse an HTML snapshot into a tree."""
    return BeautifulSoup(html or "", "html.parser")


def text(el: Optional[Tag]) -> str:
    """Return the element's text with runs of whitespace collapsed."""
    if el is None:
        return ""
    return _WHITESPACE.sub(" ", el.get_text(" ")).strip()


def lines(el: Optional[Tag]) -> List[str]:
    """Return the element's non-empty rendered text lines, trimmed.

    Block-level elements and ``<br>`` start a new line; inline elements
    continue the current one, approximating ``innerText``.
    """
    if el is None:
        return []
    chunks: List[str] = []
    _collect_lines(el, chunks)
    joined = "".join(chunks)
    return [_WHITESPACE.sub(" ", ln).strip() for ln in joined.split("\n") if ln.strip()]


def _collect_lines(el: Tag, chunks: List[str]) -> None:
    for child in el.children:
        if isinstance(child, Tag):
            if child.name in ("script", "style", "template"):
                continue
            if child.name == "br":
                chunks.append("\n")
                continue
            block = child.name in BLOCK_TAGS
            if block:
                chunks.append("\n")
            _collect_lines(child, chunks)
            if block:
                chunks.append("\n")
        elif isinstance(child, NavigableString) and not isinstance(child, Comment):
            chunks.append(str(child))


def box(el: Optional[Tag]) -> Optional[Box]:
    """Return the stamped bounding box for an element, or None if unmeasured."""
    if el is None:
        return None
    raw = el.get(BOX_ATTR)
    if not raw:
        return None
    try:
        left, top, width, height = (float(part) for part in raw.split(","))
    except ValueError:
        return None
    return Box(left=left, top=top, width=width, height=height)


def previous_element_sibling(el: Tag) -> Optional[Tag]:
    """Return the closest preceding sibling that is an element."""
    sib = el.previous_sibling
    while sib is not None and not isinstance(sib, Tag):
        sib = sib.previous_sibling
    return sib


def parent_element(el: Tag) -> Optional[Tag]:
    """Return the parent element, stopping at the document root."""
    parent = el.parent
    if parent is None or not isinstance(parent, Tag) or parent.name == "[document]":
        return None
    return parent


def child_element_count(el: Tag) -> int:
    """Number of direct children that are elements."""
    return sum(1 for child in el.children if isinstance(child, Tag))


def closest(el: Tag, names: List[str]) -> Optional[Tag]:
    """Return el or its nearest ancestor whose tag name is in names."""
    cur: Optional[Tag] = el
    while cur is not None:
        if cur.name in names:
            return cur
        cur = parent_element(cur)
    return None


def has_class(el: Tag, class_name: str) -> bool:
    """Check whether el carries the given CSS class."""
    return class_name in (el.get("class") or [])
