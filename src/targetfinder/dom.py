from __future__ import annotations

import re
from typing import Iterable, Iterator

import soupsieve
from bs4 import BeautifulSoup, CData, NavigableString, Tag

DOCUMENT_BOUNDARY_TAGS = frozenset({"html", "body"})
# Comments, doctypes and script bodies are not part of the visible text.
_TEXT_TYPES = (NavigableString, CData)

Scope = BeautifulSoup | Tag


def parse_html(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup, "html.parser")


def css_escape(value: str) -> str:
    return soupsieve.escape(value)


def escape_css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def normalize_stored_selector(selector: str) -> str:
    # Persisted selectors can carry doubled escapes from JSON round trips.
    return selector.replace("\\\\", "\\")


def normalize_space(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", " ", value).strip()


def element_text(element: Tag) -> str:
    """Visible text of the element, ``<br>`` counted as a line break, whitespace collapsed."""
    parts: list[str] = []
    for node in element.descendants:
        if isinstance(node, Tag):
            if node.name == "br":
                parts.append("\n")
        elif type(node) in _TEXT_TYPES:
            parts.append(str(node))
    return normalize_space("".join(parts))


def tag_name(element: Tag) -> str:
    return (element.name or "").lower()


def class_list(element: Tag) -> list[str]:
    raw = element.get("class")
    if raw is None:
        return []
    tokens = raw.split() if isinstance(raw, str) else [str(item) for item in raw]
    ordered: list[str] = []
    for token in tokens:
        if token and token not in ordered:
            ordered.append(token)
    return ordered


def attribute_items(element: Tag) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    for name, value in element.attrs.items():
        if isinstance(value, (list, tuple)):
            value = " ".join(str(item) for item in value)
        items.append((str(name), str(value)))
    return items


def is_element(node: object) -> bool:
    return isinstance(node, Tag) and not isinstance(node, BeautifulSoup)


def parent_element(element: Tag) -> Tag | None:
    parent = element.parent
    if parent is None or isinstance(parent, BeautifulSoup):
        return None
    return parent


def ancestors(element: Tag) -> Iterator[Tag]:
    current = parent_element(element)
    while current is not None:
        yield current
        current = parent_element(current)


def previous_element_sibling(element: Tag) -> Tag | None:
    for sibling in element.previous_siblings:
        if isinstance(sibling, Tag):
            return sibling
    return None


def next_element_sibling(element: Tag) -> Tag | None:
    for sibling in element.next_siblings:
        if isinstance(sibling, Tag):
            return sibling
    return None


def element_index(element: Tag) -> int | None:
    """1-based position among the element children of the parent node, as ``:nth-child`` counts."""
    parent = element.parent
    if parent is None:
        return None
    index = 0
    for child in parent.children:
        if isinstance(child, Tag):
            index += 1
            if child is element:
                return index
    return None


def owner_document(element: Tag) -> Scope:
    current: Tag = element
    while current.parent is not None:
        current = current.parent
    return current


def is_inside(element: Tag, scope: Scope) -> bool:
    if element is scope:
        return True
    return any(parent is scope for parent in element.parents)


def is_document_boundary(element: Tag | None, root: Scope | None = None) -> bool:
    if element is None or element is root:
        return True
    if tag_name(element) in DOCUMENT_BOUNDARY_TAGS:
        return True
    return parent_element(element) is None


def contains_element(elements: Iterable[Tag], element: Tag | None) -> bool:
    if element is None:
        return False
    return any(item is element for item in elements)


def unique_elements(elements: Iterable[Tag]) -> list[Tag]:
    seen: set[int] = set()
    ordered: list[Tag] = []
    for element in elements:
        key = id(element)
        if key in seen:
            continue
        seen.add(key)
        ordered.append(element)
    return ordered


def css_path(element: Tag) -> str:
    """Structural path that re-selects the element in a fresh copy of the same markup."""
    parts: list[str] = []
    current: Tag | None = element
    while current is not None:
        name = tag_name(current)
        if name == "html":
            parts.append("html")
            break
        index = element_index(current) or 1
        parts.append(f"{name}:nth-child({index})")
        current = parent_element(current)
    return " > ".join(reversed(parts))
