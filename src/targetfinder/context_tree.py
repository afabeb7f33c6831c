from __future__ import annotations

from bs4 import Tag

from .config import SelectorEffort
from .dom import is_document_boundary, next_element_sibling, parent_element, previous_element_sibling
from .models import ContextNode
from .selector_candidates import generate_selectors


def build_context_tree(
    element: Tag,
    iframe_context: str = "",
    effort: SelectorEffort | None = None,
) -> ContextNode | None:
    """Capture the element and its ancestors up to the document boundary.

    Returns ``None`` when the element itself yields no selectors. An ancestor
    without selectors ends the chain but keeps the levels captured so far.
    """
    leaf: ContextNode | None = None
    child: ContextNode | None = None
    current: Tag | None = element
    depth = 0

    while current is not None:
        node = _build_node(current, depth, iframe_context, effort)
        if node is None:
            break
        if child is None:
            leaf = node
        else:
            child.parent = node
        child = node

        parent = parent_element(current)
        if is_document_boundary(parent):
            break
        current = parent
        depth += 1

    return leaf


def _build_node(
    element: Tag,
    depth: int,
    iframe_context: str,
    effort: SelectorEffort | None,
) -> ContextNode | None:
    selectors = generate_selectors(element, effort=effort)
    if not selectors:
        return None

    previous_sibling = previous_element_sibling(element)
    next_sibling = next_element_sibling(element)
    return ContextNode(
        selectors=selectors,
        previous_sibling_selectors=generate_selectors(previous_sibling, effort=effort) if previous_sibling else [],
        next_sibling_selectors=generate_selectors(next_sibling, effort=effort) if next_sibling else [],
        depth=depth,
        iframe_context=iframe_context,
        is_in_iframe=bool(iframe_context),
    )
