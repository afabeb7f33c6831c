from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from bs4 import Tag
from soupsieve import SelectorSyntaxError

from .config import STRICTEST_THRESHOLD, precision_threshold
from .documents import FrameLoader, enumerate_documents
from .dom import (
    Scope,
    contains_element,
    element_text,
    is_document_boundary,
    next_element_sibling,
    normalize_space,
    normalize_stored_selector,
    parent_element,
    previous_element_sibling,
    unique_elements,
)
from .models import ContextNode, DocumentContext, FinderResult, Target

logger = logging.getLogger("targetfinder.resolver")


@dataclass(frozen=True, slots=True)
class AncestorMatch:
    max_depth: int
    failed_depth: int
    success: bool


def query_selectors(selectors: Sequence[str], scope: Scope, dedupe: bool = True) -> list[Tag]:
    elements: list[Tag] = []
    for raw in selectors:
        try:
            elements.extend(scope.select(normalize_stored_selector(raw)))
        except SelectorSyntaxError as exc:
            logger.debug("Skipping malformed stored selector %r: %s", raw, exc)
    return unique_elements(elements) if dedupe else elements


def most_recurring_element(elements: Sequence[Tag]) -> Tag:
    counts: dict[int, int] = {}
    first_seen: dict[int, Tag] = {}
    for element in elements:
        key = id(element)
        counts[key] = counts.get(key, 0) + 1
        first_seen.setdefault(key, element)

    best = elements[0]
    best_count = 0
    for key, count in counts.items():
        if count > best_count:
            best_count = count
            best = first_seen[key]
    return best


def compare_siblings(node: ContextNode, element: Tag, scope: Scope) -> bool:
    matches_next = True
    matches_previous = True
    if node.next_sibling_selectors:
        candidates = query_selectors(node.next_sibling_selectors, scope)
        matches_next = contains_element(candidates, next_element_sibling(element))
    if node.previous_sibling_selectors:
        candidates = query_selectors(node.previous_sibling_selectors, scope)
        matches_previous = contains_element(candidates, previous_element_sibling(element))
    return matches_next and matches_previous


def compare_ancestors(
    node: ContextNode,
    element: Tag,
    scope: Scope,
    compare_sibling_nodes: bool = False,
) -> AncestorMatch:
    """Walk the stored chain and the live ancestors in lockstep.

    ``failed_depth`` is the depth of the highest stored level that did not
    match; it stays 0 when every checked level matched.
    """
    stored = node.parent
    live = parent_element(element)
    failed_depth = 0
    success = True

    while stored is not None and live is not None:
        if is_document_boundary(live, scope):
            break
        matches = query_selectors(stored.selectors, scope)
        siblings_match = compare_siblings(stored, live, scope) if compare_sibling_nodes else True
        if not contains_element(matches, live) or not siblings_match:
            failed_depth = stored.depth
            success = False
        stored = stored.parent
        live = parent_element(live)

    return AncestorMatch(max_depth=node.max_depth(), failed_depth=failed_depth, success=success)


def precision_rate(match: AncestorMatch) -> float:
    if match.max_depth <= 0:
        return 0.0
    return (match.failed_depth - 1) / match.max_depth * 10


def pick_most_precise(
    candidates: Sequence[Tag],
    node: ContextNode,
    scope: Scope,
    precision: int,
) -> Tag | None:
    strict: list[Tag] = []
    best_failed: tuple[Tag, AncestorMatch] | None = None
    for candidate in candidates:
        match = compare_ancestors(node, candidate, scope)
        if match.success:
            strict.append(candidate)
        elif best_failed is None or match.failed_depth > best_failed[1].failed_depth:
            best_failed = (candidate, match)

    if len(strict) == 1:
        return strict[0]

    if strict:
        fallback = strict[0]
        fallback_depth = 0
        for candidate in strict:
            match = compare_ancestors(node, candidate, scope, compare_sibling_nodes=True)
            if match.success:
                return candidate
            if match.failed_depth > fallback_depth:
                fallback_depth = match.failed_depth
                fallback = candidate
        logger.debug("%d strict matches, none confirmed by siblings; using depth tie-break.", len(strict))
        return fallback

    if best_failed is not None:
        element, match = best_failed
        rate = precision_rate(match)
        if rate >= precision:
            logger.debug("Accepting degraded match (rate %.2f >= %d).", rate, precision)
            return element
        logger.debug("Rejecting degraded match (rate %.2f < %d).", rate, precision)
    return None


def find_element(node: ContextNode | None, root: Scope, precision: int = STRICTEST_THRESHOLD) -> Tag | None:
    if node is None or not node.selectors:
        return None
    matches = query_selectors(node.selectors, root, dedupe=False)
    if not matches:
        return None

    distinct = unique_elements(matches)
    if len(distinct) != len(matches):
        candidates = [most_recurring_element(matches)]
    else:
        candidates = distinct
    return pick_most_precise(candidates, node, root, precision)


def resolve(target: Target, root: Scope, frames: FrameLoader | None = None) -> FinderResult | None:
    if target.search_across_frames:
        contexts = enumerate_documents(root, frames)
    else:
        contexts = [DocumentContext(document=root)]

    if target.mode == "custom":
        return _resolve_custom(target, contexts)

    if target.context_tree is None or not target.context_tree.selectors:
        logger.debug("Target has no context tree, nothing to resolve.")
        return None

    precision = precision_threshold(target.precision_level)
    for context in contexts:
        element = find_element(target.context_tree, context.document, precision)
        if element is None:
            continue
        expected_text = normalize_space(target.text_content)
        if target.is_dynamic_content and expected_text and element_text(element) != expected_text:
            logger.debug("Text mismatch in context %r, continuing.", context.frame_selector)
            continue
        return _result(element, context)
    return None


def resolve_element(target: Target, root: Scope, frames: FrameLoader | None = None) -> Tag | None:
    result = resolve(target, root, frames)
    return result.element if result else None


def _resolve_custom(target: Target, contexts: Sequence[DocumentContext]) -> FinderResult | None:
    if not target.custom_selector:
        return None
    selector = normalize_stored_selector(target.custom_selector)
    for context in contexts:
        try:
            elements = context.document.select(selector)
        except SelectorSyntaxError as exc:
            logger.warning("Selector error for %r: %s", target.custom_selector, exc)
            continue
        if not elements:
            continue
        if 0 <= target.sequence_index < len(elements):
            element = elements[target.sequence_index]
        else:
            element = elements[0]
        if target.text_content and element_text(element) != normalize_space(target.text_content):
            continue
        return _result(element, context)
    return None


def _result(element: Tag, context: DocumentContext) -> FinderResult:
    return FinderResult(
        element=element,
        iframe_context=context.frame_selector,
        is_in_iframe=context.is_frame,
        frame_path=context.frame_path,
    )
