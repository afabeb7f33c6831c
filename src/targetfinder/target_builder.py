from __future__ import annotations

import logging

from bs4 import Tag

from .config import DEFAULT_PRECISION, SelectorEffort
from .context_tree import build_context_tree
from .documents import FrameLoader, enumerate_documents, find_element_context
from .dom import Scope, element_text, owner_document
from .errors import UnanchorableElement
from .models import Target, TargetMode
from .selector_candidates import generate_selectors

logger = logging.getLogger("targetfinder.builder")


def capture_target(
    element: Tag,
    *,
    root: Scope | None = None,
    frames: FrameLoader | None = None,
    search_across_frames: bool = False,
    precision_level: str = DEFAULT_PRECISION,
    mode: TargetMode = "auto",
    is_dynamic_content: bool = False,
    effort: SelectorEffort | None = None,
) -> Target:
    iframe_context = ""
    if search_across_frames:
        contexts = enumerate_documents(root if root is not None else owner_document(element), frames)
        context = find_element_context(element, contexts)
        if context is None:
            logger.warning("<%s> is not inside any accessible document of the given root.", element.name)
        else:
            iframe_context = context.frame_selector

    tree = build_context_tree(element, iframe_context, effort if effort is not None else SelectorEffort.from_env())
    if tree is None:
        raise UnanchorableElement(f"Cannot create a stable locator for <{element.name}>.")

    return Target(
        context_tree=tree,
        text_content=element_text(element),
        precision_level=precision_level,
        is_dynamic_content=is_dynamic_content,
        mode=mode,
        iframe_context=iframe_context,
        search_across_frames=search_across_frames,
        selectors_list=list(tree.selectors),
    )
