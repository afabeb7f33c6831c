from __future__ import annotations

from .context_tree import build_context_tree
from .documents import FrameLoader, enumerate_documents, find_element_context
from .errors import FrameAccessDenied, SelectorNotFound, TargetFinderError, UnanchorableElement
from .models import ContextNode, DocumentContext, FinderResult, Target
from .resolver import find_element, resolve, resolve_element
from .selector_candidates import generate_selectors
from .target_builder import capture_target

__version__ = "0.1.0"

__all__ = [
    "ContextNode",
    "DocumentContext",
    "FinderResult",
    "FrameAccessDenied",
    "FrameLoader",
    "SelectorNotFound",
    "Target",
    "TargetFinderError",
    "UnanchorableElement",
    "build_context_tree",
    "capture_target",
    "enumerate_documents",
    "find_element",
    "find_element_context",
    "generate_selectors",
    "resolve",
    "resolve_element",
]
