from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from bs4 import Tag

from .config import FINDER_ATTRIBUTES, SelectorEffort
from .dom import class_list
from .errors import SelectorNotFound
from .selector_finder import FinderOptions, find_selector

logger = logging.getLogger("targetfinder.selectors")


def _always(_name: str) -> bool:
    return True


def _allowed_attr(name: str, _value: str) -> bool:
    return name in FINDER_ATTRIBUTES


BASE_PROFILES: tuple[FinderOptions, ...] = (
    FinderOptions(tag_name=_always),
    FinderOptions(id_name=_always),
    FinderOptions(tag_name=_always, attr=_allowed_attr),
    FinderOptions(class_name=_always, attr=_allowed_attr),
    FinderOptions(tag_name=_always, id_name=_always, class_name=_always),
    FinderOptions(tag_name=_always, id_name=_always, class_name=_always, attr=_allowed_attr),
)


def single_class_profile(element_classes: Sequence[str], kept: str) -> FinderOptions:
    """Profile that may use ``kept`` but none of the element's other classes."""
    excluded = frozenset(name for name in element_classes if name != kept)
    return FinderOptions(class_name=lambda name: name not in excluded)


def selector_profiles(element: Tag) -> list[FinderOptions]:
    classes = class_list(element)
    return [*BASE_PROFILES, *(single_class_profile(classes, name) for name in classes)]


def generate_selectors(
    element: Tag,
    profiles: Sequence[FinderOptions] | None = None,
    effort: SelectorEffort | None = None,
) -> list[str]:
    selectors: list[str] = []
    for profile in profiles if profiles is not None else selector_profiles(element):
        if effort is not None:
            profile = replace(profile, effort=effort)
        try:
            candidate = find_selector(element, profile)
        except SelectorNotFound as exc:
            logger.debug("Selector profile skipped for <%s>: %s", element.name, exc)
            continue
        if candidate not in selectors:
            selectors.append(candidate)
    return selectors
