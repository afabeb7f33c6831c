"""Bottom-up search for the shortest CSS selector that matches exactly one element.

Each ancestor level contributes candidate "knots" (id, attributes, classes,
tag name or ``*``) weighted by a penalty. Knot combinations are tried in
order of increasing total penalty until one of them is unique in the
element's document; the winning path is then shortened by dropping middle
levels while it still selects the element.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from itertools import product
from typing import Callable, Iterator, Literal, Sequence

from bs4 import Tag
from soupsieve import SelectorSyntaxError

from .config import SelectorEffort
from .dom import (
    Scope,
    attribute_items,
    class_list,
    css_escape,
    element_index,
    is_element,
    owner_document,
    parent_element,
    tag_name,
)
from .errors import SelectorNotFound

SearchLimit = Literal["all", "two", "one", "none"]
Path = Sequence["Knot"]


def _never(_name: str) -> bool:
    return False


def _never_attr(_name: str, _value: str) -> bool:
    return False


@dataclass(frozen=True, slots=True)
class FinderOptions:
    id_name: Callable[[str], bool] = _never
    class_name: Callable[[str], bool] = _never
    tag_name: Callable[[str], bool] = _never
    attr: Callable[[str, str], bool] = _never_attr
    effort: SelectorEffort = field(default_factory=SelectorEffort)


@dataclass(slots=True)
class Knot:
    name: str
    penalty: float
    level: int = 0


@dataclass(slots=True)
class _OptimizeScope:
    counter: int = 0
    visited: set[str] = field(default_factory=set)


class SelectorFinder:
    def __init__(self, element: Tag, options: FinderOptions, root: Scope | None = None) -> None:
        self.element = element
        self.options = options
        self.effort = options.effort
        self.root = root if root is not None else owner_document(element)

    def find(self) -> str:
        if not is_element(self.element):
            raise SelectorNotFound("Can't generate CSS selector for non-element node.")
        if tag_name(self.element) == "html":
            return "html"

        path = self._bottom_up_search(
            "all",
            lambda: self._bottom_up_search(
                "two",
                lambda: self._bottom_up_search(
                    "one",
                    lambda: self._bottom_up_search("none"),
                ),
            ),
        )
        if not path:
            raise SelectorNotFound("Selector was not found.")

        optimized = sorted(self._optimize(path, _OptimizeScope()), key=penalty)
        if optimized:
            path = optimized[0]
        return selector(path)

    def _bottom_up_search(
        self,
        limit: SearchLimit,
        fallback: Callable[[], list[Knot] | None] | None = None,
    ) -> list[Knot] | None:
        path: list[Knot] | None = None
        stack: list[list[Knot]] = []
        current: Tag | None = self.element
        depth = 0

        while current is not None:
            level = (
                _maybe(self._id(current))
                or _maybe(*self._attributes(current))
                or _maybe(*self._class_names(current))
                or _maybe(self._tag_name(current))
                or [_any()]
            )
            nth = element_index(current)

            if limit == "all":
                if nth:
                    level = level + [_nth_child(knot, nth) for knot in level if _dispensable_nth(knot)]
            elif limit == "two":
                level = level[:1]
                if nth:
                    level = level + [_nth_child(knot, nth) for knot in level if _dispensable_nth(knot)]
            elif limit == "one":
                level = level[:1]
                if nth and _dispensable_nth(level[0]):
                    level = [_nth_child(level[0], nth)]
            else:
                level = [_any()]
                if nth:
                    level = [_nth_child(level[0], nth)]

            for knot in level:
                knot.level = depth
            stack.append(level)

            if len(stack) >= self.effort.seed_min_length:
                path = self._find_unique_path(stack, fallback)
                if path:
                    break

            current = parent_element(current)
            depth += 1

        if not path:
            path = self._find_unique_path(stack, fallback)
        if not path and fallback:
            return fallback()
        return path

    def _find_unique_path(
        self,
        stack: list[list[Knot]],
        fallback: Callable[[], list[Knot] | None] | None,
    ) -> list[Knot] | None:
        if math.prod(len(level) for level in stack) > self.effort.threshold:
            return fallback() if fallback else None
        for candidate in sorted((list(path) for path in product(*stack)), key=penalty):
            if self._unique(candidate):
                return candidate
        return None

    def _unique(self, path: Path) -> bool:
        css = selector(path)
        try:
            count = len(self.root.select(css))
        except SelectorSyntaxError as exc:
            raise SelectorNotFound(f"Invalid selector {css}: {exc}") from exc
        if count == 0:
            raise SelectorNotFound(f"Can't select any node with this selector: {css}")
        return count == 1

    def _same(self, path: Path) -> bool:
        return self.root.select_one(selector(path)) is self.element

    def _optimize(self, path: list[Knot], scope: _OptimizeScope) -> Iterator[list[Knot]]:
        if len(path) <= 2 or len(path) <= self.effort.optimized_min_length:
            return
        for index in range(1, len(path) - 1):
            if scope.counter > self.effort.max_number_of_tries:
                return
            scope.counter += 1
            new_path = path[:index] + path[index + 1 :]
            key = selector(new_path)
            if key in scope.visited:
                return
            if self._unique(new_path) and self._same(new_path):
                yield new_path
                scope.visited.add(key)
                yield from self._optimize(new_path, scope)

    def _id(self, element: Tag) -> Knot | None:
        value = element.get("id")
        if isinstance(value, str) and value and self.options.id_name(value):
            return Knot(f"#{css_escape(value)}", 0)
        return None

    def _attributes(self, element: Tag) -> list[Knot]:
        return [
            Knot(f'[{css_escape(name)}="{css_escape(value)}"]', 0.5)
            for name, value in attribute_items(element)
            if self.options.attr(name, value)
        ]

    def _class_names(self, element: Tag) -> list[Knot]:
        return [Knot(f".{css_escape(name)}", 1) for name in class_list(element) if self.options.class_name(name)]

    def _tag_name(self, element: Tag) -> Knot | None:
        name = tag_name(element)
        if self.options.tag_name(name):
            return Knot(name, 2)
        return None


def find_selector(element: Tag, options: FinderOptions | None = None, root: Scope | None = None) -> str:
    return SelectorFinder(element, options or FinderOptions(), root).find()


def selector(path: Path) -> str:
    node = path[0]
    query = node.name
    for item in path[1:]:
        if node.level == item.level - 1:
            query = f"{item.name} > {query}"
        else:
            query = f"{item.name} {query}"
        node = item
    return query


def penalty(path: Path) -> float:
    return sum(knot.penalty for knot in path)


def _maybe(*level: Knot | None) -> list[Knot] | None:
    knots = [knot for knot in level if knot is not None]
    return knots or None


def _any() -> Knot:
    return Knot("*", 3)


def _nth_child(knot: Knot, index: int) -> Knot:
    return Knot(f"{knot.name}:nth-child({index})", knot.penalty + 1)


def _dispensable_nth(knot: Knot) -> bool:
    return knot.name != "html" and not knot.name.startswith("#")
