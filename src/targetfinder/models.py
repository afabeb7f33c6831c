from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterator, Literal, Mapping

from .config import DEFAULT_PRECISION

if TYPE_CHECKING:
    from bs4 import BeautifulSoup, Tag

TargetMode = Literal["auto", "custom"]
PrecisionLevel = Literal["looser", "loose", "loosest", "strict", "stricter", "strictest"]

@dataclass(slots=True)
class ContextNode:
    selectors: list[str]
    previous_sibling_selectors: list[str] = field(default_factory=list)
    next_sibling_selectors: list[str] = field(default_factory=list)
    depth: int = 0
    parent: ContextNode | None = None
    iframe_context: str = ""
    is_in_iframe: bool = False

    def chain(self) -> Iterator[ContextNode]:
        node: ContextNode | None = self
        while node is not None:
            yield node
            node = node.parent

    def max_depth(self) -> int:
        depth = self.depth
        for node in self.chain():
            depth = node.depth
        return depth

    def to_dict(self) -> dict[str, Any]:
        nodes = list(self.chain())
        payload = nodes[-1]._payload(None)
        for node in reversed(nodes[:-1]):
            payload = node._payload(payload)
        return payload

    def _payload(self, parent: dict[str, Any] | None) -> dict[str, Any]:
        item: dict[str, Any] = {
            "selectors": list(self.selectors),
            "previousElementSelectors": list(self.previous_sibling_selectors),
            "nextElementSelectors": list(self.next_sibling_selectors),
            "depth": self.depth,
            "parentNode": parent,
        }
        if self.iframe_context:
            item["iframeContext"] = self.iframe_context
            item["isInIframe"] = self.is_in_iframe
        return item

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> ContextNode | None:
        items: list[Mapping[str, Any]] = []
        current = payload
        while isinstance(current, Mapping):
            items.append(current)
            current = current.get("parentNode")

        parent: ContextNode | None = None
        for item in reversed(items):
            iframe_context = str(item.get("iframeContext") or "")
            parent = cls(
                selectors=_string_list(item.get("selectors")),
                previous_sibling_selectors=_string_list(item.get("previousElementSelectors")),
                next_sibling_selectors=_string_list(item.get("nextElementSelectors")),
                depth=_as_int(item.get("depth"), 0),
                parent=parent,
                iframe_context=iframe_context,
                is_in_iframe=bool(item.get("isInIframe", bool(iframe_context))),
            )
        return parent


@dataclass(slots=True)
class DocumentContext:
    document: BeautifulSoup | Tag
    frame_selector: str = ""
    depth: int = 0
    iframe: Tag | None = None
    frame_path: tuple[str, ...] = ()

    @property
    def is_frame(self) -> bool:
        return bool(self.frame_selector)


@dataclass(slots=True)
class Target:
    context_tree: ContextNode | None = None
    text_content: str = ""
    sequence_index: int = 0
    precision_level: str = DEFAULT_PRECISION
    is_dynamic_content: bool = False
    custom_selector: str = ""
    mode: TargetMode = "auto"
    iframe_context: str = ""
    search_across_frames: bool = False
    selectors_list: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.mode,
            "selectors": self.context_tree.to_dict() if self.context_tree else None,
            "selectorsList": list(self.selectors_list),
            "content": self.text_content,
            "sequence": format_sequence(self.sequence_index),
            "precision": self.precision_level,
            "isDynamicContent": self.is_dynamic_content,
            "customSelector": self.custom_selector,
            "iframeContext": self.iframe_context,
            "searchInIframes": self.search_across_frames,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Target:
        mode = str(payload.get("type") or "auto").strip().lower()
        return cls(
            context_tree=ContextNode.from_dict(payload.get("selectors")),
            text_content=str(payload.get("content") or ""),
            sequence_index=parse_sequence(payload.get("sequence")),
            precision_level=str(payload.get("precision") or DEFAULT_PRECISION),
            is_dynamic_content=bool(payload.get("isDynamicContent", False)),
            custom_selector=str(payload.get("customSelector") or ""),
            mode="custom" if mode == "custom" else "auto",
            iframe_context=str(payload.get("iframeContext") or ""),
            search_across_frames=bool(payload.get("searchInIframes", False)),
            selectors_list=_string_list(payload.get("selectorsList")),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> Target:
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("Target JSON must be an object.")
        return cls.from_dict(payload)


@dataclass(slots=True)
class FinderResult:
    element: Tag
    iframe_context: str = ""
    is_in_iframe: bool = False
    frame_path: tuple[str, ...] = ()


def format_sequence(index: int) -> str:
    # Stored targets key the sequence as "1st", "2st", ... "5st".
    return f"{max(0, index) + 1}st"


def parse_sequence(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(0, raw)
    match = re.match(r"\s*(\d+)", str(raw))
    if not match:
        return 0
    return max(0, int(match.group(1)) - 1)


def _string_list(raw: Any) -> list[str]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(item) for item in raw if item is not None and str(item)]


def _as_int(raw: Any, default: int) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default
