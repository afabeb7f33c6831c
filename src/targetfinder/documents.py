from __future__ import annotations

import logging
from typing import Mapping
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from .dom import Scope, class_list, css_escape, escape_css_string, is_inside, owner_document, parse_html
from .errors import FrameAccessDenied
from .models import DocumentContext

logger = logging.getLogger("targetfinder.frames")


class FrameLoader:
    """Hands out the content document of ``<iframe>`` elements.

    ``srcdoc`` frames are parsed from their attribute. ``src`` frames are
    looked up in ``sources`` by absolute URL after a same-origin check
    against the owner document's URL. Every frame is parsed once, so the
    same loader always returns the same document objects.
    """

    def __init__(self, base_url: str = "", sources: Mapping[str, str] | None = None) -> None:
        self.base_url = base_url
        self.sources = {_cache_key(url): markup for url, markup in (sources or {}).items()}
        self._documents: dict[int, tuple[Tag, BeautifulSoup | None]] = {}
        self._document_urls: dict[int, tuple[Scope, str]] = {}

    def load_root(self, markup: str, url: str | None = None) -> BeautifulSoup:
        document = parse_html(markup)
        self._document_urls[id(document)] = (document, self.base_url if url is None else url)
        return document

    def document_url(self, document: Scope) -> str:
        entry = self._document_urls.get(id(document))
        if entry is not None and entry[0] is document:
            return entry[1]
        return self.base_url

    def content_document(self, iframe: Tag) -> BeautifulSoup | None:
        cached = self._documents.get(id(iframe))
        if cached is not None and cached[0] is iframe:
            return cached[1]
        document = self._load(iframe)
        self._documents[id(iframe)] = (iframe, document)
        return document

    def frame_url(self, iframe: Tag) -> str | None:
        """Absolute URL a ``src`` frame loads, or ``None`` for ``srcdoc`` and empty frames."""
        if isinstance(iframe.get("srcdoc"), str):
            return None
        src = str(iframe.get("src") or "").strip()
        if not src:
            return None
        return urljoin(self.document_url(owner_document(iframe)), src)

    def _load(self, iframe: Tag) -> BeautifulSoup | None:
        parent_url = self.document_url(owner_document(iframe))

        srcdoc = iframe.get("srcdoc")
        if isinstance(srcdoc, str):
            document = parse_html(srcdoc)
            self._document_urls[id(document)] = (document, parent_url)
            return document

        url = self.frame_url(iframe)
        if url is None:
            return None
        if url.startswith("about:"):
            return None
        if not same_origin(parent_url, url):
            raise FrameAccessDenied(url)

        markup = self.sources.get(_cache_key(url))
        if markup is None:
            return None
        document = parse_html(markup)
        self._document_urls[id(document)] = (document, url)
        return document


def same_origin(first: str, second: str) -> bool:
    return _origin(first) == _origin(second)


def _origin(url: str) -> tuple[str, str]:
    parsed = urlparse(url)
    return parsed.scheme.lower(), parsed.netloc.lower()


def _cache_key(url: str) -> str:
    return urldefrag(url)[0]


def iframe_selector(iframe: Tag, base_url: str = "") -> str:
    iframe_id = iframe.get("id")
    if isinstance(iframe_id, str) and iframe_id.strip():
        return f"iframe#{css_escape(iframe_id)}"

    name = iframe.get("name")
    if isinstance(name, str) and name.strip():
        return f'iframe[name="{escape_css_string(name)}"]'

    src = str(iframe.get("src") or "").strip()
    if src:
        path = urlparse(urljoin(base_url, src)).path or "/"
        return f'iframe[src*="{escape_css_string(path)}"]'

    classes = class_list(iframe)
    if classes:
        return "iframe" + "".join(f".{css_escape(name)}" for name in classes)

    return f"iframe:nth-of-type({_iframe_position(iframe)})"


def _iframe_position(iframe: Tag) -> int:
    position = 1
    for sibling in iframe.previous_siblings:
        if isinstance(sibling, Tag) and sibling.name == "iframe":
            position += 1
    return position


def enumerate_documents(root: Scope, frames: FrameLoader | None = None) -> list[DocumentContext]:
    loader = frames or FrameLoader()
    contexts = [DocumentContext(document=root)]
    _collect_frames(root, loader, (), (_cache_key(loader.document_url(root)),), contexts)
    return contexts


def _collect_frames(
    scope: Scope,
    loader: FrameLoader,
    frame_path: tuple[str, ...],
    open_urls: tuple[str, ...],
    contexts: list[DocumentContext],
) -> None:
    for index, iframe in enumerate(scope.select("iframe")):
        url = loader.frame_url(iframe)
        key = _cache_key(url) if url is not None else None
        # A frame may not load a document that is already open above it.
        if key is not None and key in open_urls:
            logger.debug("Iframe %s would reopen %s, skipping.", index, url)
            continue
        try:
            document = loader.content_document(iframe)
        except FrameAccessDenied as exc:
            logger.warning("Cannot access iframe %s: %s", index, exc)
            continue
        if document is None:
            logger.debug("Iframe %s has no loaded document, skipping.", index)
            continue

        path = (*frame_path, iframe_selector(iframe, loader.document_url(owner_document(iframe))))
        contexts.append(
            DocumentContext(
                document=document,
                frame_selector=" ".join(path),
                depth=len(path),
                iframe=iframe,
                frame_path=path,
            )
        )
        _collect_frames(document, loader, path, open_urls if key is None else (*open_urls, key), contexts)


def find_element_context(element: Tag, contexts: list[DocumentContext]) -> DocumentContext | None:
    for context in contexts:
        if is_inside(element, context.document):
            return context
    return None


def element_iframe_context(element: Tag, root: Scope, frames: FrameLoader | None = None) -> str:
    context = find_element_context(element, enumerate_documents(root, frames))
    return context.frame_selector if context else ""


def is_element_in_iframe(element: Tag, root: Scope, frames: FrameLoader | None = None) -> bool:
    return bool(element_iframe_context(element, root, frames))
