from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError

from .documents import FrameLoader, same_origin
from .dom import css_path
from .models import FinderResult, Target
from .resolver import resolve

if TYPE_CHECKING:
    from playwright.sync_api import ElementHandle, Page

logger = logging.getLogger("targetfinder.playwright")


@dataclass(slots=True)
class PageSnapshot:
    url: str
    document: BeautifulSoup
    frames: FrameLoader


def capture_page(page: Page) -> PageSnapshot:
    page_url = page.url
    main_frame = page.main_frame
    sources: dict[str, str] = {}

    for frame in page.frames:
        if frame is main_frame:
            continue
        frame_url = frame.url or ""
        if not frame_url or frame_url.startswith("about:"):
            continue
        if not same_origin(page_url, frame_url):
            logger.info("Skipping cross-origin frame %s", frame_url)
            continue
        try:
            sources[frame_url] = frame.content()
        except PlaywrightError as exc:
            logger.warning("Failed to read frame %s: %s", frame_url, exc)

    frames = FrameLoader(base_url=page_url, sources=sources)
    document = frames.load_root(page.content())
    return PageSnapshot(url=page_url, document=document, frames=frames)


def locate_element(page: Page, result: FinderResult) -> ElementHandle | None:
    scope = page
    for selector in result.frame_path:
        scope = scope.frame_locator(selector)

    locator = scope.locator(css_path(result.element))
    try:
        if locator.count() == 0:
            return None
        return locator.first.element_handle()
    except PlaywrightError as exc:
        logger.warning("Failed to map resolved element back to the page: %s", exc)
        return None


def resolve_on_page(page: Page, target: Target) -> ElementHandle | None:
    snapshot = capture_page(page)
    result = resolve(target, snapshot.document, snapshot.frames)
    if result is None:
        return None
    return locate_element(page, result)
