from __future__ import annotations


class TargetFinderError(Exception):
    pass


class SelectorNotFound(TargetFinderError):
    """No unique selector could be built within the configured search effort."""


class UnanchorableElement(TargetFinderError):
    """Every selector profile failed for the element, so it cannot be located later."""


class FrameAccessDenied(TargetFinderError):
    def __init__(self, src: str, reason: str = "cross-origin frame") -> None:
        super().__init__(f"{reason}: {src}")
        self.src = src
        self.reason = reason
