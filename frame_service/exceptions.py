"""Error types raised by the frame service."""

from typing import Optional


class FrameServiceError(RuntimeError):
    """Base class for fatal-to-the-call frame service errors."""


class NetworkError(FrameServiceError):
    """An HTTP fetch failed and no cached fallback exists."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        detail = f"HTTP {status}" if status is not None else "request failed"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(f"{detail} fetching {url}")


class PropagationError(FrameServiceError):
    """SGP4 could not produce a position for an element set."""

    def __init__(self, element_set, reason: str):
        self.element_set = element_set
        self.reason = reason
        name = getattr(element_set, "name", "") or "<unnamed>"
        line1 = getattr(element_set, "line1", "")
        super().__init__(f"SGP4 returned no position for {name} [{line1}]: {reason}")
