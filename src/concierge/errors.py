"""Exception hierarchy shared by the streaming pipeline and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class ConciergeError(Exception):
    """Base class for all errors raised by the concierge service."""


class ConfigurationError(ConciergeError):
    pass


class StreamDecodeError(ConciergeError):
    """A data record from the upstream stream was not valid JSON."""

    def __init__(self, data: str, reason: str) -> None:
        super().__init__(f"Malformed stream payload: {reason}")
        self.data = data
        self.reason = reason


class UpstreamError(ConciergeError):
    """The completion provider could not be reached or dropped the connection."""


class UpstreamStatusError(UpstreamError):
    def __init__(self, status_code: int, reason: str = "", body: Optional[str] = None) -> None:
        super().__init__(f"Upstream returned {status_code} {reason}".strip())
        self.status_code = status_code
        self.reason = reason
        self.body = body


class UnknownVariantError(ConciergeError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown segmenter variant: {name}")
        self.name = name
