from __future__ import annotations


class AgencySearchError(RuntimeError):
    """Base error for a discovery request that cannot produce any result."""


class UpstreamUnavailableError(AgencySearchError):
    """The award search API could not be reached at all."""

    def __init__(self, url: str, cause: Exception | None = None) -> None:
        super().__init__(f"Award search failed: {url} is unreachable ({cause})")
        self.url = url
        self.cause = cause
