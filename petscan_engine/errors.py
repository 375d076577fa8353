"""
Error taxonomy shared by every external collaborator and the resolution
pipeline.

Per-source failures are raised as one of these and swallowed by the caller
that owns the fallback loop; only exhaustion of every candidate surfaces to
the outermost caller.
"""

from __future__ import annotations

from typing import Optional


class PetScanError(RuntimeError):
    def __init__(
        self,
        message: str = "",
        source: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.source = source
        self.status_code = status_code

    def __str__(self) -> str:
        if self.source:
            return f"[{self.source}] {self.message}"
        return self.message


class NotFoundError(PetScanError):
    pass


class ProductNotFound(NotFoundError):
    pass


class NoResultsFound(NotFoundError):
    pass


class RateLimited(PetScanError):
    """HTTP 429; callers should back off instead of retrying immediately."""


class InvalidCredentials(PetScanError):
    """HTTP 401/403 from an API; fatal for that source."""


class Blocked(PetScanError):
    """A scraped site answered with an anti-bot status (403/429)."""


class RequestTimeout(PetScanError):
    pass


class NetworkError(PetScanError):
    pass


class DecodingError(PetScanError):
    pass


class ExtractionFailed(PetScanError):
    """The page was fetched but no valid ingredient text could be parsed."""


class AllSourcesExhausted(PetScanError):
    pass


AllSourcesFailed = AllSourcesExhausted


def error_for_status(
    status_code: int, source: str, scraped_site: bool = False
) -> Optional[PetScanError]:
    """
    Map an HTTP status to the taxonomy. Returns None for 2xx.
    Scraped sites report 403/429 as Blocked rather than credential/rate errors.
    """
    if 200 <= status_code < 300:
        return None
    if scraped_site and status_code in (403, 429):
        return Blocked(f"blocked with status {status_code}", source, status_code)
    if status_code == 429:
        return RateLimited("rate limit exceeded", source, status_code)
    if status_code in (401, 403):
        return InvalidCredentials("invalid API key", source, status_code)
    if status_code == 404:
        return NotFoundError("not found", source, status_code)
    return NetworkError(f"unexpected status {status_code}", source, status_code)
