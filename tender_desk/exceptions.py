"""Error taxonomy shared by the feed pipeline, the store and the AI boundary."""

from __future__ import annotations


class TenderDeskError(Exception):
    """Base class for all Tender Desk errors."""


class FeedFetchError(TenderDeskError):
    """A feed endpoint answered with a non-2xx status."""

    def __init__(self, url: str, status: int, message: str | None = None):
        self.url = url
        self.status = status
        super().__init__(message or f"HTTP error! status: {status} for URL: {url}")


class FeedRateLimitError(FeedFetchError):
    """The proxy or the feed host answered 429."""

    def __init__(self, url: str):
        super().__init__(
            url,
            429,
            f"Rate limit exceeded for feed: {url}. Please wait before refreshing.",
        )


class AIServiceError(TenderDeskError):
    """A provider call failed for a reason other than credentials."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(message)


class InvalidAPIKeyError(AIServiceError):
    def __init__(self, provider: str):
        super().__init__(
            provider,
            f"The provided API key for {provider} is not valid. Please check it in the settings.",
        )


class AIConfigurationError(AIServiceError):
    """API key or model missing from the AI config."""


class DocumentGenerationError(TenderDeskError):
    """The tender lacks the record a document type needs (invoice, purchase order)."""
