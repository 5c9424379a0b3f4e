"""
Error hierarchy for translate-cms-ai.

Parse and segment errors are recovered inside the content engine. Provider
errors decide the queue's retry policy. Configuration errors fail the
caller synchronously.
"""

from __future__ import annotations


class TranslateCMSError(Exception):
    """Base class for all translate-cms-ai errors."""


class ParseError(TranslateCMSError):
    """A structured payload could not be decoded or walked."""

    def __init__(self, message: str, *, format_name: str | None = None):
        super().__init__(message)
        self.format_name = format_name


class SegmentMismatchError(TranslateCMSError):
    """Translated segments cannot be mapped back onto the extracted blocks."""

    def __init__(self, message: str, *, expected: int = 0, actual: int = 0):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ProviderError(TranslateCMSError):
    """A translation provider failed permanently."""

    def __init__(self, message: str, *, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ProviderQuotaError(ProviderError):
    """A translation provider rejected the request for quota or rate limits."""


class ConfigurationError(TranslateCMSError):
    """Missing credentials, unknown provider, or an invalid request."""


class EntityNotFoundError(ConfigurationError):
    """The requested CMS entity does not exist."""

    def __init__(self, entity_id: int):
        super().__init__(f"Entity not found: {entity_id}")
        self.entity_id = entity_id


class CMSError(TranslateCMSError):
    """The CMS returned an unexpected response."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ContentValidationError(TranslateCMSError):
    """Translated content failed a pre-publish check."""


class TableBalanceError(ContentValidationError):
    """Opening and closing table tags do not match."""

    def __init__(self, opened: int, closed: int):
        super().__init__(
            f"Unbalanced table markup: {opened} <table> vs {closed} </table>"
        )
        self.opened = opened
        self.closed = closed
