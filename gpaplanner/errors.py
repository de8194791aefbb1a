"""
Exception types shared across the package.

Scraping code does not raise these for "no data" situations: a missing page
element or a failed navigation becomes an empty result. Exceptions are used
for broken configuration, broken upstream APIs and bad requests.
"""

from __future__ import annotations

from typing import Any


class GpaPlannerError(Exception):
    """Base class for all package errors."""


class ConfigError(GpaPlannerError):
    """An environment variable could not be interpreted."""


class InvalidCourseCodeError(GpaPlannerError, ValueError):
    """Text did not contain a course code like 'CS 1301'."""


class RetryExhaustedError(GpaPlannerError):
    """A bounded retry loop used up its attempts without a usable result."""

    def __init__(self, label: str, attempts: int, last_error: BaseException | None = None) -> None:
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        msg = f"{label} gave no result after {attempts} attempts"
        if last_error is not None:
            msg += f" (last error: {last_error})"
        super().__init__(msg)


class ScrapeError(GpaPlannerError):
    """A browser page could not be loaded or evaluated."""


class SearchError(GpaPlannerError):
    """The web search provider failed or is not configured."""


class LLMError(GpaPlannerError):
    """The language model call failed or is not configured."""


class LLMResponseError(LLMError):
    """The language model answered, but not in the agreed JSON shape."""


class RequestError(GpaPlannerError):
    """
    A request could not be served.

    Carries an HTTP-like status code so a web layer can map it directly.
    """

    status = 400

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.message}
        out.update({k: v for k, v in self.extra.items() if v is not None})
        return out


class NotFoundError(RequestError):
    status = 404
