"""Exception hierarchy for the matching backend.

Every error raised by this package derives from ``MentorMatchError`` so callers
can catch the whole family at the CLI or service boundary. Errors propagate out
of the component that detects them; nothing here is retried automatically.
"""

from typing import Any


class MentorMatchError(Exception):
    """Base exception for all mentor matching errors.

    Attributes:
        message: Human-readable error description
        context: Optional diagnostic details (ids, sizes, upstream status)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class ConfigurationError(MentorMatchError):
    """Missing credential or invalid setup. Fatal, never retried."""


class DimensionMismatchError(MentorMatchError, ValueError):
    """Vector length disagrees with the dimension agreed with the index."""

    def __init__(self, expected: int, actual: int, subject: str = "vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected {expected} dimensions, got {actual} for {subject}",
            context={"expected": expected, "actual": actual},
        )


class ProviderError(MentorMatchError):
    """Upstream failure from the embedding provider or the vector index."""


class ValidationError(MentorMatchError, ValueError):
    """Caller input rejected before any network call."""


class RecordNotFoundError(MentorMatchError, KeyError):
    """A record expected in the index is absent."""
