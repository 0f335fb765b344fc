"""Error taxonomy for workflow runs."""

from __future__ import annotations


class RevintelError(Exception):
    """Base class for all engine errors."""


class RunValidationError(RevintelError):
    """A run was rejected before contacting any external service."""


class CompletionError(RevintelError):
    """A single completion attempt failed and may be retried."""


class ServiceError(CompletionError):
    """The completion service reported a failure."""


class MalformedResponseError(CompletionError):
    """The service succeeded but returned no usable text."""


class ParseError(CompletionError):
    """The generated text is not JSON or does not match the output schema."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ExhaustedError(RevintelError):
    """Every attempt in the retry budget failed."""

    def __init__(self, attempts: int, last_error: str) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts. Error: {last_error}.")


class RunSupersededError(RevintelError):
    """A newer run replaced this one while it was waiting."""


class PersistenceError(RevintelError):
    """Writing to or reading from the history store failed."""
