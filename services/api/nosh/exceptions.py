"""Exception hierarchy for the NOSH recipe pipeline.

Every error carries the HTTP status it maps to, so routers can raise them
directly and the handler in ``nosh.main`` renders ``{"error": message}``.

    >>> raise ParseError("Failed to parse AI response as JSON", snippet="{oops")
"""


class NoshError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error description
        context: Extra key/value details for logs (upload_id, recipe_id, ...)
    """

    status_code = 500

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ValidationError(NoshError):
    """Required input is missing or malformed. Nothing was written."""

    status_code = 400


class AuthorizationError(NoshError):
    """Caller is not an operator."""

    status_code = 403


class NotFoundError(NoshError):
    status_code = 404


class ConcurrencyConflictError(NoshError):
    """Another worker holds the lock for the same key."""

    status_code = 409


class UpstreamGenerationError(NoshError):
    """The generation capability failed or returned an error status."""

    status_code = 502


class RateLimitedError(UpstreamGenerationError):
    """The generation capability rejected the call with a rate-limit/quota error."""

    status_code = 429


class SourceFetchError(NoshError):
    """A source URL could not be fetched."""

    status_code = 502


class ParseError(NoshError):
    """Generation output could not be parsed or failed schema validation.

    Raised when:
    - The response is not JSON (after stripping code fences)
    - The JSON does not match the expected recipe/card schema
    - Card output violates the card contract (count, success markers)
    """

    status_code = 502


class PersistenceError(NoshError):
    """A database write failed. The session has been rolled back."""

    status_code = 500
