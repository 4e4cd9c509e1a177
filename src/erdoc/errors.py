"""
ERDoc - Request error taxonomy.

Raised by route helpers and the onboarding engine, rendered to JSON by the
handler registered in erdoc.web.app. None of these are retried.
"""


class ERDocError(Exception):
    """Base class for errors surfaced to the requesting page."""

    status_code = 500
    error = "error"
    default_redirect: str | None = None

    def __init__(self, detail: str, redirect_to: str | None = None):
        super().__init__(detail)
        self.detail = detail
        self.redirect_to = redirect_to if redirect_to is not None else self.default_redirect

    def to_dict(self) -> dict:
        return {
            "error": self.error,
            "detail": self.detail,
            "redirect_to": self.redirect_to,
        }


class Unauthorized(ERDocError):
    """No valid identity, or the identity does not own the referenced row."""
    status_code = 401
    error = "unauthorized"
    default_redirect = "/login"


class NotFound(ERDocError):
    """Referenced membership, person or consultation does not exist."""
    status_code = 404
    error = "not_found"
    default_redirect = "/dashboard"


class OutOfSequence(ERDocError):
    """Stage submitted or opened before its prerequisite step was reached."""
    status_code = 409
    error = "out_of_sequence"


class ValidationFailure(ERDocError):
    """Malformed field. Nothing was written."""
    status_code = 400
    error = "validation_failed"


class PersistenceFailure(ERDocError):
    """A database write failed. The member should retry."""
    status_code = 503
    error = "persistence_failed"
