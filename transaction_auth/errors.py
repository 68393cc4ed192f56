"""
Domain error taxonomy.

Services raise these; the HTTP layer maps each kind to a
response in one place (see main.py). Every error carries
the status code and a stable machine-readable code so
clients can tell "retry after step-up" from "refresh state".
"""


class TransactionAuthError(Exception):
    """Base class for every error raised by the domain services."""

    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str = "", retry_after: int | None = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.retry_after = retry_after


class ValidationError(TransactionAuthError):
    """Malformed input. Not retried."""
    status_code = 400
    code = "validation_error"


class AuthenticationError(TransactionAuthError):
    """Bad credentials or an unusable bearer token."""
    status_code = 401
    code = "authentication_error"


class InvalidCodeError(AuthenticationError):
    code = "invalid_code"


class TokenExpiredError(AuthenticationError):
    code = "token_expired"


class MalformedTokenError(AuthenticationError):
    code = "token_malformed"


class InvalidSignatureError(AuthenticationError):
    code = "token_signature_invalid"


class AccountLockedError(TransactionAuthError):
    """Temporary lockout. retry_after holds the remaining seconds."""
    status_code = 423
    code = "account_locked"


class StepUpRequiredError(TransactionAuthError):
    """The caller must complete step-up verification, then retry."""
    status_code = 403
    code = "step_up_required"


class AuthorizationError(TransactionAuthError):
    """Role or ownership is insufficient."""
    status_code = 403
    code = "authorization_error"


class NotFoundError(TransactionAuthError):
    status_code = 404
    code = "not_found"


class ConflictError(TransactionAuthError):
    """A state precondition did not hold. Refresh state, do not auto-retry."""
    status_code = 409
    code = "conflict"


class RateLimitError(TransactionAuthError):
    status_code = 429
    code = "rate_limited"


class InternalError(TransactionAuthError):
    """Storage or unexpected failure. Opaque to the caller."""
    status_code = 500
    code = "internal_error"
