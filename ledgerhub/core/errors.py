from __future__ import annotations


class LedgerHubError(Exception):
    """Base error for LedgerHub.

    ``message`` is safe to return to callers; the root cause travels on
    ``__cause__`` and is only ever logged.
    """

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Forbidden(LedgerHubError):
    """Principal lacks rights on the target resource."""

    code = "AUTH_FORBIDDEN"
    status_code = 403
    default_message = "Not authorized for this resource"


class NotFound(LedgerHubError):
    """Resource id does not resolve."""

    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class UnknownResource(NotFound):
    """Resource id did not resolve while authorizing.

    Rendered exactly like Forbidden so callers cannot probe for existence.
    """

    code = Forbidden.code
    status_code = Forbidden.status_code
    default_message = Forbidden.default_message


class InvalidRequest(LedgerHubError):
    """Malformed creation payload or pagination parameters."""

    code = "INVALID_REQUEST"
    status_code = 400
    default_message = "Invalid request"


class Conflict(LedgerHubError):
    """Domain-level creation conflict."""

    code = "CONFLICT"
    status_code = 409
    default_message = "Conflicting resource state"


class InternalError(LedgerHubError):
    """Storage or transaction failure."""

    default_message = "Internal server error"
