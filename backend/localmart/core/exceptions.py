"""
Marketplace error taxonomy.

Services raise these; the handlers installed in ``localmart.main`` turn them
into ``{"error": ..., "code": ...}`` JSON responses.
"""


class MarketplaceError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(MarketplaceError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized"


class Forbidden(MarketplaceError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class NotFound(MarketplaceError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InvalidRequest(MarketplaceError):
    status_code = 400
    code = "invalid_request"
    default_message = "Invalid request"


class InsufficientStock(MarketplaceError):
    status_code = 400
    code = "insufficient_stock"
    default_message = "Insufficient stock"


class InsufficientPoints(MarketplaceError):
    status_code = 400
    code = "insufficient_points"
    default_message = "Insufficient points"


class AlreadyClaimed(MarketplaceError):
    status_code = 400
    code = "already_claimed"
    default_message = "Reward already claimed"


class Conflict(MarketplaceError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class InvalidState(MarketplaceError):
    status_code = 409
    code = "invalid_state"
    default_message = "Invalid state"


class ExternalServiceUnavailable(MarketplaceError):
    """Raised by outbound clients; callers recover locally."""

    status_code = 503
    code = "external_service_unavailable"
    default_message = "External service unavailable"
