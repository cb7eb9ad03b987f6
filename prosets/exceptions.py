"""
Typed errors raised by the service layer.

Each error carries the HTTP status it maps to; the handler registered in
prosets.main turns them into JSON responses.
"""


class MarketplaceError(Exception):
    """Base class for every classified error."""

    status_code: int = 500
    default_detail: str = "Internal Server Error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(MarketplaceError):
    status_code = 404
    default_detail = "Not found"


class ForbiddenError(MarketplaceError):
    status_code = 403
    default_detail = "Forbidden"


class UnauthorizedError(MarketplaceError):
    status_code = 401
    default_detail = "Invalid token"


class ConflictError(MarketplaceError):
    status_code = 409
    default_detail = "Conflict"


class RateLimitExceededError(ConflictError):
    """Download rate limit reached for a (user, asset) pair."""

    def __init__(self, detail: str = None, current_count: int = 0, limit: int = 0):
        super().__init__(detail or "Download limit exceeded")
        self.current_count = current_count
        self.limit = limit


class BadRequestError(MarketplaceError):
    status_code = 400
    default_detail = "Bad request"


class WebhookSignatureError(BadRequestError):
    default_detail = "Invalid webhook signature"


class ExternalServiceError(MarketplaceError):
    """Object store or payment gateway call failed. Retryable by the caller."""

    status_code = 502
    default_detail = "Upstream service error"


class ExternalServiceTimeoutError(ExternalServiceError):
    status_code = 504
    default_detail = "Upstream service timed out"


class InvalidTransitionError(MarketplaceError):
    """An order was asked to move to a state its current state cannot reach."""

    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid order transition {current} -> {target}")
        self.current = current
        self.target = target
