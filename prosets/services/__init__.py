"""Services package."""

from prosets.services.user_service import UserService
from prosets.services.identity_service import IdentityService, IdentityProfile
from prosets.services.entitlement_service import EntitlementService
from prosets.services.rate_limiter import RateLimiter, RateLimitResult
from prosets.services.storage_service import StorageService
from prosets.services.stripe_service import StripeService
from prosets.services.download_service import DownloadService
from prosets.services.checkout_service import CheckoutService
from prosets.services.payment_webhook_service import PaymentWebhookService
from prosets.services.refund_service import RefundService

__all__ = [
    "UserService",
    "IdentityService",
    "IdentityProfile",
    "EntitlementService",
    "RateLimiter",
    "RateLimitResult",
    "StorageService",
    "StripeService",
    "DownloadService",
    "CheckoutService",
    "PaymentWebhookService",
    "RefundService",
]
