"""
State Definitions.
Roles, capabilities and the lifecycle enums for assets, orders and payments.
"""

from enum import Enum
from typing import Dict, FrozenSet


class UserRole(str, Enum):
    """Account role as stored on the user row."""

    CLIENT = "CLIENT"
    VENDOR = "VENDOR"
    ADMIN = "ADMIN"


class Permission(str, Enum):
    """
    Capabilities checked by the API layer.
    Services never look at role literals, only at these.
    """

    CAN_SELL = "CAN_SELL"
    CAN_ADMINISTER = "CAN_ADMINISTER"


ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[Permission]] = {
    UserRole.CLIENT: frozenset(),
    UserRole.VENDOR: frozenset({Permission.CAN_SELL}),
    UserRole.ADMIN: frozenset({Permission.CAN_SELL, Permission.CAN_ADMINISTER}),
}


def permissions_for(role: str) -> FrozenSet[Permission]:
    """Resolve the capability set of a stored role value."""
    try:
        return ROLE_PERMISSIONS[UserRole(role)]
    except ValueError:
        return frozenset()


class AssetStatus(str, Enum):
    """Whether an asset can currently be bought."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class OrderStatus(str, Enum):
    """
    Order lifecycle.
    PENDING is the only state checkout creates; the payment webhook
    moves it forward.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    @property
    def is_settled(self) -> bool:
        """Funds were captured; a further checkout completion is a replay."""
        return self in (OrderStatus.PAID, OrderStatus.REFUNDED)


class PaymentStatus(str, Enum):
    """Status of an immutable payment record."""

    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class StripeEventType(str, Enum):
    """Stripe webhook events the settlement machine understands."""

    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    CHARGE_REFUNDED = "charge.refunded"
