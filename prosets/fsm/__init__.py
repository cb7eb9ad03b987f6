"""FSM package for order lifecycle and capability definitions."""

from prosets.fsm.states import (
    AssetStatus,
    OrderStatus,
    PaymentStatus,
    Permission,
    StripeEventType,
    UserRole,
)

__all__ = [
    "AssetStatus",
    "OrderStatus",
    "PaymentStatus",
    "Permission",
    "StripeEventType",
    "UserRole",
]
