"""Models package for database models."""

from prosets.models.user import User
from prosets.models.asset import Asset
from prosets.models.order import Order
from prosets.models.payment import Payment
from prosets.models.download import Download

__all__ = [
    "User",
    "Asset",
    "Order",
    "Payment",
    "Download",
]
