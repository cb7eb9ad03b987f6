"""
Order state machine with strict transitions.
"""

import logging
from typing import Dict, FrozenSet

from prosets.exceptions import InvalidTransitionError
from prosets.fsm.states import OrderStatus
from prosets.models.order import Order

logger = logging.getLogger(__name__)


ORDER_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.FAILED}),
    OrderStatus.PAID: frozenset({OrderStatus.REFUNDED}),
    # A declined attempt can be retried inside the same checkout session
    OrderStatus.FAILED: frozenset({OrderStatus.PAID}),
    OrderStatus.REFUNDED: frozenset(),
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Check whether current -> target is an allowed edge."""
    return target in ORDER_TRANSITIONS.get(current, frozenset())


class OrderStateMachine:
    """
    Applies status changes to an Order row.

    Only the payment webhook drives this machine; every other component
    treats order status as read-only.
    """

    def __init__(self, order: Order):
        self.order = order

    @property
    def state(self) -> OrderStatus:
        return OrderStatus(self.order.status)

    def transition(self, target: OrderStatus) -> Order:
        """Move the order to target or raise InvalidTransitionError."""
        current = self.state
        if not can_transition(current, target):
            raise InvalidTransitionError(current.value, target.value)

        self.order.status = target.value
        logger.info(f"Order {self.order.id} state: {current.value} -> {target.value}")
        return self.order
