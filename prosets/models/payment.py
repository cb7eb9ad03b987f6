"""Payment model - immutable settlement records written by the webhook."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, ForeignKey, Index, Numeric, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from prosets.database import Base
from prosets.fsm.states import PaymentStatus


class Payment(Base):
    """
    Settlement record.
    At most one SUCCEEDED (and one REFUNDED) row per order, enforced by
    partial unique indexes so concurrent webhook deliveries cannot
    double-credit a sale.
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Stripe payment intent id
    stripe_payment_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        Index(
            "uq_payments_order_succeeded",
            "order_id",
            unique=True,
            postgresql_where=text("status = 'SUCCEEDED'"),
            sqlite_where=text("status = 'SUCCEEDED'"),
        ),
        Index(
            "uq_payments_order_refunded",
            "order_id",
            unique=True,
            postgresql_where=text("status = 'REFUNDED'"),
            sqlite_where=text("status = 'REFUNDED'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment {self.stripe_payment_id} status={self.status}>"
