"""
PurchaseOrder model — a credit purchase awaiting payment capture.

Lifecycle:
    created ──capture confirmed──> captured   (terminal)
       └─────provider rejected───> failed     (terminal)

The external order id is issued by the payment provider and doubles as the
idempotency key for capture notifications. It carries a UNIQUE constraint,
as does capture_id, so a duplicate capture is refused by the storage layer
even if the application-level status check were bypassed.

credits_amount, price and currency are snapshots taken at order creation;
later catalog edits never change what an existing order pays or credits.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tmc_ledger.database import Base


class OrderStatus(str, enum.Enum):
    CREATED = "created"
    CAPTURED = "captured"
    FAILED = "failed"


class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"

    __table_args__ = (
        CheckConstraint("credits_amount > 0", name="ck_purchase_orders_positive_credits"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    external_order_id: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    package_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("credit_packages.id"),
        nullable=True,
    )

    # Decimal string, e.g. "19.90"
    price: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    credits_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus),
        nullable=False,
        default=OrderStatus.CREATED,
    )

    capture_id: Mapped[str | None] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
    )
    payer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # The credit row written when the order was captured
    transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("tmc_transactions.id"),
        nullable=True,
    )

    captured_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )