"""
CreditPackage model — a purchasable bundle of credits.

A package grants `credits + bonus_credits` for `price` in `currency`.
Prices are decimal strings so they round-trip exactly; they are only ever
passed to the payment provider, never used in ledger arithmetic.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tmc_ledger.database import Base


class CreditPackage(Base):
    __tablename__ = "credit_packages"

    __table_args__ = (
        CheckConstraint("credits > 0", name="ck_credit_packages_positive_credits"),
        CheckConstraint("bonus_credits >= 0", name="ck_credit_packages_bonus"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    bonus_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_promotional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

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

    @property
    def total_credits(self) -> int:
        return self.credits + (self.bonus_credits or 0)
