"""
CommissionLink model — who earns a share of an account's commissions.

A link points from a payee account (typically a doctor) to a "superior"
account and carries the percentage the superior receives. It is a plain
lookup reference: deleting or deactivating either account does not touch
the other, and each payee has at most one link (single hop).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tmc_ledger.database import Base


class CommissionLink(Base):
    __tablename__ = "commission_links"

    __table_args__ = (
        CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="ck_commission_links_percentage_range",
        ),
        CheckConstraint(
            "payee_account_id <> superior_account_id",
            name="ck_commission_links_not_self",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    payee_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        unique=True,
        nullable=False,
    )

    superior_account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    percentage: Mapped[int] = mapped_column(Integer, nullable=False)

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
