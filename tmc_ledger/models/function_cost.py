"""
FunctionCost model — the price, in credits, of a billable feature.

Looked up by function_name right before a feature is billed. Inactive or
missing entries mean the feature is free.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tmc_ledger.database import Base


class FunctionCost(Base):
    __tablename__ = "function_costs"

    __table_args__ = (
        CheckConstraint("cost_in_credits >= 0", name="ck_function_costs_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    function_name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )

    cost_in_credits: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # consultation, prescription, data_access, ai, admin
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="admin")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
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
