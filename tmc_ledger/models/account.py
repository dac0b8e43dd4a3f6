"""
Account model — a credit balance and the owner of a ledger.

Every registered user owns exactly one Account. The platform cashbox is
also an Account, with role PLATFORM and the reserved PLATFORM_ACCOUNT_ID,
so user and platform balances share one set of ledger primitives and one
set of invariants.

Balance management:
  `balance` is an integer number of TMC credits. It is updated in the same
  database transaction as the Transaction row that explains the change, so
  it always equals the sum of the account's ledger amounts.

  A CHECK constraint enforces that the balance can never go negative. The
  ledger service checks before debiting; the constraint is the final safety
  net against bugs or race conditions.

Accounts are never deleted. Deactivating one (is_active=False) blocks any
further ledger mutation while keeping its history.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Integer, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tmc_ledger.database import Base

# Reserved id of the singleton platform (cashbox) account
PLATFORM_ACCOUNT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


class AccountRole(str, enum.Enum):
    USER = "user"
    PLATFORM = "platform"


class Account(Base):
    __tablename__ = "accounts"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_non_negative_balance"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Owner; NULL only for the platform account
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=True,
    )

    role: Mapped[AccountRole] = mapped_column(
        Enum(AccountRole),
        default=AccountRole.USER,
        nullable=False,
    )

    balance: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
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

    # --- Relationships ---
    user: Mapped["User"] = relationship(
        back_populates="account",
    )

    @property
    def is_platform(self) -> bool:
        return self.role == AccountRole.PLATFORM
