"""
Transaction model — the append-only credit ledger.

Every balance change creates exactly one Transaction row:

  - credit / recharge / commission: positive amount, money into the account
  - debit: negative amount, money out of the account
  - transfer: one negative row on the sender and one positive row on the
    receiver, each pointing at the other account (related_account_id);
    the receiving leg also points at the sending leg (related_transaction_id)

Key fields:
  - amount: Signed integer credits (debits are negative)
  - balance_before / balance_after: The account balance around this row.
    balance_after - balance_before == amount always holds, enforced both
    by a CHECK constraint and by the ledger service.
  - reason: Short reason code ("consultation", "purchase", "commission:...")
  - details: Typed metadata validated by tmc_ledger.schemas.details
  - related_transaction_id: For cashbox revenue rows, the user debit that
    produced the revenue; for a transfer credit leg, its debit leg.

Immutability:
  Rows are never updated or deleted once flushed. The mapper events below
  reject both at the ORM level, so a bug cannot silently rewrite history.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from tmc_ledger.database import Base


class TransactionType(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    TRANSFER = "transfer"
    RECHARGE = "recharge"
    COMMISSION = "commission"


class Transaction(Base):
    __tablename__ = "tmc_transactions"

    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_tmc_transactions_nonzero_amount"),
        CheckConstraint(
            "balance_after - balance_before = amount",
            name="ck_tmc_transactions_balance_delta",
        ),
        CheckConstraint("balance_after >= 0", name="ck_tmc_transactions_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
    )

    # Which feature was used (for feature billing)
    function_used: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Counterparty for transfers and commissions
    related_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
        index=True,
    )

    related_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("tmc_transactions.id"),
        nullable=True,
        index=True,
    )

    # External payment references (purchases only)
    external_order_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    capture_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    balance_before: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    balance_after: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # "metadata" is reserved on declarative classes
    details: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    # User who initiated an administrative posting (recharges, expenses)
    performed_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    # Indexed for ordered history queries
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )


class ImmutableTransactionError(RuntimeError):
    """Raised when code tries to modify or delete a ledger row."""


@event.listens_for(Transaction, "before_update")
def _reject_update(mapper, connection, target: Transaction) -> None:
    raise ImmutableTransactionError(f"Transaction {target.id} is append-only")


@event.listens_for(Transaction, "before_delete")
def _reject_delete(mapper, connection, target: Transaction) -> None:
    raise ImmutableTransactionError(f"Transaction {target.id} is append-only")
