"""
Cashbox service — the platform-level aggregate ledger.

The cashbox is not a separate table with its own balance logic: it is the
Account with role PLATFORM and the reserved PLATFORM_ACCOUNT_ID. Revenue is
a credit on that account and an expense is a debit, both through
ledger_service, so the cashbox inherits the same row locking, the same
non-negative CHECK constraint and the same before/after ledger invariant as
any user account.

Totals:
  total_revenue is the sum of the platform account's positive ledger rows
  and total_expenses the (absolute) sum of its negative rows. Both are
  derived from the ledger, so balance == total_revenue - total_expenses
  holds by construction.

Revenue rows link back to the user ledger row that produced them through
related_transaction_id.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.exceptions import InsufficientBalanceError, InsufficientCashboxBalanceError
from tmc_ledger.models.account import Account, AccountRole, PLATFORM_ACCOUNT_ID
from tmc_ledger.models.transaction import Transaction, TransactionType
from tmc_ledger.schemas.details import PlatformExpenseDetails, PlatformRevenueDetails
from tmc_ledger.services import ledger_service
from tmc_ledger.services.ledger_service import RelatedIds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CashboxStats:
    account_id: uuid.UUID
    balance: int
    total_revenue: int
    total_expenses: int


async def ensure_cashbox(db: AsyncSession) -> Account:
    """Create the platform account if it doesn't exist yet. Idempotent."""
    result = await db.execute(select(Account).where(Account.id == PLATFORM_ACCOUNT_ID))
    account = result.scalar_one_or_none()
    if account is None:
        account = await ledger_service.open_account(
            db,
            user_id=None,
            role=AccountRole.PLATFORM,
            account_id=PLATFORM_ACCOUNT_ID,
        )
        logger.info("cashbox account %s initialized", PLATFORM_ACCOUNT_ID)
    return account


async def add_revenue(
    db: AsyncSession,
    amount: int,
    description: str,
    related_transaction_id: uuid.UUID | None = None,
) -> int:
    """
    Post revenue to the cashbox.

    Returns:
        The new cashbox balance.
    """
    await ensure_cashbox(db)
    txn = await ledger_service.credit(
        db,
        PLATFORM_ACCOUNT_ID,
        amount,
        description,
        details=PlatformRevenueDetails(source_transaction_id=related_transaction_id),
        related=RelatedIds(related_transaction_id=related_transaction_id),
    )
    return txn.balance_after


async def deduct_expense(
    db: AsyncSession,
    amount: int,
    description: str,
    performed_by: uuid.UUID | None,
    category: str = "server_cost",
) -> int:
    """
    Post an expense (server costs, payouts) against the cashbox.

    Returns:
        The new cashbox balance.

    Raises:
        InsufficientCashboxBalanceError: If the expense exceeds the balance.
            Nothing is written in that case.
    """
    await ensure_cashbox(db)
    try:
        txn = await ledger_service.debit(
            db,
            PLATFORM_ACCOUNT_ID,
            amount,
            description,
            details=PlatformExpenseDetails(category=category),
            related=RelatedIds(performed_by=performed_by),
        )
    except InsufficientBalanceError as exc:
        raise InsufficientCashboxBalanceError(exc.requested, exc.available) from exc

    logger.info("cashbox expense amount=%d by=%s: %s", amount, performed_by, description)
    return txn.balance_after


async def get_stats(db: AsyncSession) -> CashboxStats:
    account = await ensure_cashbox(db)
    result = await db.execute(
        select(
            func.coalesce(
                func.sum(case((Transaction.amount > 0, Transaction.amount), else_=0)), 0
            ),
            func.coalesce(
                func.sum(case((Transaction.amount < 0, -Transaction.amount), else_=0)), 0
            ),
        ).where(Transaction.account_id == PLATFORM_ACCOUNT_ID)
    )
    total_revenue, total_expenses = result.one()
    balance = await ledger_service.get_balance(db, account.id)
    return CashboxStats(
        account_id=account.id,
        balance=balance,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
    )


async def list_cashbox_transactions(
    db: AsyncSession,
    limit: int = 100,
    offset: int = 0,
) -> list[Transaction]:
    """Cashbox movements, newest first."""
    return await ledger_service.list_transactions(
        db, PLATFORM_ACCOUNT_ID, limit=limit, offset=offset
    )


def entry_kind(txn: Transaction) -> str:
    """revenue or expense, as shown to administrators."""
    return "revenue" if txn.type == TransactionType.CREDIT else "expense"
