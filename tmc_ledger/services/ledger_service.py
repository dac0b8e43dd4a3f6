"""
Ledger service — credit and debit primitives for every account.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. Every other service (transfers,
commissions, the cashbox, purchases, feature billing) changes balances only
through credit() and debit() below.

Atomicity:
  Each primitive locks the account row, updates the balance and appends the
  Transaction row on the caller's session. Nothing is committed here: the
  unit of work that owns the session (get_db per request, or
  database.unit_of_work()) commits both together or rolls both back.

Concurrency:
  The balance is re-read under SELECT ... FOR UPDATE on every call; there is
  no cached balance anywhere. Two concurrent debits against the same account
  are serialized by the row lock, so the second sees the first's result.
  Operations that touch several accounts call lock_accounts() first, which
  locks in sorted id order so two opposite transfers can't deadlock.

Business failures (InsufficientBalanceError, LedgerValidationError,
AccountInactiveError) are raised before any mutation and leave no rows.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    InsufficientBalanceError,
    LedgerValidationError,
)
from tmc_ledger.models.account import Account, AccountRole
from tmc_ledger.models.transaction import Transaction, TransactionType
from tmc_ledger.schemas.details import dump_details, parse_details

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelatedIds:
    """Optional references a posting can carry besides its account."""
    related_account_id: uuid.UUID | None = None
    related_transaction_id: uuid.UUID | None = None
    external_order_id: str | None = None
    capture_id: str | None = None
    performed_by: uuid.UUID | None = None


_NO_RELATED = RelatedIds()


def _require_positive(amount: int) -> None:
    # bool is an int subclass; True must not count as one credit
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise LedgerValidationError(f"Amount must be a positive integer, got {amount!r}")


async def lock_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Load an account with a row lock held until the unit of work ends.

    populate_existing() refreshes an instance already in the identity map,
    so the balance is never a stale in-memory value.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()  # No-op on SQLite, locks row on PostgreSQL
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def lock_accounts(
    db: AsyncSession, *account_ids: uuid.UUID
) -> dict[uuid.UUID, Account]:
    """
    Lock several accounts in a consistent (sorted) order to prevent deadlocks.

    Returns a mapping of id -> Account. Duplicate ids are locked once.
    """
    locked: dict[uuid.UUID, Account] = {}
    for account_id in sorted(set(account_ids)):
        locked[account_id] = await lock_account(db, account_id)
    return locked


def _append(
    db: AsyncSession,
    account: Account,
    txn_type: TransactionType,
    signed_amount: int,
    reason: str,
    details,
    function_used: str | None,
    related: RelatedIds,
) -> Transaction:
    balance_before = account.balance
    balance_after = balance_before + signed_amount
    # Guarded by the callers; kept here so no code path can write a row that
    # breaks the before/after invariant.
    if balance_after < 0:
        raise InsufficientBalanceError(account.id, -signed_amount, balance_before)

    account.balance = balance_after
    txn = Transaction(
        account_id=account.id,
        type=txn_type,
        amount=signed_amount,
        reason=reason,
        function_used=function_used,
        related_account_id=related.related_account_id,
        related_transaction_id=related.related_transaction_id,
        external_order_id=related.external_order_id,
        capture_id=related.capture_id,
        balance_before=balance_before,
        balance_after=balance_after,
        details=dump_details(details),
        performed_by=related.performed_by,
    )
    db.add(txn)
    return txn


async def credit(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    reason: str,
    *,
    txn_type: TransactionType = TransactionType.CREDIT,
    details=None,
    function_used: str | None = None,
    related: RelatedIds = _NO_RELATED,
) -> Transaction:
    """
    Add credits to an account and append the matching ledger row.

    Args:
        db: Database session (the caller's unit of work).
        account_id: The account to credit.
        amount: Positive number of credits.
        reason: Reason code stored on the ledger row.
        txn_type: credit, recharge, commission or transfer.
        details: Optional typed details (dict or variant), validated first.
        function_used: Optional billable feature name.
        related: Optional counterparty / external references.

    Returns:
        The new Transaction. Its balance_after is the new balance.

    Raises:
        LedgerValidationError: If amount is not positive or details are invalid.
        AccountNotFoundError: If the account doesn't exist.
        AccountInactiveError: If the account has been deactivated.
    """
    _require_positive(amount)
    parsed = parse_details(details)

    account = await lock_account(db, account_id)
    if not account.is_active:
        raise AccountInactiveError(account_id)

    txn = _append(db, account, txn_type, amount, reason, parsed, function_used, related)
    await db.flush()

    logger.info(
        "credit account=%s amount=%d reason=%s balance=%d->%d",
        account_id, amount, reason, txn.balance_before, txn.balance_after,
    )
    return txn


async def debit(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    reason: str,
    *,
    txn_type: TransactionType = TransactionType.DEBIT,
    details=None,
    function_used: str | None = None,
    related: RelatedIds = _NO_RELATED,
) -> Transaction:
    """
    Remove credits from an account and append the matching ledger row.

    The balance check and the decrement happen under the same row lock, so
    two concurrent debits can never both pass against a stale balance.

    Returns:
        The new Transaction (amount is negative).

    Raises:
        LedgerValidationError: If amount is not positive or details are invalid.
        AccountNotFoundError: If the account doesn't exist.
        AccountInactiveError: If the account has been deactivated.
        InsufficientBalanceError: If the balance is lower than amount. No
            row is written and the balance is unchanged.
    """
    _require_positive(amount)
    parsed = parse_details(details)

    account = await lock_account(db, account_id)
    if not account.is_active:
        raise AccountInactiveError(account_id)

    if account.balance < amount:
        logger.warning(
            "debit refused account=%s requested=%d available=%d reason=%s",
            account_id, amount, account.balance, reason,
        )
        raise InsufficientBalanceError(
            account_id=account_id,
            requested=amount,
            available=account.balance,
        )

    txn = _append(db, account, txn_type, -amount, reason, parsed, function_used, related)
    await db.flush()

    logger.info(
        "debit account=%s amount=%d reason=%s balance=%d->%d",
        account_id, amount, reason, txn.balance_before, txn.balance_after,
    )
    return txn


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    result = await db.execute(select(Account).where(Account.id == account_id))
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def get_account_for_user(db: AsyncSession, user_id: uuid.UUID) -> Account:
    result = await db.execute(select(Account).where(Account.user_id == user_id))
    account = result.scalar_one_or_none()
    if account is None:
        raise AccountNotFoundError(None)
    return account


async def get_balance(db: AsyncSession, account_id: uuid.UUID) -> int:
    """Current balance. Pure read, no lock taken."""
    result = await db.execute(
        select(Account.balance)
        .where(Account.id == account_id)
        .execution_options(populate_existing=True)
    )
    balance = result.scalar_one_or_none()
    if balance is None:
        raise AccountNotFoundError(account_id)
    return balance


async def compute_balance_from_ledger(db: AsyncSession, account_id: uuid.UUID) -> int:
    """Sum of every ledger amount for the account (integrity counterpart of balance)."""
    result = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0))
        .where(Transaction.account_id == account_id)
    )
    return result.scalar()


async def verify_balance(db: AsyncSession, account_id: uuid.UUID) -> dict:
    """
    Compare the stored balance with the ledger sum.

    Returns:
        Dict with account_id, balance, computed_balance and match.
    """
    account = await get_account(db, account_id)
    computed = await compute_balance_from_ledger(db, account_id)
    return {
        "account_id": account.id,
        "balance": account.balance,
        "computed_balance": computed,
        "match": account.balance == computed,
    }


async def list_transactions(
    db: AsyncSession,
    account_id: uuid.UUID,
    type_filter: TransactionType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """List an account's ledger rows, newest first."""
    query = (
        select(Transaction)
        .where(Transaction.account_id == account_id)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    if type_filter:
        query = query.where(Transaction.type == type_filter)

    result = await db.execute(query)
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Account lifecycle
# ---------------------------------------------------------------------------

async def open_account(
    db: AsyncSession,
    user_id: uuid.UUID | None,
    role: AccountRole = AccountRole.USER,
    account_id: uuid.UUID | None = None,
) -> Account:
    """Create an empty account. Balances only ever change through the ledger."""
    account = Account(user_id=user_id, role=role, balance=0)
    if account_id is not None:
        account.id = account_id
    db.add(account)
    await db.flush()
    return account


async def deactivate_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    account = await lock_account(db, account_id)
    account.is_active = False
    await db.flush()
    logger.info("account %s deactivated", account_id)
    return account
