"""
Transfer service — atomic movement of credits between two accounts.

A transfer writes TWO ledger rows of type "transfer": a negative row on the
sender and a positive row on the receiver. Each row names the other account
in related_account_id, and the receiving row points at the sending row via
related_transaction_id, so either leg leads to its pair.

Both legs are written on the caller's session. If anything after the first
leg fails, the unit of work rolls back and neither leg survives.

Deadlock prevention:
  Both accounts are locked up front in sorted id order, so concurrent
  transfers A->B and B->A always acquire their locks in the same order.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.exceptions import InsufficientBalanceError, LedgerValidationError
from tmc_ledger.models.transaction import Transaction, TransactionType
from tmc_ledger.schemas.details import TransferDetails
from tmc_ledger.services import ledger_service
from tmc_ledger.services.ledger_service import RelatedIds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferResult:
    debit_transaction: Transaction
    credit_transaction: Transaction

    @property
    def from_balance(self) -> int:
        return self.debit_transaction.balance_after

    @property
    def to_balance(self) -> int:
        return self.credit_transaction.balance_after


async def transfer(
    db: AsyncSession,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount: int,
    reason: str,
    note: str | None = None,
    performed_by: uuid.UUID | None = None,
) -> TransferResult:
    """
    Move credits from one account to another as one atomic unit.

    Args:
        db: Database session (the caller's unit of work).
        from_account_id: Sender.
        to_account_id: Receiver.
        amount: Positive number of credits.
        reason: Reason code stored on both legs.
        note: Optional free-text note kept in the rows' details.
        performed_by: User who initiated the transfer, if any.

    Returns:
        TransferResult with both legs and the resulting balances.

    Raises:
        LedgerValidationError: Self-transfer or non-positive amount.
        AccountNotFoundError: If either account doesn't exist.
        AccountInactiveError: If either account is deactivated.
        InsufficientBalanceError: If the sender can't cover the amount.
    """
    if from_account_id == to_account_id:
        raise LedgerValidationError("Cannot transfer to the same account")

    accounts = await ledger_service.lock_accounts(db, from_account_id, to_account_id)
    sender = accounts[from_account_id]
    if sender.balance < amount:
        raise InsufficientBalanceError(from_account_id, amount, sender.balance)

    details = TransferDetails(note=note)

    debit_txn = await ledger_service.debit(
        db,
        from_account_id,
        amount,
        reason,
        txn_type=TransactionType.TRANSFER,
        details=details,
        function_used="transfer",
        related=RelatedIds(related_account_id=to_account_id, performed_by=performed_by),
    )
    credit_txn = await ledger_service.credit(
        db,
        to_account_id,
        amount,
        reason,
        txn_type=TransactionType.TRANSFER,
        details=details,
        function_used="transfer",
        related=RelatedIds(
            related_account_id=from_account_id,
            related_transaction_id=debit_txn.id,
            performed_by=performed_by,
        ),
    )

    logger.info(
        "transfer %s -> %s amount=%d reason=%s",
        from_account_id, to_account_id, amount, reason,
    )
    return TransferResult(debit_transaction=debit_txn, credit_transaction=credit_txn)
