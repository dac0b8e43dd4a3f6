"""
Billing service — revenue-bearing debits for platform features.

External collaborators (consultations, AI usage, messaging, document
signing) bill users through these functions. A charge is a ledger debit
on the user plus the same amount posted as cashbox revenue, linked to the
debit row, in the caller's unit of work. The user and the cashbox are
locked together in sorted id order, like every multi-account operation.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.models.account import PLATFORM_ACCOUNT_ID
from tmc_ledger.models.transaction import Transaction
from tmc_ledger.schemas.details import FeatureUsageDetails
from tmc_ledger.services import cashbox_service, function_cost_service, ledger_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeResult:
    amount: int
    new_balance: int
    cashbox_balance: int | None
    transaction: Transaction | None

    @property
    def free(self) -> bool:
        return self.transaction is None


async def charge(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    reason: str,
    function_used: str | None = None,
    details=None,
) -> ChargeResult:
    """
    Debit a user and book the amount as platform revenue.

    Raises:
        InsufficientBalanceError: Nothing is debited or booked.
    """
    await cashbox_service.ensure_cashbox(db)
    await ledger_service.lock_accounts(db, account_id, PLATFORM_ACCOUNT_ID)

    txn = await ledger_service.debit(
        db,
        account_id,
        amount,
        reason,
        details=details,
        function_used=function_used,
    )
    cashbox_balance = await cashbox_service.add_revenue(
        db, amount, reason, related_transaction_id=txn.id
    )
    return ChargeResult(
        amount=amount,
        new_balance=txn.balance_after,
        cashbox_balance=cashbox_balance,
        transaction=txn,
    )


async def charge_for_function(
    db: AsyncSession,
    account_id: uuid.UUID,
    function_name: str,
    appointment_id: uuid.UUID | None = None,
    medical_record_id: uuid.UUID | None = None,
) -> ChargeResult:
    """
    Bill one use of a registered feature at its current price.

    A price of 0 (unknown, inactive or explicitly free) writes nothing.
    """
    cost = await function_cost_service.get_cost(db, function_name)
    if cost == 0:
        balance = await ledger_service.get_balance(db, account_id)
        logger.debug("function %s is free for account %s", function_name, account_id)
        return ChargeResult(amount=0, new_balance=balance, cashbox_balance=None, transaction=None)

    return await charge(
        db,
        account_id,
        cost,
        function_name,
        function_used=function_name,
        details=FeatureUsageDetails(
            function_used=function_name,
            appointment_id=appointment_id,
            medical_record_id=medical_record_id,
        ),
    )
