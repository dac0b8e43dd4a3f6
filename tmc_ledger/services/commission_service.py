"""
Commission service — percentage splits of billed amounts.

bill_with_commission() is the core split:

  1. The payer is debited the full amount, which is booked as cashbox revenue.
  2. commission = floor(amount * percent / 100) is credited to the payee as a
     "commission" row whose related_account_id is the payer.

Rounding always floors; the remainder stays in the cashbox and is never
redistributed.

Hierarchy:
  A CommissionLink names an account's superior and the superior's rate.
  bill_consultation() resolves exactly one hop of that link for the
  servicing doctor. It does not walk further up the chain. The superior's
  rate applies to the doctor's commission, so a doctor never passes on
  more than they earned from the bill.

Every account a billing touches is locked up front in sorted id order, so
two billings that share accounts in different roles can't deadlock.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.config import settings
from tmc_ledger.exceptions import LedgerValidationError
from tmc_ledger.models.account import PLATFORM_ACCOUNT_ID
from tmc_ledger.models.commission_link import CommissionLink
from tmc_ledger.models.transaction import Transaction, TransactionType
from tmc_ledger.schemas.details import CommissionDetails
from tmc_ledger.services import billing_service, cashbox_service, ledger_service, transfer_service
from tmc_ledger.services.ledger_service import RelatedIds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommissionResult:
    cashbox_revenue_delta: int
    commission_amount: int
    debit_transaction: Transaction
    commission_transaction: Transaction | None


@dataclass(frozen=True)
class ConsultationBilling:
    commission: CommissionResult
    superior_account_id: uuid.UUID | None
    superior_commission: int


def commission_for(amount: int, percent: int) -> int:
    """floor(amount * percent / 100) in integer arithmetic."""
    return (amount * percent) // 100


def _check_percent(percent: int) -> None:
    if isinstance(percent, bool) or not isinstance(percent, int):
        raise LedgerValidationError(f"Commission percent must be a whole number, got {percent!r}")
    if not 0 <= percent <= 100:
        raise LedgerValidationError(f"Commission percent must be between 0 and 100, got {percent}")


async def bill_with_commission(
    db: AsyncSession,
    payer_id: uuid.UUID,
    payee_id: uuid.UUID,
    amount: int,
    commission_percent: int,
    reason: str,
) -> CommissionResult:
    """
    Bill a payer and route a percentage of the bill to a payee.

    Args:
        db: Database session (the caller's unit of work).
        payer_id: Account paying the full amount.
        payee_id: Account receiving the commission.
        amount: Positive number of credits billed.
        commission_percent: 0-100.
        reason: Reason code; the commission row uses "commission:<reason>".

    Returns:
        CommissionResult with the cashbox revenue delta (always the full
        amount) and the commission actually paid.

    Raises:
        LedgerValidationError: Bad amount or percent, or payer == payee.
        InsufficientBalanceError: The payer can't cover the amount; nothing
            is debited, booked or credited.
        AccountNotFoundError / AccountInactiveError: For either account.
    """
    _check_percent(commission_percent)
    if payer_id == payee_id:
        raise LedgerValidationError("Payer and commission recipient must differ")

    await cashbox_service.ensure_cashbox(db)
    await ledger_service.lock_accounts(db, payer_id, payee_id, PLATFORM_ACCOUNT_ID)

    charge = await billing_service.charge(db, payer_id, amount, reason)

    commission_amount = commission_for(amount, commission_percent)
    commission_txn = None
    if commission_amount > 0:
        commission_txn = await ledger_service.credit(
            db,
            payee_id,
            commission_amount,
            f"commission:{reason}",
            txn_type=TransactionType.COMMISSION,
            details=CommissionDetails(
                payer_account_id=payer_id,
                commission_percent=commission_percent,
                original_amount=amount,
            ),
            related=RelatedIds(
                related_account_id=payer_id,
                related_transaction_id=charge.transaction.id,
            ),
        )

    logger.info(
        "billed payer=%s amount=%d payee=%s commission=%d (%d%%) reason=%s",
        payer_id, amount, payee_id, commission_amount, commission_percent, reason,
    )
    return CommissionResult(
        cashbox_revenue_delta=amount,
        commission_amount=commission_amount,
        debit_transaction=charge.transaction,
        commission_transaction=commission_txn,
    )


# ---------------------------------------------------------------------------
# Commission links
# ---------------------------------------------------------------------------

async def get_commission_link(
    db: AsyncSession, account_id: uuid.UUID
) -> CommissionLink | None:
    """The account's single superior link, if any."""
    result = await db.execute(
        select(CommissionLink).where(CommissionLink.payee_account_id == account_id)
    )
    return result.scalar_one_or_none()


async def set_commission_link(
    db: AsyncSession,
    payee_account_id: uuid.UUID,
    superior_account_id: uuid.UUID,
    percentage: int | None = None,
) -> CommissionLink:
    """
    Create or replace an account's superior link.

    Raises:
        LedgerValidationError: Self-link or percentage out of range.
        AccountNotFoundError: If either account doesn't exist.
    """
    if payee_account_id == superior_account_id:
        raise LedgerValidationError("An account cannot be its own superior")
    rate = settings.DEFAULT_SUPERIOR_PERCENT if percentage is None else percentage
    _check_percent(rate)

    await ledger_service.get_account(db, payee_account_id)
    await ledger_service.get_account(db, superior_account_id)

    link = await get_commission_link(db, payee_account_id)
    if link is None:
        link = CommissionLink(
            payee_account_id=payee_account_id,
            superior_account_id=superior_account_id,
            percentage=rate,
        )
        db.add(link)
    else:
        link.superior_account_id = superior_account_id
        link.percentage = rate
    await db.flush()
    return link


async def bill_consultation(
    db: AsyncSession,
    payer_id: uuid.UUID,
    doctor_id: uuid.UUID,
    amount: int,
    reason: str = "consultation",
) -> ConsultationBilling:
    """
    Bill a patient for a doctor's service.

    The doctor earns DOCTOR_COMMISSION_PERCENT of the bill. If the doctor
    has a superior link, the superior then receives link.percentage of the
    doctor's commission, transferred from the doctor. One hop only.
    """
    link = await get_commission_link(db, doctor_id)
    lock_ids = [payer_id, doctor_id]
    if link is not None:
        lock_ids.append(link.superior_account_id)
    await cashbox_service.ensure_cashbox(db)
    await ledger_service.lock_accounts(db, *lock_ids, PLATFORM_ACCOUNT_ID)

    result = await bill_with_commission(
        db, payer_id, doctor_id, amount, settings.DOCTOR_COMMISSION_PERCENT, reason
    )

    superior_commission = 0
    if link is not None and link.superior_account_id != payer_id:
        superior_commission = commission_for(result.commission_amount, link.percentage)
        if superior_commission > 0:
            await transfer_service.transfer(
                db,
                doctor_id,
                link.superior_account_id,
                superior_commission,
                f"commission:{reason}",
                note=f"{link.percentage}% superior share",
            )

    return ConsultationBilling(
        commission=result,
        superior_account_id=link.superior_account_id if link else None,
        superior_commission=superior_commission,
    )
