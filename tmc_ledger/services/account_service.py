"""
Account service — account-level credit grants outside of purchases.

This module handles:
  - Welcome credits granted once at registration
  - Administrative recharges (manual top-ups, e.g. after a bank transfer)

Both grants are plain credits on the ledger; neither touches the cashbox,
since no money reached the platform through them.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.config import settings
from tmc_ledger.exceptions import LedgerValidationError, PermissionDeniedError
from tmc_ledger.models.transaction import Transaction, TransactionType
from tmc_ledger.schemas.details import PromotionalDetails, RechargeDetails
from tmc_ledger.services import ledger_service
from tmc_ledger.services.ledger_service import RelatedIds

logger = logging.getLogger(__name__)

RECHARGE_METHODS = ("manual", "bank_transfer", "cash", "compensation")


async def grant_promotional_credits(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int | None = None,
    campaign: str = "registration",
) -> Transaction | None:
    """
    Credit the welcome bonus to a new account.

    Returns None when the configured bonus is 0 (promotion switched off).
    """
    credits = settings.PROMOTIONAL_CREDITS if amount is None else amount
    if credits <= 0:
        return None

    txn = await ledger_service.credit(
        db,
        account_id,
        credits,
        "promotional_credits",
        details=PromotionalDetails(campaign=campaign),
    )
    logger.info("granted %d promotional credits to account %s", credits, account_id)
    return txn


async def recharge(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    method: str,
    performed_by: uuid.UUID,
) -> Transaction:
    """
    Top up an account by hand.

    Args:
        db: Database session.
        account_id: Account to credit.
        amount: Positive number of credits.
        method: One of RECHARGE_METHODS; recorded in the reason and details.
        performed_by: The administrator doing the recharge.

    Returns:
        The "recharge" ledger row.

    Raises:
        LedgerValidationError: Unknown method or non-positive amount.
        PermissionDeniedError: Recharging the platform account.
        AccountNotFoundError / AccountInactiveError: For the target account.
    """
    if method not in RECHARGE_METHODS:
        raise LedgerValidationError(
            f"Unknown recharge method {method!r}; expected one of {', '.join(RECHARGE_METHODS)}"
        )
    account = await ledger_service.get_account(db, account_id)
    if account.is_platform:
        raise PermissionDeniedError("The cashbox cannot be recharged; post revenue instead")

    txn = await ledger_service.credit(
        db,
        account_id,
        amount,
        f"recharge:{method}",
        txn_type=TransactionType.RECHARGE,
        details=RechargeDetails(method=method),
        related=RelatedIds(performed_by=performed_by),
    )
    logger.info(
        "admin %s recharged account %s with %d credits via %s",
        performed_by, account_id, amount, method,
    )
    return txn
