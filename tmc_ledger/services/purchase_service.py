"""
Purchase service — turns captured payments into credits exactly once.

Flow:
  1. create_order(): the payment provider has issued an external order id;
     we store a PurchaseOrder (status "created") with a snapshot of the
     package's credits and price.
  2. The buyer approves the payment with the provider.
  3. capture_order(): given the provider's capture confirmation, mark the
     order "captured", store capture/payer data, credit the buyer and link
     the ledger row back onto the order, all in one unit of work.

Idempotency:
  Capture notifications can arrive more than once. capture_order() locks
  the order row and re-reads its status; a captured order yields
  AlreadyCapturedError without touching anything. The UNIQUE constraints on
  external_order_id and capture_id back this up at the storage layer, and a
  unique violation during capture is reported the same way.

State machine:
    created -> captured   (terminal)
    created -> failed     (terminal, provider rejected)
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.exceptions import (
    AlreadyCapturedError,
    LedgerValidationError,
    OrderNotFoundError,
    PermissionDeniedError,
    ProviderRejectedError,
)
from tmc_ledger.models.credit_package import CreditPackage
from tmc_ledger.models.purchase_order import OrderStatus, PurchaseOrder
from tmc_ledger.models.transaction import Transaction, TransactionType
from tmc_ledger.payments import PayerInfo
from tmc_ledger.schemas.details import PurchaseDetails
from tmc_ledger.services import ledger_service
from tmc_ledger.services.ledger_service import RelatedIds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureResult:
    order: PurchaseOrder
    transaction: Transaction

    @property
    def new_balance(self) -> int:
        return self.transaction.balance_after


async def create_order(
    db: AsyncSession,
    account_id: uuid.UUID,
    package: CreditPackage,
    external_order_id: str,
) -> PurchaseOrder:
    """
    Record a pending purchase of a package.

    The credits and price are copied from the package now, so later catalog
    changes never alter what this order credits.

    Raises:
        LedgerValidationError: If the external order id is empty or reused.
        AccountNotFoundError: If the buyer's account doesn't exist.
    """
    if not external_order_id:
        raise LedgerValidationError("External order id is required")
    await ledger_service.get_account(db, account_id)
    existing = await db.execute(
        select(PurchaseOrder.id).where(PurchaseOrder.external_order_id == external_order_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise LedgerValidationError(f"Order id {external_order_id} is already registered")

    order = PurchaseOrder(
        external_order_id=external_order_id,
        account_id=account_id,
        package_id=package.id,
        price=package.price,
        currency=package.currency,
        credits_amount=package.total_credits,
        status=OrderStatus.CREATED,
    )
    db.add(order)
    await db.flush()

    logger.info(
        "purchase order %s created account=%s credits=%d price=%s %s",
        external_order_id, account_id, order.credits_amount, order.price, order.currency,
    )
    return order


async def _lock_order(db: AsyncSession, external_order_id: str) -> PurchaseOrder:
    result = await db.execute(
        select(PurchaseOrder)
        .where(PurchaseOrder.external_order_id == external_order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError(external_order_id)
    return order


def _ensure_capturable(order: PurchaseOrder) -> None:
    if order.status == OrderStatus.CAPTURED:
        raise AlreadyCapturedError(order.external_order_id, order.capture_id)
    if order.status == OrderStatus.FAILED:
        # Terminal: nothing changes here, so nothing needs committing
        raise ProviderRejectedError(
            order.external_order_id,
            order.error_message or "Order was rejected by the payment provider",
            persist_state=False,
        )


async def get_order(db: AsyncSession, external_order_id: str) -> PurchaseOrder:
    result = await db.execute(
        select(PurchaseOrder).where(PurchaseOrder.external_order_id == external_order_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFoundError(external_order_id)
    return order


async def get_capturable_order(
    db: AsyncSession,
    external_order_id: str,
    account_id: uuid.UUID | None = None,
) -> PurchaseOrder:
    """
    Pre-flight check before asking the provider to capture.

    Raises:
        OrderNotFoundError: Unknown id.
        PermissionDeniedError: The order belongs to another account.
        AlreadyCapturedError: Already captured (duplicate request).
        ProviderRejectedError: Already failed.
    """
    order = await get_order(db, external_order_id)
    if account_id is not None and order.account_id != account_id:
        raise PermissionDeniedError("This purchase order belongs to another account")
    _ensure_capturable(order)
    return order


async def capture_order(
    db: AsyncSession,
    external_order_id: str,
    capture_id: str,
    payer: PayerInfo | None = None,
) -> CaptureResult:
    """
    Apply a capture confirmation to its order and credit the buyer.

    Safe to call repeatedly with the same confirmation: only the first call
    changes anything.

    Returns:
        CaptureResult with the captured order and the credit row.

    Raises:
        OrderNotFoundError: No order for this id.
        AlreadyCapturedError: The order was already captured.
        ProviderRejectedError: The order had already failed.
        LedgerValidationError: Missing capture id.
    """
    if not capture_id:
        raise LedgerValidationError("Capture id is required")
    payer = payer or PayerInfo()

    order = await _lock_order(db, external_order_id)
    _ensure_capturable(order)

    txn = await ledger_service.credit(
        db,
        order.account_id,
        order.credits_amount,
        "purchase",
        txn_type=TransactionType.RECHARGE,
        function_used="credit_purchase",
        details=PurchaseDetails(
            external_order_id=external_order_id,
            capture_id=capture_id,
            package_id=order.package_id,
        ),
        related=RelatedIds(external_order_id=external_order_id, capture_id=capture_id),
    )

    order.status = OrderStatus.CAPTURED
    order.capture_id = capture_id
    order.payer_email = payer.email
    order.payer_id = payer.payer_id
    order.captured_at = datetime.now(timezone.utc)
    order.transaction_id = txn.id
    try:
        await db.flush()
    except IntegrityError as exc:
        # capture_id already used by another order: a replayed confirmation
        raise AlreadyCapturedError(external_order_id, capture_id) from exc

    logger.info(
        "purchase order %s captured capture=%s account=%s credits=%d",
        external_order_id, capture_id, order.account_id, order.credits_amount,
    )
    return CaptureResult(order=order, transaction=txn)


async def fail_order(
    db: AsyncSession,
    external_order_id: str,
    error_message: str | None = None,
) -> PurchaseOrder:
    """
    Move a created order to failed after the provider declined the payment.

    Raises:
        OrderNotFoundError / AlreadyCapturedError: As for capture_order().
    """
    order = await _lock_order(db, external_order_id)
    if order.status == OrderStatus.FAILED:
        return order
    _ensure_capturable(order)

    order.status = OrderStatus.FAILED
    order.error_message = (error_message or "Payment capture was rejected")[:500]
    await db.flush()

    logger.warning("purchase order %s failed: %s", external_order_id, order.error_message)
    return order


async def list_orders(
    db: AsyncSession, account_id: uuid.UUID, limit: int = 50
) -> list[PurchaseOrder]:
    result = await db.execute(
        select(PurchaseOrder)
        .where(PurchaseOrder.account_id == account_id)
        .order_by(PurchaseOrder.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
