"""
Credits router — package catalog and credit purchases.

Endpoints:
  GET  /credits/packages                — Active credit packages (public)
  POST /credits/purchase/create-order   — Open a payment order for a package
  POST /credits/purchase/capture        — Capture the payment, credit the buyer
  GET  /credits/purchase/orders         — The caller's purchase orders, newest first

Capture is idempotent: replaying it for a captured order answers 409
already_captured and credits nothing. When the provider declines the
payment, the order is moved to "failed", that state is committed, and the
caller gets 402 provider_rejected. Any other unconfirmed outcome answers
502 and leaves the order open for a retry.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.database import get_db
from tmc_ledger.dependencies import get_current_account
from tmc_ledger.exceptions import PaymentProviderError, ProviderRejectedError
from tmc_ledger.models.account import Account
from tmc_ledger.payments import PaymentProvider, get_payment_provider
from tmc_ledger.schemas.credits import (
    CaptureRequest,
    CaptureResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    CreditPackageResponse,
    PurchaseOrderResponse,
)
from tmc_ledger.services import catalog_service, purchase_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/packages",
    response_model=list[CreditPackageResponse],
    summary="List credit packages",
)
async def list_packages(db: AsyncSession = Depends(get_db)):
    return await catalog_service.list_packages(db)


@router.post(
    "/purchase/create-order",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a payment order for a credit package",
)
async def create_order(
    request: CreateOrderRequest,
    account: Account = Depends(get_current_account),
    provider: PaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db),
):
    """
    Ask the payment provider for an order at the package's price and record
    it locally with a snapshot of the credits it will grant.

    The returned `order_id` is the provider's id; the client approves the
    payment with the provider, then calls /credits/purchase/capture.
    """
    package = await catalog_service.get_package(db, request.package_id)
    external_order_id = await provider.create_order(package.price, package.currency)
    order = await purchase_service.create_order(db, account.id, package, external_order_id)

    return CreateOrderResponse(
        order_id=order.external_order_id,
        package=CreditPackageResponse.model_validate(package),
        order=PurchaseOrderResponse.model_validate(order),
    )


@router.post(
    "/purchase/capture",
    response_model=CaptureResponse,
    summary="Capture an approved payment and credit the account",
)
async def capture_order(
    request: CaptureRequest,
    account: Account = Depends(get_current_account),
    provider: PaymentProvider = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db),
):
    """
    - **404** order_not_found: unknown order id
    - **409** already_captured: the order was captured before (no credit)
    - **402** provider_rejected: the provider declined; the order is now failed
    - **502** payment_provider_error: no definite answer; the order stays
      open and the call can be retried

    A retry after a capture whose local bookkeeping was rolled back gets
    ORDER_ALREADY_CAPTURED from the provider. The order is then looked up
    at the provider and credited from its recorded capture.
    """
    await purchase_service.get_capturable_order(db, request.order_id, account.id)

    confirmation = await provider.capture_order(request.order_id)
    if confirmation.already_captured:
        logger.info("order %s already captured at the provider, looking it up", request.order_id)
        confirmation = await provider.get_order(request.order_id)

    if confirmation.declined:
        reason = confirmation.error_message or f"Capture status {confirmation.status}"
        await purchase_service.fail_order(db, request.order_id, reason)
        raise ProviderRejectedError(request.order_id, reason)
    if not confirmation.completed:
        logger.warning(
            "capture of %s not confirmed, provider status %s", request.order_id, confirmation.status
        )
        raise PaymentProviderError(f"Payment capture not confirmed (status {confirmation.status})")

    result = await purchase_service.capture_order(
        db,
        request.order_id,
        confirmation.capture_id,
        confirmation.payer,
    )
    return CaptureResponse(
        success=True,
        capture_id=result.order.capture_id,
        new_balance=result.new_balance,
    )


@router.get(
    "/purchase/orders",
    response_model=list[PurchaseOrderResponse],
    summary="List the caller's purchase orders",
)
async def list_orders(
    limit: int = Query(50, ge=1, le=200),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await purchase_service.list_orders(db, account.id, limit=limit)
