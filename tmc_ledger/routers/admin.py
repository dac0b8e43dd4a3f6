"""
Admin router — platform cashbox, commission links and the package catalog.

All endpoints require the ADMIN role.

Endpoints:
  GET  /admin/cashbox                          — Balance and lifetime totals
  GET  /admin/cashbox/transactions             — Cashbox movements, newest first
  POST /admin/cashbox/expenses                 — Post an expense
  PUT  /admin/commission-links/{account_id}    — Set an account's superior
  POST /admin/credit-packages                  — Add a package to the catalog
  GET  /admin/accounts/{account_id}/balance    — Any account's balance check
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.database import get_db
from tmc_ledger.dependencies import require_admin
from tmc_ledger.models.user import User
from tmc_ledger.schemas.admin import (
    CashboxStatsResponse,
    CashboxTransactionResponse,
    CommissionLinkRequest,
    CommissionLinkResponse,
    ExpenseRequest,
    ExpenseResponse,
)
from tmc_ledger.schemas.credits import CreditPackageCreateRequest, CreditPackageResponse
from tmc_ledger.schemas.ledger import BalanceResponse
from tmc_ledger.services import cashbox_service, catalog_service, commission_service, ledger_service

router = APIRouter()


# ---------------------------------------------------------------------------
# Cashbox
# ---------------------------------------------------------------------------

@router.get(
    "/cashbox",
    response_model=CashboxStatsResponse,
    summary="[Admin] Cashbox balance and totals",
)
async def get_cashbox(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    stats = await cashbox_service.get_stats(db)
    return CashboxStatsResponse(
        account_id=stats.account_id,
        balance=stats.balance,
        total_revenue=stats.total_revenue,
        total_expenses=stats.total_expenses,
    )


@router.get(
    "/cashbox/transactions",
    response_model=list[CashboxTransactionResponse],
    summary="[Admin] Cashbox movements",
)
async def list_cashbox_transactions(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    txns = await cashbox_service.list_cashbox_transactions(db, limit=limit, offset=offset)
    return [
        CashboxTransactionResponse(
            id=txn.id,
            kind=cashbox_service.entry_kind(txn),
            amount=abs(txn.amount),
            description=txn.reason,
            balance_before=txn.balance_before,
            balance_after=txn.balance_after,
            related_transaction_id=txn.related_transaction_id,
            performed_by=txn.performed_by,
            created_at=txn.created_at,
        )
        for txn in txns
    ]


@router.post(
    "/cashbox/expenses",
    response_model=ExpenseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Post a cashbox expense",
)
async def post_expense(
    request: ExpenseRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    - **422** insufficient_cashbox_balance: the expense exceeds the balance;
      nothing is recorded
    """
    new_balance = await cashbox_service.deduct_expense(
        db,
        request.amount,
        request.description,
        performed_by=admin.id,
        category=request.category,
    )
    return ExpenseResponse(amount=request.amount, new_balance=new_balance)


# ---------------------------------------------------------------------------
# Commission links
# ---------------------------------------------------------------------------

@router.put(
    "/commission-links/{account_id}",
    response_model=CommissionLinkResponse,
    summary="[Admin] Set an account's commission superior",
)
async def set_commission_link(
    account_id: uuid.UUID,
    request: CommissionLinkRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """`percentage` defaults to DEFAULT_SUPERIOR_PERCENT when omitted."""
    return await commission_service.set_commission_link(
        db,
        payee_account_id=account_id,
        superior_account_id=request.superior_account_id,
        percentage=request.percentage,
    )


# ---------------------------------------------------------------------------
# Catalog and accounts
# ---------------------------------------------------------------------------

@router.post(
    "/credit-packages",
    response_model=CreditPackageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Create a credit package",
)
async def create_credit_package(
    request: CreditPackageCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.create_package(
        db,
        name=request.name,
        credits=request.credits,
        price=str(request.price),
        bonus_credits=request.bonus_credits,
        currency=request.currency,
        description=request.description,
        is_promotional=request.is_promotional,
        display_order=request.display_order,
    )


@router.get(
    "/accounts/{account_id}/balance",
    response_model=BalanceResponse,
    summary="[Admin] Check any account's balance",
)
async def admin_get_balance(
    account_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await ledger_service.verify_balance(db, account_id)
