"""
TMC router — the caller's balance and ledger, transfers, recharges and the
function cost registry.

Endpoints:
  GET  /tmc/balance                          — Balance with ledger cross-check
  GET  /tmc/transactions                     — Caller's ledger, newest first
  POST /tmc/transfer                         — Move credits to another account
  POST /tmc/recharge                         — [Admin] Manual top-up
  GET  /tmc/function-costs                   — [Admin] Prices of billable features
  GET  /tmc/function-costs/{function_name}   — [Admin] One feature's price (404 if unknown)
  PUT  /tmc/function-costs/{function_name}   — [Admin] Set a feature's price

The sender of a transfer is always the authenticated user's own account,
so no ownership check on a body field is needed.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tmc_ledger.database import get_db
from tmc_ledger.dependencies import get_current_account, get_current_user, require_admin
from tmc_ledger.models.account import Account
from tmc_ledger.models.transaction import TransactionType
from tmc_ledger.models.user import User
from tmc_ledger.schemas.admin import FunctionCostResponse, FunctionCostUpdateRequest
from tmc_ledger.schemas.ledger import (
    BalanceResponse,
    RechargeRequest,
    RechargeResponse,
    TransactionResponse,
    TransferRequest,
    TransferResponse,
)
from tmc_ledger.services import account_service, function_cost_service, ledger_service, transfer_service

router = APIRouter()


@router.get(
    "/balance",
    response_model=BalanceResponse,
    summary="Get the caller's credit balance",
)
async def get_balance(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Returns the stored balance and the sum of the account's ledger rows.
    `match` is false only if the two have drifted apart.
    """
    return await ledger_service.verify_balance(db, account.id)


@router.get(
    "/transactions",
    response_model=list[TransactionResponse],
    summary="List the caller's ledger rows",
)
async def list_transactions(
    type: TransactionType | None = Query(None, description="Filter by transaction type"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger_service.list_transactions(
        db, account.id, type_filter=type, limit=limit, offset=offset
    )


@router.post(
    "/transfer",
    response_model=TransferResponse,
    summary="Transfer credits to another account",
)
async def create_transfer(
    request: TransferRequest,
    user: User = Depends(get_current_user),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Atomic: both legs are written or neither is.

    - **422** insufficient_balance: the caller can't cover the amount
    - **400** validation_error: transfer to the caller's own account
    - **404** account_not_found: unknown recipient
    """
    result = await transfer_service.transfer(
        db,
        from_account_id=account.id,
        to_account_id=request.to_account_id,
        amount=request.amount,
        reason=request.reason,
        note=request.note,
        performed_by=user.id,
    )

    return TransferResponse(
        from_account_id=account.id,
        to_account_id=request.to_account_id,
        amount=request.amount,
        from_balance=result.from_balance,
        to_balance=result.to_balance,
        debit_transaction=TransactionResponse.model_validate(result.debit_transaction),
        credit_transaction=TransactionResponse.model_validate(result.credit_transaction),
    )


@router.post(
    "/recharge",
    response_model=RechargeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Recharge an account",
)
async def recharge(
    request: RechargeRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    txn = await account_service.recharge(
        db,
        account_id=request.account_id,
        amount=request.amount,
        method=request.method,
        performed_by=admin.id,
    )
    return RechargeResponse(
        account_id=request.account_id,
        new_balance=txn.balance_after,
        transaction=TransactionResponse.model_validate(txn),
    )


@router.get(
    "/function-costs",
    response_model=list[FunctionCostResponse],
    summary="[Admin] List billable feature prices",
)
async def list_function_costs(
    include_inactive: bool = Query(False),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await function_cost_service.list_costs(db, include_inactive=include_inactive)


@router.get(
    "/function-costs/{function_name}",
    response_model=FunctionCostResponse,
    summary="[Admin] Get one billable feature's price",
)
async def get_function_cost(
    function_name: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await function_cost_service.require_function(db, function_name)


@router.put(
    "/function-costs/{function_name}",
    response_model=FunctionCostResponse,
    summary="[Admin] Set a billable feature's price",
)
async def set_function_cost(
    function_name: str,
    request: FunctionCostUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Creates the entry if it doesn't exist. Takes effect on the next lookup."""
    return await function_cost_service.set_cost(
        db,
        function_name,
        request.cost_in_credits,
        updated_by=admin.id,
        category=request.category,
        description=request.description,
        is_active=request.is_active,
    )
