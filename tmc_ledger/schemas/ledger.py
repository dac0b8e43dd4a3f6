"""
Pydantic schemas for balance, ledger, transfer and recharge endpoints.

All amounts are whole credits (integers). Debits carry a negative amount.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from tmc_ledger.models.transaction import TransactionType
from tmc_ledger.services.account_service import RECHARGE_METHODS


class BalanceResponse(BaseModel):
    """GET /tmc/balance: stored balance next to the ledger-derived one."""
    account_id: uuid.UUID
    balance: int
    computed_balance: int
    match: bool


class TransactionResponse(BaseModel):
    """Public representation of a ledger row."""
    id: uuid.UUID
    account_id: uuid.UUID
    type: TransactionType
    amount: int
    reason: str
    function_used: str | None
    related_account_id: uuid.UUID | None
    related_transaction_id: uuid.UUID | None
    external_order_id: str | None
    capture_id: str | None
    balance_before: int
    balance_after: int
    details: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransferRequest(BaseModel):
    """Request body for POST /tmc/transfer. The sender is always the caller."""
    to_account_id: uuid.UUID
    amount: int = Field(gt=0, description="Credits to move (must be positive)")
    reason: str = Field(default="transfer", min_length=1, max_length=120)
    note: str | None = Field(default=None, max_length=255)


class TransferResponse(BaseModel):
    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    amount: int
    from_balance: int
    to_balance: int
    debit_transaction: TransactionResponse
    credit_transaction: TransactionResponse


class RechargeRequest(BaseModel):
    """Request body for POST /tmc/recharge (admin)."""
    account_id: uuid.UUID
    amount: int = Field(gt=0)
    method: str = Field(default="manual", description=f"One of {', '.join(RECHARGE_METHODS)}")


class RechargeResponse(BaseModel):
    account_id: uuid.UUID
    new_balance: int
    transaction: TransactionResponse
