"""
Pydantic schemas for admin endpoints: function costs, the cashbox and
commission links.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class FunctionCostResponse(BaseModel):
    function_name: str
    cost_in_credits: int
    description: str | None
    category: str
    is_active: bool
    updated_at: datetime

    model_config = {"from_attributes": True}


class FunctionCostUpdateRequest(BaseModel):
    """Request body for PUT /tmc/function-costs/{function_name}."""
    cost_in_credits: int = Field(ge=0)
    category: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None


class CashboxStatsResponse(BaseModel):
    account_id: uuid.UUID
    balance: int
    total_revenue: int
    total_expenses: int


class CashboxTransactionResponse(BaseModel):
    """One cashbox movement, labelled revenue or expense."""
    id: uuid.UUID
    kind: str
    amount: int
    description: str
    balance_before: int
    balance_after: int
    related_transaction_id: uuid.UUID | None
    performed_by: uuid.UUID | None
    created_at: datetime


class ExpenseRequest(BaseModel):
    """Request body for POST /admin/cashbox/expenses."""
    amount: int = Field(gt=0)
    description: str = Field(min_length=1, max_length=120)
    category: str = Field(default="server_cost", min_length=1, max_length=50)


class ExpenseResponse(BaseModel):
    amount: int
    new_balance: int


class CommissionLinkRequest(BaseModel):
    """Request body for PUT /admin/commission-links/{account_id}."""
    superior_account_id: uuid.UUID
    percentage: int | None = Field(default=None, ge=0, le=100)


class CommissionLinkResponse(BaseModel):
    payee_account_id: uuid.UUID
    superior_account_id: uuid.UUID
    percentage: int

    model_config = {"from_attributes": True}
