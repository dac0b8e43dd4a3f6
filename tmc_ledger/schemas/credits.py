"""
Pydantic schemas for the credit package catalog and purchase endpoints.

Prices are decimal strings ("9.99") exactly as sent to the payment
provider; credits are integers.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from tmc_ledger.models.purchase_order import OrderStatus


class CreditPackageResponse(BaseModel):
    id: uuid.UUID
    name: str
    credits: int
    bonus_credits: int
    total_credits: int
    price: str
    currency: str
    description: str | None
    is_promotional: bool
    display_order: int

    model_config = {"from_attributes": True}


class CreditPackageCreateRequest(BaseModel):
    """Request body for POST /admin/credit-packages."""
    name: str = Field(min_length=1, max_length=100)
    credits: int = Field(gt=0)
    bonus_credits: int = Field(default=0, ge=0)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    description: str | None = Field(default=None, max_length=255)
    is_promotional: bool = False
    display_order: int = 0


class PurchaseOrderResponse(BaseModel):
    id: uuid.UUID
    external_order_id: str
    account_id: uuid.UUID
    package_id: uuid.UUID | None
    price: str
    currency: str
    credits_amount: int
    status: OrderStatus
    capture_id: str | None
    created_at: datetime
    captured_at: datetime | None

    model_config = {"from_attributes": True}


class CreateOrderRequest(BaseModel):
    """Request body for POST /credits/purchase/create-order."""
    package_id: uuid.UUID


class CreateOrderResponse(BaseModel):
    order_id: str
    package: CreditPackageResponse
    order: PurchaseOrderResponse


class CaptureRequest(BaseModel):
    """Request body for POST /credits/purchase/capture."""
    order_id: str = Field(min_length=1)


class CaptureResponse(BaseModel):
    success: bool
    capture_id: str
    new_balance: int
