"""
Typed details attached to ledger rows.

Each ledger posting may carry a details object describing where it came
from. Instead of an open dict, details are a tagged union keyed by `kind`;
every variant declares its required fields and is validated before any
row is written:

    promotional       welcome credits at registration
    feature_usage     a billable feature (function_used, related record ids)
    transfer          member-to-member transfer (optional note)
    commission        commission credit (payer, percent, original amount)
    purchase          captured purchase order (order, capture, package)
    recharge          administrative top-up (method)
    platform_revenue  cashbox revenue (source ledger row)
    platform_expense  cashbox expense (category)

Rows store the variant's JSON form in Transaction.details.
"""

import uuid
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from tmc_ledger.exceptions import LedgerValidationError


class _Details(BaseModel):
    model_config = {"extra": "forbid", "frozen": True}


class PromotionalDetails(_Details):
    kind: Literal["promotional"] = "promotional"
    campaign: str = "registration"


class FeatureUsageDetails(_Details):
    kind: Literal["feature_usage"] = "feature_usage"
    function_used: str = Field(min_length=1)
    appointment_id: uuid.UUID | None = None
    medical_record_id: uuid.UUID | None = None


class TransferDetails(_Details):
    kind: Literal["transfer"] = "transfer"
    note: str | None = None


class CommissionDetails(_Details):
    kind: Literal["commission"] = "commission"
    payer_account_id: uuid.UUID
    commission_percent: int = Field(ge=0, le=100)
    original_amount: int = Field(gt=0)


class PurchaseDetails(_Details):
    kind: Literal["purchase"] = "purchase"
    external_order_id: str = Field(min_length=1)
    capture_id: str = Field(min_length=1)
    package_id: uuid.UUID | None = None


class RechargeDetails(_Details):
    kind: Literal["recharge"] = "recharge"
    method: str = Field(min_length=1)


class PlatformRevenueDetails(_Details):
    kind: Literal["platform_revenue"] = "platform_revenue"
    source_transaction_id: uuid.UUID | None = None


class PlatformExpenseDetails(_Details):
    kind: Literal["platform_expense"] = "platform_expense"
    category: str = "server_cost"


TransactionDetails = Annotated[
    Union[
        PromotionalDetails,
        FeatureUsageDetails,
        TransferDetails,
        CommissionDetails,
        PurchaseDetails,
        RechargeDetails,
        PlatformRevenueDetails,
        PlatformExpenseDetails,
    ],
    Field(discriminator="kind"),
]

_adapter = TypeAdapter(TransactionDetails)


def parse_details(raw: dict | BaseModel | None):
    """
    Validate raw details into their typed variant.

    Accepts an already-built variant, a dict with a `kind` key, or None.

    Raises:
        LedgerValidationError: If the kind is unknown or a required field
            is missing or malformed.
    """
    if raw is None:
        return None
    if isinstance(raw, _Details):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    try:
        return _adapter.validate_python(raw)
    except ValidationError as exc:
        raise LedgerValidationError(f"Invalid transaction details: {exc.errors()[0]['msg']}") from exc


def dump_details(details) -> dict | None:
    """JSON-ready form of a details variant, for the Transaction.details column."""
    if details is None:
        return None
    return details.model_dump(mode="json")
