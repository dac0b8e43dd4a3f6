"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientBalanceError)
without importing HTTP concepts. The handler layer translates them into
proper HTTP responses with a consistent body:

    {"detail": "...", "error_type": "...", ...extra fields}

Exception hierarchy:
    TMCError (base)
    ├── LedgerValidationError            — non-positive amount, bad details, self-transfer
    ├── InsufficientBalanceError         — debit/transfer when balance too low
    ├── InsufficientCashboxBalanceError  — expense larger than the cashbox balance
    ├── AccountNotFoundError             — account id doesn't exist
    ├── AccountInactiveError             — account has been deactivated
    ├── OrderNotFoundError               — no purchase order for an external id
    ├── PackageNotFoundError             — unknown or inactive credit package
    ├── FunctionCostNotFoundError        — unknown function in the cost registry
    ├── AlreadyCapturedError             — duplicate capture of a purchase order
    ├── ProviderRejectedError            — payment provider refused the capture
    ├── PaymentProviderError             — payment provider unreachable / malformed reply
    ├── PermissionDeniedError            — caller lacks the required role or ownership
    ├── DuplicateEmailError              — registering an email twice
    ├── InvalidCredentialsError          — bad login
    └── PersistenceError                 — infrastructure failure after rollback

Business errors never change state: every check runs before the first
mutation, and the unit of work rolls back when one is raised. The only
exception is ProviderRejectedError, whose `persist_state` flag tells the
session dependency to commit the order's transition to "failed".
"""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class TMCError(Exception):
    """Base exception for all credit ledger domain errors."""

    status_code = 400
    error_type = "tmc_error"
    # When True, the request's unit of work is committed even though the
    # error is raised (used for terminal state transitions such as "failed").
    persist_state = False

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def extra(self) -> dict:
        """Additional fields merged into the JSON error body."""
        return {}


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class LedgerValidationError(TMCError):
    """Raised for invalid ledger input (non-positive amounts, malformed details)."""

    status_code = 400
    error_type = "validation_error"


class InsufficientBalanceError(TMCError):
    """
    Raised when a debit or transfer would cause a negative balance.

    Attributes:
        account_id: The account that lacks sufficient credits.
        requested: The amount the caller tried to debit.
        available: The current balance of the account.
    """

    status_code = 422
    error_type = "insufficient_balance"

    def __init__(self, account_id: uuid.UUID, requested: int, available: int):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance: requested {requested} credits, "
            f"available {available} credits"
        )

    def extra(self) -> dict:
        return {"requested": self.requested, "available": self.available}


class InsufficientCashboxBalanceError(TMCError):
    """Raised when an expense posting exceeds the cashbox balance."""

    status_code = 422
    error_type = "insufficient_cashbox_balance"

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient cashbox balance: requested {requested} credits, "
            f"available {available} credits"
        )

    def extra(self) -> dict:
        return {"requested": self.requested, "available": self.available}


class AccountNotFoundError(TMCError):
    """Raised when a requested account does not exist."""

    status_code = 404
    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID | None):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class AccountInactiveError(TMCError):
    """Raised when a ledger mutation targets a deactivated account."""

    status_code = 403
    error_type = "account_inactive"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is inactive")


class OrderNotFoundError(TMCError):
    status_code = 404
    error_type = "order_not_found"

    def __init__(self, external_order_id: str):
        self.external_order_id = external_order_id
        super().__init__(f"Purchase order {external_order_id} not found")


class PackageNotFoundError(TMCError):
    status_code = 404
    error_type = "package_not_found"

    def __init__(self, package_id: uuid.UUID):
        self.package_id = package_id
        super().__init__(f"Credit package {package_id} not found")


class FunctionCostNotFoundError(TMCError):
    status_code = 404
    error_type = "function_cost_not_found"

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Function {function_name} is not registered")


class AlreadyCapturedError(TMCError):
    """
    Raised when a capture arrives for an order that is already captured.

    Capture notifications are delivered at least once, so this is an expected,
    non-mutating outcome rather than a fault.
    """

    status_code = 409
    error_type = "already_captured"

    def __init__(self, external_order_id: str, capture_id: str | None = None):
        self.external_order_id = external_order_id
        self.capture_id = capture_id
        super().__init__(f"Purchase order {external_order_id} was already captured")

    def extra(self) -> dict:
        return {"order_id": self.external_order_id, "capture_id": self.capture_id}


class ProviderRejectedError(TMCError):
    """Raised when the payment provider does not confirm a capture."""

    status_code = 402
    error_type = "provider_rejected"
    persist_state = True

    def __init__(
        self,
        external_order_id: str,
        reason: str = "Payment capture was rejected",
        persist_state: bool = True,
    ):
        self.external_order_id = external_order_id
        self.reason = reason
        self.persist_state = persist_state
        super().__init__(f"Purchase order {external_order_id}: {reason}")

    def extra(self) -> dict:
        return {"order_id": self.external_order_id}


class PaymentProviderError(TMCError):
    """Raised when the payment provider cannot be reached or replies garbage."""

    status_code = 502
    error_type = "payment_provider_error"


class PermissionDeniedError(TMCError):
    """Raised when a user attempts an action their role does not allow."""

    status_code = 403
    error_type = "permission_denied"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class DuplicateEmailError(TMCError):
    """Raised when attempting to register with an email that's already in use."""

    status_code = 409
    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already registered")


class InvalidCredentialsError(TMCError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid email or password")


class PersistenceError(TMCError):
    """Raised when the database fails after retries; the unit of work was rolled back."""

    status_code = 500
    error_type = "persistence_error"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Every TMCError subclass is mapped through its own status_code and
    error_type, so adding a new domain error needs no new handler.
    Raw SQLAlchemy errors that escape a unit of work become a logged 500.
    """

    @app.exception_handler(TMCError)
    async def tmc_error_handler(request: Request, exc: TMCError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        else:
            logger.warning(
                "%s %s rejected (%s): %s",
                request.method, request.url.path, exc.error_type, exc.detail,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type, **exc.extra()},
        )

    @app.exception_handler(SQLAlchemyError)
    async def persistence_error_handler(
        request: Request, exc: SQLAlchemyError
    ) -> JSONResponse:
        logger.error(
            "%s %s: database error, unit of work rolled back",
            request.method, request.url.path, exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "A storage error occurred", "error_type": "persistence_error"},
        )
