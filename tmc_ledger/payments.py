"""
Payment provider client — the external collaborator for credit purchases.

The ledger never speaks a payment protocol itself. It needs three things
from the provider:

  1. An external order id for a new purchase (create_order)
  2. A capture confirmation for that id (capture_order): whether the money
     was captured, the capture id, and who paid
  3. The order's current state (get_order), used when a capture is retried
     after the provider already took the money

Only an explicit decline closes an order. Refusals the ledger can't
classify are reported as provider errors and the order stays capturable.

HttpPaymentProvider talks to a provider-facing proxy at PAYMENT_PROVIDER_URL
(POST /order, POST /order/{id}/capture, GET /order/{id}) with httpx.
Routers receive a provider through the get_payment_provider dependency,
which tests override with an in-memory fake.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from tmc_ledger.config import settings
from tmc_ledger.exceptions import PaymentProviderError

logger = logging.getLogger(__name__)

CAPTURE_COMPLETED = "COMPLETED"
ALREADY_CAPTURED = "ORDER_ALREADY_CAPTURED"

# Provider answers that mean the payer's money will never be captured for
# this order. Anything else that isn't COMPLETED leaves the order open.
DECLINED_STATUSES = frozenset({
    "DECLINED",
    "INSTRUMENT_DECLINED",
    "TRANSACTION_REFUSED",
    "PAYER_CANNOT_PAY",
    "VOIDED",
})


@dataclass(frozen=True)
class PayerInfo:
    email: str | None = None
    payer_id: str | None = None


@dataclass(frozen=True)
class CaptureConfirmation:
    external_order_id: str
    status: str
    capture_id: str | None = None
    payer: PayerInfo = PayerInfo()
    error_message: str | None = None

    @property
    def completed(self) -> bool:
        return self.status == CAPTURE_COMPLETED and bool(self.capture_id)

    @property
    def declined(self) -> bool:
        return self.status in DECLINED_STATUSES

    @property
    def already_captured(self) -> bool:
        return self.status == ALREADY_CAPTURED


class PaymentProvider(Protocol):
    async def create_order(self, amount: str, currency: str) -> str: ...

    async def capture_order(self, external_order_id: str) -> CaptureConfirmation: ...

    async def get_order(self, external_order_id: str) -> CaptureConfirmation: ...


def parse_capture_response(external_order_id: str, payload: dict) -> CaptureConfirmation:
    """
    Extract the capture confirmation from a provider capture payload.

    Expected shape:
        {"status": "COMPLETED",
         "purchase_units": [{"payments": {"captures": [{"id": "..."}]}}],
         "payer": {"email_address": "...", "payer_id": "..."}}
    """
    status = payload.get("status", "UNKNOWN")
    capture_id = None
    try:
        capture_id = payload["purchase_units"][0]["payments"]["captures"][0]["id"]
    except (KeyError, IndexError, TypeError):
        pass

    payer = payload.get("payer") or {}
    return CaptureConfirmation(
        external_order_id=external_order_id,
        status=status,
        capture_id=capture_id,
        payer=PayerInfo(email=payer.get("email_address"), payer_id=payer.get("payer_id")),
        error_message=None if status == CAPTURE_COMPLETED else payload.get("message"),
    )


class HttpPaymentProvider:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_PROVIDER_URL).rstrip("/")
        self.timeout = timeout or settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def create_order(self, amount: str, currency: str) -> str:
        payload = {"amount": amount, "currency": currency, "intent": "CAPTURE"}
        try:
            async with self._client() as client:
                response = await client.post(f"{self.base_url}/order", json=payload)
                response.raise_for_status()
                order_id = response.json()["id"]
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("payment provider create_order failed: %s", exc)
            raise PaymentProviderError("Could not create payment order") from exc
        return order_id

    async def capture_order(self, external_order_id: str) -> CaptureConfirmation:
        """
        Ask the provider to capture an approved order.

        A declined payment or an ORDER_ALREADY_CAPTURED refusal comes back
        as a non-completed confirmation. Any other refusal, a 5xx or an
        unreadable reply raises PaymentProviderError so the order stays open.
        """
        response, payload = await self._call(
            "POST", f"/order/{external_order_id}/capture", external_order_id
        )
        if response.is_error:
            confirmation = CaptureConfirmation(
                external_order_id=external_order_id,
                status=payload.get("name", "UNKNOWN"),
                error_message=payload.get("message"),
            )
            if confirmation.declined or confirmation.already_captured:
                return confirmation
            logger.error(
                "payment provider refused capture of %s with %d %s",
                external_order_id, response.status_code, confirmation.status,
            )
            raise PaymentProviderError("The payment provider could not confirm the capture")
        return parse_capture_response(external_order_id, payload)

    async def get_order(self, external_order_id: str) -> CaptureConfirmation:
        """Current state of an order at the provider, with its capture if any."""
        response, payload = await self._call(
            "GET", f"/order/{external_order_id}", external_order_id
        )
        if response.is_error:
            logger.error(
                "payment provider lookup of %s answered %d", external_order_id, response.status_code
            )
            raise PaymentProviderError("Could not look up the payment order")
        return parse_capture_response(external_order_id, payload)

    async def _call(self, method: str, path: str, external_order_id: str):
        try:
            async with self._client() as client:
                response = await client.request(method, f"{self.base_url}{path}")
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("payment provider %s %s failed: %s", method, path, exc)
            raise PaymentProviderError("Could not reach the payment provider") from exc

        if response.status_code >= 500 or not isinstance(payload, dict):
            logger.error(
                "payment provider %s for %s answered %d", method, external_order_id, response.status_code
            )
            raise PaymentProviderError("The payment provider could not process the request")
        return response, payload


def get_payment_provider() -> PaymentProvider:
    """FastAPI dependency; overridden in tests."""
    return HttpPaymentProvider()
