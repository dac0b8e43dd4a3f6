"""
Tests for credit purchases: create-order, capture and its idempotency.

These tests verify:
  - A captured order credits the package's credits exactly once
  - Replaying a capture answers 409 and changes nothing
  - A provider decline leaves the order "failed" (committed) and no credit
  - A retry after a rolled-back capture credits once; an unconfirmed
    capture leaves the order open
  - Unknown orders, unknown packages and other users' orders are refused
  - The order snapshot is independent of later catalog changes
"""

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from tmc_ledger.config import settings
from tmc_ledger.exceptions import AlreadyCapturedError, OrderNotFoundError, ProviderRejectedError
from tmc_ledger.models.purchase_order import OrderStatus, PurchaseOrder
from tmc_ledger.models.transaction import TransactionType
from tmc_ledger.payments import PayerInfo
from tmc_ledger.services import catalog_service, ledger_service, purchase_service


async def _create_package(client, admin_headers, credits=1000, price="49.90", bonus=0):
    response = await client.post(
        "/admin/credit-packages",
        json={"name": f"{credits} credits", "credits": credits, "price": price, "bonus_credits": bonus},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestPurchaseFlow:

    async def test_create_and_capture_credits_once(
        self, client, register_user, admin_headers, monkeypatch
    ):
        """Package of 1000 credits: capture once -> 1000; replay -> 409, still 1000."""
        monkeypatch.setattr(settings, "PROMOTIONAL_CREDITS", 0)
        buyer = await register_user("buyer@example.com")
        package = await _create_package(client, admin_headers)

        created = await client.post(
            "/credits/purchase/create-order",
            json={"package_id": package["id"]},
            headers=buyer["headers"],
        )
        assert created.status_code == 201, created.text
        order_id = created.json()["order_id"]
        assert created.json()["order"]["status"] == "created"
        assert created.json()["order"]["credits_amount"] == 1000

        captured = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )
        assert captured.status_code == 200, captured.text
        assert captured.json() == {
            "success": True,
            "capture_id": f"CAP-{order_id}",
            "new_balance": 1000,
        }

        replay = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )
        assert replay.status_code == 409
        assert replay.json()["error_type"] == "already_captured"

        balance = await client.get("/tmc/balance", headers=buyer["headers"])
        assert balance.json()["balance"] == 1000
        assert balance.json()["match"] is True

    async def test_purchase_row_is_a_recharge(self, client, register_user, admin_headers):
        buyer = await register_user("buyer@example.com")
        package = await _create_package(client, admin_headers, credits=100, bonus=20)

        created = await client.post(
            "/credits/purchase/create-order",
            json={"package_id": package["id"]},
            headers=buyer["headers"],
        )
        order_id = created.json()["order_id"]
        await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )

        rows = await client.get(
            "/tmc/transactions", params={"type": "recharge"}, headers=buyer["headers"]
        )
        assert rows.status_code == 200
        [row] = rows.json()
        assert row["amount"] == 120
        assert row["reason"] == "purchase"
        assert row["external_order_id"] == order_id
        assert row["capture_id"] == f"CAP-{order_id}"
        assert row["details"]["kind"] == "purchase"

    async def test_provider_rejection_marks_order_failed(
        self, client, register_user, admin_headers, fake_provider, session_factory
    ):
        buyer = await register_user("buyer@example.com")
        package = await _create_package(client, admin_headers)
        created = await client.post(
            "/credits/purchase/create-order",
            json={"package_id": package["id"]},
            headers=buyer["headers"],
        )
        order_id = created.json()["order_id"]
        fake_provider.rejected.add(order_id)

        response = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )

        assert response.status_code == 402
        assert response.json()["error_type"] == "provider_rejected"
        async with session_factory() as db:
            order = (await db.execute(
                select(PurchaseOrder).where(PurchaseOrder.external_order_id == order_id)
            )).scalar_one()
            assert order.status == OrderStatus.FAILED
            assert order.error_message == "Instrument declined"
        balance = await client.get("/tmc/balance", headers=buyer["headers"])
        assert balance.json()["balance"] == settings.PROMOTIONAL_CREDITS

        # A failed order is terminal: retrying does not reach the provider again
        retry = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )
        assert retry.status_code == 402
        assert fake_provider.capture_calls == [order_id]

    async def test_retry_after_rolled_back_capture_credits_once(
        self, client, register_user, admin_headers, fake_provider, monkeypatch
    ):
        """The provider took the money but local bookkeeping rolled back: a retry credits once."""
        monkeypatch.setattr(settings, "PROMOTIONAL_CREDITS", 0)
        buyer = await register_user("buyer@example.com")
        package = await _create_package(client, admin_headers)
        order_id = (await client.post(
            "/credits/purchase/create-order",
            json={"package_id": package["id"]},
            headers=buyer["headers"],
        )).json()["order_id"]

        real_capture = purchase_service.capture_order
        attempts = []

        async def flaky_capture(*args, **kwargs):
            attempts.append(args[1])
            if len(attempts) == 1:
                raise OperationalError("UPDATE purchase_orders", {}, Exception("database is locked"))
            return await real_capture(*args, **kwargs)

        monkeypatch.setattr(purchase_service, "capture_order", flaky_capture)

        first = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )
        assert first.status_code == 500
        assert first.json()["error_type"] == "persistence_error"
        assert order_id in fake_provider.captured

        retry = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )
        assert retry.status_code == 200, retry.text
        assert retry.json()["capture_id"] == f"CAP-{order_id}"
        assert retry.json()["new_balance"] == 1000

        replay = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )
        assert replay.status_code == 409
        balance = await client.get("/tmc/balance", headers=buyer["headers"])
        assert balance.json()["balance"] == 1000
        assert balance.json()["match"] is True
        assert fake_provider.capture_calls == [order_id, order_id]

    async def test_unconfirmed_capture_leaves_order_open(
        self, client, register_user, admin_headers, fake_provider, session_factory
    ):
        buyer = await register_user("buyer@example.com")
        package = await _create_package(client, admin_headers)
        order_id = (await client.post(
            "/credits/purchase/create-order",
            json={"package_id": package["id"]},
            headers=buyer["headers"],
        )).json()["order_id"]
        fake_provider.pending.add(order_id)

        response = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )

        assert response.status_code == 502
        assert response.json()["error_type"] == "payment_provider_error"
        async with session_factory() as db:
            order = (await db.execute(
                select(PurchaseOrder).where(PurchaseOrder.external_order_id == order_id)
            )).scalar_one()
            assert order.status == OrderStatus.CREATED

        fake_provider.pending.discard(order_id)
        retry = await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )
        assert retry.status_code == 200
        assert retry.json()["new_balance"] == settings.PROMOTIONAL_CREDITS + 1000

    async def test_unknown_order(self, client, register_user):
        buyer = await register_user("buyer@example.com")

        response = await client.post(
            "/credits/purchase/capture", json={"order_id": "NOPE"}, headers=buyer["headers"]
        )

        assert response.status_code == 404
        assert response.json()["error_type"] == "order_not_found"

    async def test_unknown_package(self, client, register_user):
        buyer = await register_user("buyer@example.com")

        response = await client.post(
            "/credits/purchase/create-order",
            json={"package_id": str(uuid.uuid4())},
            headers=buyer["headers"],
        )

        assert response.status_code == 404
        assert response.json()["error_type"] == "package_not_found"

    async def test_cannot_capture_someone_elses_order(self, client, register_user, admin_headers):
        buyer = await register_user("buyer@example.com")
        intruder = await register_user("intruder@example.com")
        package = await _create_package(client, admin_headers)
        created = await client.post(
            "/credits/purchase/create-order",
            json={"package_id": package["id"]},
            headers=buyer["headers"],
        )

        response = await client.post(
            "/credits/purchase/capture",
            json={"order_id": created.json()["order_id"]},
            headers=intruder["headers"],
        )

        assert response.status_code == 403

    async def test_packages_are_public(self, client, admin_headers):
        await _create_package(client, admin_headers, credits=50, price="5")

        response = await client.get("/credits/packages")

        assert response.status_code == 200
        [package] = response.json()
        assert package["price"] == "5.00"
        assert package["total_credits"] == 50

    async def test_order_history_is_per_account(self, client, register_user, admin_headers):
        buyer = await register_user("buyer@example.com")
        other = await register_user("other@example.com")
        package = await _create_package(client, admin_headers)
        created = await client.post(
            "/credits/purchase/create-order",
            json={"package_id": package["id"]},
            headers=buyer["headers"],
        )
        order_id = created.json()["order_id"]
        await client.post(
            "/credits/purchase/capture", json={"order_id": order_id}, headers=buyer["headers"]
        )

        mine = await client.get("/credits/purchase/orders", headers=buyer["headers"])
        theirs = await client.get("/credits/purchase/orders", headers=other["headers"])

        assert mine.status_code == 200
        [order] = mine.json()
        assert order["external_order_id"] == order_id
        assert order["status"] == "captured"
        assert theirs.json() == []


class TestPurchaseService:

    async def _order(self, db, funded_account, credits=300):
        account_id = await funded_account(0)
        package = await catalog_service.create_package(db, "Starter", credits, "9.99")
        order = await purchase_service.create_order(db, account_id, package, "EXT-1")
        return account_id, package, order

    async def test_capture_links_transaction_to_order(self, db_session, funded_account):
        account_id, _, order = await self._order(db_session, funded_account)

        result = await purchase_service.capture_order(
            db_session, "EXT-1", "CAP-1", PayerInfo(email="p@example.com", payer_id="P1")
        )

        assert result.new_balance == 300
        assert result.order.status == OrderStatus.CAPTURED
        assert result.order.transaction_id == result.transaction.id
        assert result.order.payer_email == "p@example.com"
        assert result.order.captured_at is not None
        assert result.transaction.type == TransactionType.RECHARGE

    async def test_second_capture_raises_without_mutation(self, db_session, funded_account):
        account_id, _, _ = await self._order(db_session, funded_account)
        await purchase_service.capture_order(db_session, "EXT-1", "CAP-1")

        with pytest.raises(AlreadyCapturedError):
            await purchase_service.capture_order(db_session, "EXT-1", "CAP-1")

        assert await ledger_service.get_balance(db_session, account_id) == 300

    async def test_snapshot_survives_catalog_change(self, db_session, funded_account):
        account_id, package, _ = await self._order(db_session, funded_account)
        package.credits = 5
        await db_session.flush()

        result = await purchase_service.capture_order(db_session, "EXT-1", "CAP-1")

        assert result.new_balance == 300

    async def test_fail_then_capture_is_rejected(self, db_session, funded_account):
        await self._order(db_session, funded_account)
        await purchase_service.fail_order(db_session, "EXT-1", "declined")

        with pytest.raises(ProviderRejectedError) as exc_info:
            await purchase_service.capture_order(db_session, "EXT-1", "CAP-1")
        assert exc_info.value.persist_state is False

    async def test_capture_unknown_order(self, db_session):
        with pytest.raises(OrderNotFoundError):
            await purchase_service.capture_order(db_session, "EXT-404", "CAP-1")
