"""
Tests for the platform cashbox (revenue, expenses, totals) and its admin
endpoints.
"""

import pytest

from tmc_ledger.exceptions import InsufficientCashboxBalanceError
from tmc_ledger.models.account import PLATFORM_ACCOUNT_ID
from tmc_ledger.services import billing_service, cashbox_service, function_cost_service, ledger_service


class TestCashboxService:

    async def test_ensure_cashbox_is_idempotent(self, db_session):
        first = await cashbox_service.ensure_cashbox(db_session)
        second = await cashbox_service.ensure_cashbox(db_session)

        assert first.id == second.id == PLATFORM_ACCOUNT_ID
        assert first.is_platform

    async def test_revenue_and_expense_totals(self, db_session):
        await cashbox_service.add_revenue(db_session, 120, "consultation")
        await cashbox_service.add_revenue(db_session, 30, "ai_response")
        new_balance = await cashbox_service.deduct_expense(
            db_session, 50, "hosting", performed_by=None
        )

        stats = await cashbox_service.get_stats(db_session)

        assert new_balance == 100
        assert stats.balance == 100
        assert stats.total_revenue == 150
        assert stats.total_expenses == 50
        assert stats.balance == stats.total_revenue - stats.total_expenses

    async def test_expense_beyond_balance_fails_unchanged(self, db_session):
        await cashbox_service.add_revenue(db_session, 40, "consultation")

        with pytest.raises(InsufficientCashboxBalanceError) as exc_info:
            await cashbox_service.deduct_expense(db_session, 41, "hosting", performed_by=None)

        assert exc_info.value.available == 40
        stats = await cashbox_service.get_stats(db_session)
        assert stats.balance == 40
        assert stats.total_expenses == 0

    async def test_entry_kinds(self, db_session):
        await cashbox_service.add_revenue(db_session, 10, "consultation")
        await cashbox_service.deduct_expense(db_session, 4, "hosting", performed_by=None)

        rows = await cashbox_service.list_cashbox_transactions(db_session)

        assert sorted(cashbox_service.entry_kind(row) for row in rows) == ["expense", "revenue"]
        assert {row.details["kind"] for row in rows} == {"platform_revenue", "platform_expense"}


class TestFeatureBilling:

    async def test_charge_for_priced_function(self, db_session, funded_account):
        account_id = await funded_account(20)
        await function_cost_service.set_cost(db_session, "prescription", 2, updated_by=None)

        result = await billing_service.charge_for_function(db_session, account_id, "prescription")

        assert not result.free
        assert result.new_balance == 18
        assert result.cashbox_balance == 2
        assert result.transaction.function_used == "prescription"
        assert result.transaction.details["kind"] == "feature_usage"

    async def test_unknown_function_is_free(self, db_session, funded_account):
        account_id = await funded_account(20)

        result = await billing_service.charge_for_function(db_session, account_id, "not_registered")

        assert result.free
        assert result.new_balance == 20
        assert len(await ledger_service.list_transactions(db_session, account_id)) == 1


class TestCashboxEndpoints:

    async def test_admin_sees_cashbox_after_expense(self, client, admin_headers, session_factory):
        async with session_factory() as db:
            await cashbox_service.add_revenue(db, 100, "consultation")
            await db.commit()

        posted = await client.post(
            "/admin/cashbox/expenses",
            json={"amount": 30, "description": "server bill"},
            headers=admin_headers,
        )
        assert posted.status_code == 201, posted.text
        assert posted.json()["new_balance"] == 70

        stats = await client.get("/admin/cashbox", headers=admin_headers)
        assert stats.json()["balance"] == 70
        assert stats.json()["total_revenue"] == 100
        assert stats.json()["total_expenses"] == 30

        rows = await client.get("/admin/cashbox/transactions", headers=admin_headers)
        kinds = sorted((row["kind"], row["amount"]) for row in rows.json())
        assert kinds == [("expense", 30), ("revenue", 100)]

    async def test_expense_too_large(self, client, admin_headers):
        response = await client.post(
            "/admin/cashbox/expenses",
            json={"amount": 1, "description": "server bill"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["error_type"] == "insufficient_cashbox_balance"
