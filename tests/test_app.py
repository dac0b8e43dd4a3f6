"""
Tests for application wiring: health check, request ids and bootstrap.
"""

from sqlalchemy import select

from tmc_ledger.main import bootstrap
from tmc_ledger.models.account import Account, AccountRole, PLATFORM_ACCOUNT_ID
from tmc_ledger.services import function_cost_service


class TestApp:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_request_id_header(self, client):
        response = await client.get("/health")

        assert response.headers["X-Request-ID"].startswith("req_")

    async def test_bootstrap_is_repeatable(self, db_session):
        await bootstrap(db_session)
        await bootstrap(db_session)

        platform = (await db_session.execute(
            select(Account).where(Account.role == AccountRole.PLATFORM)
        )).scalars().all()
        assert [account.id for account in platform] == [PLATFORM_ACCOUNT_ID]
        costs = await function_cost_service.list_costs(db_session)
        assert len(costs) == len(function_cost_service.DEFAULT_FUNCTION_COSTS)
