"""
Tests for the function cost registry.
"""

from tmc_ledger.services import function_cost_service


class TestCostLookup:

    async def test_unknown_function_costs_nothing(self, db_session):
        assert await function_cost_service.get_cost(db_session, "teleportation") == 0

    async def test_inactive_function_costs_nothing(self, db_session):
        await function_cost_service.set_cost(
            db_session, "ai_response", 4, updated_by=None, is_active=False
        )

        assert await function_cost_service.get_cost(db_session, "ai_response") == 0

    async def test_set_cost_is_visible_immediately(self, db_session):
        await function_cost_service.set_cost(db_session, "prescription", 2, updated_by=None)
        await function_cost_service.set_cost(db_session, "prescription", 7, updated_by=None)

        assert await function_cost_service.get_cost(db_session, "prescription") == 7

    async def test_seed_does_not_overwrite_admin_edits(self, db_session):
        await function_cost_service.set_cost(db_session, "prescription", 99, updated_by=None)

        added = await function_cost_service.seed_default_costs(db_session)
        again = await function_cost_service.seed_default_costs(db_session)

        assert added == len(function_cost_service.DEFAULT_FUNCTION_COSTS) - 1
        assert again == 0
        assert await function_cost_service.get_cost(db_session, "prescription") == 99


class TestCostEndpoints:

    async def test_admin_sets_cost_and_lists_it(self, client, admin_headers):
        response = await client.put(
            "/tmc/function-costs/clinical_interview",
            json={"cost_in_credits": 3, "category": "ai"},
            headers=admin_headers,
        )
        assert response.status_code == 200, response.text
        assert response.json()["cost_in_credits"] == 3

        listing = await client.get("/tmc/function-costs", headers=admin_headers)
        assert listing.status_code == 200
        assert {c["function_name"]: c["cost_in_credits"] for c in listing.json()} == {
            "clinical_interview": 3
        }

    async def test_non_admin_cannot_set_cost(self, client, register_user):
        doctor = await register_user("doctor@example.com", role="doctor")

        response = await client.put(
            "/tmc/function-costs/prescription",
            json={"cost_in_credits": 0},
            headers=doctor["headers"],
        )

        assert response.status_code == 403

    async def test_negative_cost_rejected(self, client, admin_headers):
        response = await client.put(
            "/tmc/function-costs/prescription",
            json={"cost_in_credits": -1},
            headers=admin_headers,
        )

        assert response.status_code == 422

    async def test_get_single_cost(self, client, admin_headers):
        await client.put(
            "/tmc/function-costs/prescription",
            json={"cost_in_credits": 2, "category": "clinical"},
            headers=admin_headers,
        )

        found = await client.get("/tmc/function-costs/prescription", headers=admin_headers)
        missing = await client.get("/tmc/function-costs/teleportation", headers=admin_headers)

        assert found.status_code == 200
        assert found.json()["cost_in_credits"] == 2
        assert missing.status_code == 404
        assert missing.json()["error_type"] == "function_cost_not_found"

    async def test_inactive_costs_listed_on_request(self, client, admin_headers):
        await client.put(
            "/tmc/function-costs/prescription",
            json={"cost_in_credits": 2},
            headers=admin_headers,
        )
        await client.put(
            "/tmc/function-costs/ai_response",
            json={"cost_in_credits": 1, "is_active": False},
            headers=admin_headers,
        )

        active = await client.get("/tmc/function-costs", headers=admin_headers)
        everything = await client.get(
            "/tmc/function-costs", params={"include_inactive": True}, headers=admin_headers
        )

        assert [c["function_name"] for c in active.json()] == ["prescription"]
        assert {c["function_name"] for c in everything.json()} == {"prescription", "ai_response"}

    async def test_patient_cannot_read_costs(self, client, register_user):
        patient = await register_user("patient@example.com")

        listing = await client.get("/tmc/function-costs", headers=patient["headers"])
        single = await client.get("/tmc/function-costs/prescription", headers=patient["headers"])

        assert listing.status_code == 403
        assert single.status_code == 403
