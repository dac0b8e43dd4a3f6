"""
Test fixtures for the credit ledger test suite.

  - db_engine / session_factory / db_session: fresh in-memory SQLite per test
  - fake_provider: in-memory payment provider (no network)
  - client: async HTTP client with get_db and the provider overridden
  - register_user: factory that signs a user up through the real endpoint
  - admin_headers: bearer headers of a user promoted to ADMIN in the database
  - funded_account: factory for service-level tests (account with a balance)

API tests pass explicit `headers=` per request, so several users can act
in one test without sharing a client-wide Authorization header.
"""

import itertools
import os
import uuid

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from tmc_ledger.database import Base, get_db
from tmc_ledger.exceptions import TMCError
from tmc_ledger.main import app
from tmc_ledger.models.user import User, UserRole
from tmc_ledger.payments import (
    ALREADY_CAPTURED,
    CAPTURE_COMPLETED,
    CaptureConfirmation,
    PayerInfo,
    get_payment_provider,
)
from tmc_ledger.services import account_service, ledger_service


TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakePaymentProvider:
    """
    Stands in for the payment provider.

    Orders get sequential ids. Ids added to `rejected` are declined at
    capture time and ids in `pending` get a status that is neither captured
    nor declined. Like the real provider, a second capture of a captured
    order answers ORDER_ALREADY_CAPTURED; `capture_calls` records every
    capture request.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self.created: dict[str, tuple[str, str]] = {}
        self.rejected: set[str] = set()
        self.pending: set[str] = set()
        self.captured: set[str] = set()
        self.capture_calls: list[str] = []

    async def create_order(self, amount: str, currency: str) -> str:
        order_id = f"ORDER-{next(self._ids):04d}"
        self.created[order_id] = (amount, currency)
        return order_id

    async def capture_order(self, external_order_id: str) -> CaptureConfirmation:
        self.capture_calls.append(external_order_id)
        if external_order_id in self.rejected:
            return CaptureConfirmation(
                external_order_id=external_order_id,
                status="DECLINED",
                error_message="Instrument declined",
            )
        if external_order_id in self.pending:
            return CaptureConfirmation(external_order_id=external_order_id, status="PENDING")
        if external_order_id in self.captured:
            return CaptureConfirmation(
                external_order_id=external_order_id,
                status=ALREADY_CAPTURED,
                error_message="Order already captured",
            )
        self.captured.add(external_order_id)
        return self._completed(external_order_id)

    async def get_order(self, external_order_id: str) -> CaptureConfirmation:
        if external_order_id in self.captured:
            return self._completed(external_order_id)
        return CaptureConfirmation(external_order_id=external_order_id, status="APPROVED")

    @staticmethod
    def _completed(external_order_id: str) -> CaptureConfirmation:
        return CaptureConfirmation(
            external_order_id=external_order_id,
            status=CAPTURE_COMPLETED,
            capture_id=f"CAP-{external_order_id}",
            payer=PayerInfo(email="payer@example.com", payer_id="PAYER-1"),
        )


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_provider():
    return FakePaymentProvider()


@pytest_asyncio.fixture
async def client(session_factory, fake_provider):
    """
    Async HTTP test client with the test database and fake provider injected.

    The get_db override keeps the production commit rules, including the
    commit of a persisted terminal state on ProviderRejectedError.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except TMCError as exc:
                if exc.persist_state:
                    await session.commit()
                else:
                    await session.rollback()
                raise
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: fake_provider

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def register_user(client):
    """
    Factory: sign a user up and return their ids and bearer headers.

        patient = await register_user("p@example.com")
        await client.get("/tmc/balance", headers=patient["headers"])
    """

    async def _register(email: str, role: str = "patient", password: str = "SecurePass123!"):
        response = await client.post(
            "/auth/signup",
            json={"email": email, "password": password, "name": email.split("@")[0], "role": role},
        )
        assert response.status_code == 201, f"Signup failed: {response.text}"
        data = response.json()
        return {
            "user_id": uuid.UUID(data["user_id"]),
            "account_id": uuid.UUID(data["account_id"]),
            "headers": {"Authorization": f"Bearer {data['token']}"},
        }

    return _register


@pytest_asyncio.fixture
async def admin_user(client, register_user, session_factory):
    """
    A user promoted to ADMIN directly in the database, the way operators
    provision admins (admin is not a self-service role).
    """
    admin = await register_user("admin@example.com", password="AdminPass123!")
    async with session_factory() as session:
        await session.execute(
            update(User).where(User.id == admin["user_id"]).values(role=UserRole.ADMIN)
        )
        await session.commit()

    login = await client.post(
        "/auth/login",
        json={"email": "admin@example.com", "password": "AdminPass123!"},
    )
    admin["headers"] = {"Authorization": f"Bearer {login.json()['token']}"}
    return admin


@pytest_asyncio.fixture
async def admin_headers(admin_user):
    return admin_user["headers"]


@pytest_asyncio.fixture
async def funded_account(db_session):
    """
    Factory for service-level tests: an open account holding `balance`
    credits, funded through a recharge so the ledger matches the balance.
    """

    async def _make(balance: int = 0) -> uuid.UUID:
        account = await ledger_service.open_account(db_session, user_id=None)
        if balance:
            await account_service.recharge(
                db_session, account.id, balance, "manual", performed_by=None
            )
        return account.id

    return _make
