# tests/conftest.py
"""
Pytest configuration and fixtures for the supply-chain API test suite.

Provides:
- An in-memory SQLite database (aiosqlite) with the full schema
- An httpx AsyncClient bound to the FastAPI app with the session dependency overridden
- Seed helpers for users, integrations, inventory, warehouses and datasets
- Webhook signing helpers and bearer tokens

Startup hooks (migrations) do not run: ASGITransport does not send lifespan events.
"""

import base64
import hashlib
import hmac
import json
import os
from typing import Any, Dict, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before imports
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["SHOPIFY_WEBHOOK_SECRET"] = "shopify-test-secret"
os.environ["SAP_WEBHOOK_SECRET"] = "sap-test-secret"
os.environ["POWERBI_WEBHOOK_SECRET"] = "powerbi-test-secret"
os.environ["IOT_WEBHOOK_SECRET"] = "iot-test-secret"
os.environ.pop("REDIS_URL", None)

from supplychain_api.api.main import app  # noqa: E402
from supplychain_api.core.security import create_access_token  # noqa: E402
from supplychain_api.db.base import Base  # noqa: E402
from supplychain_api.db.models import (  # noqa: E402
    BiDataset,
    InventoryItem,
    Notification,
    NotificationType,
    User,
    UserIntegration,
    Warehouse,
    WarehouseZone,
)
from supplychain_api.db.session import get_async_session  # noqa: E402
from supplychain_api.services.rate_limit import RateLimiter  # noqa: E402

SECRETS = {
    "shopify": os.environ["SHOPIFY_WEBHOOK_SECRET"],
    "sap": os.environ["SAP_WEBHOOK_SECRET"],
    "powerbi": os.environ["POWERBI_WEBHOOK_SECRET"],
    "iot": os.environ["IOT_WEBHOOK_SECRET"],
}

SIGNATURE_HEADERS = {
    "shopify": "X-Shopify-Hmac-SHA256",
    "sap": "X-SAP-Signature",
    "powerbi": "X-PowerBI-Signature",
    "iot": "X-IoT-Signature",
}


# ============== Signing Helpers ==============

def sign(provider: str, body: bytes, secret: Optional[str] = None) -> str:
    """Signature header value for body, using the provider's scheme."""
    digest = hmac.new((secret or SECRETS[provider]).encode("utf-8"), body, hashlib.sha256).digest()
    if provider == "shopify":
        return base64.b64encode(digest).decode("ascii")
    return digest.hex()


def signed_request(provider: str, payload: Dict[str, Any], **extra_headers: str) -> Dict[str, Any]:
    """kwargs for client.post: raw JSON body plus its signature header."""
    body = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json", SIGNATURE_HEADERS[provider]: sign(provider, body)}
    headers.update(extra_headers)
    return {"content": body, "headers": headers}


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), roles=[user.role])}"}


# ============== Database Fixtures ==============

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def db(engine):
    """Session factory bound to the test database. Open a fresh session per check."""
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def client(db):
    async def _session_override():
        async with db() as session:
            yield session

    app.dependency_overrides[get_async_session] = _session_override
    previous_limiter = app.state.rate_limiter
    app.state.rate_limiter = RateLimiter(None)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.state.rate_limiter = previous_limiter
    app.dependency_overrides.clear()


# ============== Seed Helpers ==============

async def _save(db, entity):
    async with db() as session:
        session.add(entity)
        await session.commit()
    return entity


@pytest.fixture
def make_user(db):
    async def _make(email: str = "owner@example.com", role: str = "user", is_active: bool = True) -> User:
        return await _save(db, User(email=email, full_name=email.split("@")[0], role=role, is_active=is_active))

    return _make


@pytest.fixture
def make_integration(db):
    async def _make(
        user: User,
        category: str,
        service: str,
        enabled: bool = True,
        api_key: Optional[str] = "key-123",
        sync_enabled: bool = True,
    ) -> UserIntegration:
        return await _save(
            db,
            UserIntegration(
                user_id=user.id,
                category=category,
                service=service,
                enabled=enabled,
                api_key=api_key,
                sync_enabled=sync_enabled,
            ),
        )

    return _make


@pytest.fixture
def make_item(db):
    async def _make(
        sku: str = "SKU-1",
        quantity: int = 10,
        min_amount: int = 5,
        sap_item_id: Optional[str] = None,
        name: str = "Widget",
    ) -> InventoryItem:
        return await _save(
            db,
            InventoryItem(
                name=name,
                sku=sku,
                sap_item_id=sap_item_id,
                quantity=quantity,
                min_amount=min_amount,
                price=10.0,
                unit_cost=5.0,
            ),
        )

    return _make


@pytest.fixture
def make_warehouse(db):
    async def _make(device_id: str = "WH-DEVICE-1", sensor_id: str = "S-1", zone_name: str = "Cold Room"):
        warehouse = await _save(db, Warehouse(name="Main Warehouse", iot_device_id=device_id))
        zone = await _save(
            db,
            WarehouseZone(warehouse_id=warehouse.id, name=zone_name, temperature_sensor_id=sensor_id, temperature=4.0),
        )
        return warehouse, zone

    return _make


@pytest.fixture
def make_dataset(db):
    async def _make(user: User, dataset_id: str = "ds-1", name: str = "Sales") -> BiDataset:
        return await _save(db, BiDataset(user_id=user.id, dataset_id=dataset_id, name=name))

    return _make


@pytest.fixture
def make_notification(db):
    async def _make(user: User, title: str = "Hello", read: bool = False, type: NotificationType = NotificationType.GENERAL) -> Notification:
        return await _save(
            db,
            Notification(user_id=user.id, type=type, title=title, message=f"{title} message", data={}, read=read),
        )

    return _make


@pytest.fixture
def fetch(db):
    """Load rows in a fresh session: await fetch(Model, **filters) -> list."""

    async def _fetch(model, **filters):
        async with db() as session:
            stmt = select(model).filter_by(**filters)
            return list((await session.execute(stmt)).scalars())

    return _fetch
