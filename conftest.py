"""
Root conftest for the pytest test suite.

This file contains the main fixtures that are used across the entire test suite.

Each test gets a fresh in-memory MongoDB (mongomock-motor) and an in-memory
media store, and the production lifespan is replaced so that no real
database or Cloudinary account is contacted.

Key Fixtures:
- `anyio_backend`: Specifies the asyncio backend.
- `test_settings`: Settings used to build the app under test.
- `mongo_db`: A fresh mock database with indexes and two seeded users.
- `media_store`: A `FakeMediaStore` recording uploads and removals.
- `app_for_testing`: The FastAPI application with the test lifespan.
- `client`: A non-authenticated TestClient.
- `customer_token` / `admin_token`: Bearer tokens for the seeded users.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Generator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from report_api.core import database
from report_api.core.config import Settings
from report_api.core.media import StoredAsset
from report_api.features.auth import service as auth_service
from report_api.features.auth.security import get_password_hash
from report_api.main import create_app

CUSTOMER_USERNAME = "customerfixture"
CUSTOMER_PASSWORD = "customerpassword123"
ADMIN_USERNAME = "adminfixture"
ADMIN_PASSWORD = "adminpassword123"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeMediaStore:
    """Stands in for `MediaStore`; keeps uploaded files in memory."""

    def __init__(self):
        self.uploaded: dict[str, bytes] = {}
        self.destroyed: list[str] = []

    async def upload(self, content: bytes, filename: str) -> StoredAsset:
        public_id = f"report_images/{len(self.uploaded) + 1}-{filename.rsplit('.', 1)[0]}"
        self.uploaded[public_id] = content
        return StoredAsset(
            public_id=public_id,
            url=f"https://res.cloudinary.com/test/image/upload/{public_id}",
            format=filename.rsplit(".", 1)[-1].lower(),
            bytes=len(content),
        )

    async def destroy(self, public_id: str) -> None:
        self.destroyed.append(public_id)
        self.uploaded.pop(public_id, None)


def _app_with_test_lifespan(settings: Settings, db=None, store=None) -> FastAPI:
    app = create_app(settings)

    @asynccontextmanager
    async def test_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if db is not None:
            app.state.db = db
        app.state.media_store = store
        yield

    app.router.lifespan_context = test_lifespan
    return app


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_name="report_api_test",
        secret_key="test-secret-key",
        cloudinary_cloud_name="test",
        cloudinary_api_key="key",
        cloudinary_api_secret="secret",
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def mongo_db():
    """
    A fresh mock database for each test, with the production indexes and a
    customer and an admin user.
    """
    db = AsyncMongoMockClient()["report_api_test"]
    await database.ensure_indexes(db)
    await auth_service.create_user(
        db,
        username=CUSTOMER_USERNAME,
        email="customerfixture@example.com",
        hashed_password=get_password_hash(CUSTOMER_PASSWORD),
        role="customer",
    )
    await auth_service.create_user(
        db,
        username=ADMIN_USERNAME,
        email="adminfixture@example.com",
        hashed_password=get_password_hash(ADMIN_PASSWORD),
        role="admin",
    )
    return db


@pytest.fixture
def media_store() -> FakeMediaStore:
    return FakeMediaStore()


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def app_factory(media_store: FakeMediaStore):
    """Builds apps from custom settings, still with the test lifespan."""

    def _factory(settings: Settings, db=None) -> FastAPI:
        return _app_with_test_lifespan(settings, db=db, store=media_store)

    return _factory


@pytest.fixture
def gateway_app(test_settings: Settings, app_factory) -> FastAPI:
    """The application without a database, for tests of the request pipeline only."""
    return app_factory(test_settings)


@pytest.fixture
def gateway_client(gateway_app: FastAPI) -> Generator[TestClient, Any, None]:
    with TestClient(gateway_app) as tc:
        yield tc


@pytest.fixture
def app_for_testing(test_settings: Settings, mongo_db, media_store: FakeMediaStore) -> FastAPI:
    """
    Provides the application with its production lifespan replaced by one
    that installs the mock database and the fake media store.
    """
    return _app_with_test_lifespan(test_settings, db=mongo_db, store=media_store)


@pytest.fixture
def client(app_for_testing: FastAPI) -> Generator[TestClient, Any, None]:
    """
    Provides a non-authenticated starlette TestClient.
    """
    with TestClient(app_for_testing) as tc:
        yield tc


def _login(client: TestClient, username: str, password: str) -> str:
    response = client.post("/api/auth/token", data={"username": username, "password": password})
    if response.status_code != 200:
        raise Exception(f"Authentication failed for {username}: {response.text}")
    return response.json()["access_token"]


@pytest.fixture
def customer_token(client: TestClient) -> str:
    return _login(client, CUSTOMER_USERNAME, CUSTOMER_PASSWORD)


@pytest.fixture
def admin_token(client: TestClient) -> str:
    return _login(client, ADMIN_USERNAME, ADMIN_PASSWORD)
