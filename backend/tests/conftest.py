"""
NoteKeeper Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every storage-dependent test runs twice through the parametrized
       `storage` fixture: once on SQLite (aiosqlite, a fresh file under
       tmp_path) and once on the JSON-file backend (a fresh data dir).

Fixture Hierarchy (all function-scoped):
    test_settings ── hasher ── admin_seed ── storage ──┬── user_service, ...
                                                       └── app ── client
    ASGITransport does not run the lifespan, so `storage` initializes and
    closes the provider itself and `app` receives it ready to use.
"""

import os

# Before any notekeeper import: the module-level Settings() reads these.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")

from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from notekeeper.config import Settings
from notekeeper.security import PasswordHasher, TokenService
from notekeeper.services import AdminService, CategoryService, NoteService, UserService
from notekeeper.storage import AdminSeed, StorageProvider, create_storage

ADMIN_USERNAME = "admin"
ADMIN_EMAIL = "admin@localhost"
ADMIN_PASSWORD = "admin123"


# ══════════════════════════════════════════════════════════════════════════
# Configuration & Auth Capabilities
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture(params=["database", "file"])
def test_settings(request, tmp_path) -> Settings:
    """Isolated settings per test; the param picks the storage backend."""
    return Settings(
        storage_backend=request.param,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'notekeeper-test.db'}",
        data_dir=str(tmp_path / "data"),
        jwt_secret="test-secret-not-for-production",
        bcrypt_rounds=4,
        bootstrap_admin_username=ADMIN_USERNAME,
        bootstrap_admin_email=ADMIN_EMAIL,
        bootstrap_admin_password=ADMIN_PASSWORD,
        log_level="WARNING",
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret="test-secret-not-for-production", expire_minutes=5)


@pytest.fixture
def admin_seed(hasher) -> AdminSeed:
    return AdminSeed(
        username=ADMIN_USERNAME,
        email=ADMIN_EMAIL,
        password_hash=hasher.hash(ADMIN_PASSWORD),
    )


# ══════════════════════════════════════════════════════════════════════════
# Storage (both backends)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def storage(test_settings, admin_seed) -> AsyncGenerator[StorageProvider, None]:
    """An initialized provider holding only the seeded admin."""
    provider = create_storage(test_settings, admin_seed=admin_seed)
    await provider.initialize()
    yield provider
    await provider.close()


@pytest_asyncio.fixture
async def admin_user(storage):
    return await storage.users.get_by_username(ADMIN_USERNAME)


@pytest_asyncio.fixture
async def two_users(storage, hasher) -> Dict[str, str]:
    """Two plain users; returns {"alice": id, "bob": id}."""
    ids = {}
    for name in ("alice", "bob"):
        user = await storage.users.create(
            username=name,
            email=f"{name}@example.com",
            password_hash=hasher.hash("password1"),
        )
        ids[name] = user.id
    return ids


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def user_service(storage, hasher, tokens) -> UserService:
    return UserService(storage, hasher, tokens)


@pytest.fixture
def admin_service(storage) -> AdminService:
    return AdminService(storage)


@pytest.fixture
def category_service(storage) -> CategoryService:
    return CategoryService(storage)


@pytest.fixture
def note_service(storage) -> NoteService:
    return NoteService(storage)


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app(test_settings, storage):
    from notekeeper.main import create_app

    return create_app(test_settings, storage=storage)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def register_and_login(client: AsyncClient, username: str) -> Dict[str, str]:
    """Registers `username` and returns Authorization headers for it."""
    response = await client.post(
        "/api/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": "secret-pw"},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


async def admin_headers(client: AsyncClient) -> Dict[str, str]:
    response = await client.post(
        "/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
