"""
Pinboard Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Each test gets its own application built by create_app() over a
       fresh in-memory SQLite database (aiosqlite + StaticPool), with the
       ImageKit client replaced by a stub that never leaves the process.

Fixture Hierarchy (all function-scoped):
    test_settings
    └── stub_image_service
        └── app            create_app(test_settings), tables created
            ├── client     httpx AsyncClient over ASGITransport
            └── db_session direct session for seeding rows
    make_image             Pillow-generated image bytes of a given size
"""

import io
import itertools
import uuid
from typing import Callable, Dict, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from pinboard.config import Settings
from pinboard.main import create_app
from pinboard.services.imagekit_service import CircuitBreaker, UploadResult


# ══════════════════════════════════════════════════════════════════════════
# Settings & image service stub
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        database_url="sqlite+aiosqlite://",
        jwt_secret="test-secret-not-for-production",
        imagekit_private_key="private_test_key",
        imagekit_url_endpoint="https://ik.imagekit.io/pinboard-test",
        rate_limit_requests=10_000,
        retry_max_attempts=2,
        retry_min_wait=0,
        retry_max_wait=1,
        cb_failure_threshold=3,
        cb_recovery_timeout=60,
        log_level="WARNING",
    )


class StubImageService:
    """
    Stands in for ImageKitService in API tests.

    Records every upload and reports the dimensions requested by the
    transformation, as ImageKit does for a pre-transformation.
    """

    is_configured = True

    def __init__(self):
        self.uploads: List[Dict] = []
        self.deleted: List[str] = []
        self.fail_with: Exception = None
        self.circuit_breaker = CircuitBreaker()
        self._ids = itertools.count(1)

    async def upload(self, content: bytes, filename: str, transformation: str) -> UploadResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.uploads.append(
            {"filename": filename, "size": len(content), "transformation": transformation}
        )
        params = dict(part.split("-", 1) for part in transformation.split(",")[:2])
        file_id = f"file_{next(self._ids)}"
        return UploadResult(
            file_id=file_id,
            file_path=f"/pins/{file_id}_{filename}",
            url=f"https://ik.imagekit.io/pinboard-test/pins/{file_id}_{filename}",
            width=int(params["w"]),
            height=int(params["h"]),
        )

    async def delete_file(self, file_id: str) -> None:
        self.deleted.append(file_id)

    async def aclose(self) -> None:
        pass


@pytest.fixture
def stub_image_service() -> StubImageService:
    return StubImageService()


# ══════════════════════════════════════════════════════════════════════════
# Application & HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def app(test_settings, stub_image_service):
    application = create_app(test_settings)
    application.state.image_service = stub_image_service
    await application.state.db.create_all()
    yield application
    await application.state.db.dispose()


@pytest_asyncio.fixture
async def client(app):
    """
    HTTP client talking to the app in-process.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest_asyncio.fixture
async def db_session(app):
    """Session for seeding rows directly; commit explicitly before using the API."""
    async with app.state.db.session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_image() -> Callable[..., bytes]:
    def _make(width: int = 120, height: int = 80, fmt: str = "PNG") -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), (200, 120, 40)).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def register_user(client, app):
    """
    Register a user through the API and return (user_json, token).

    The token is signed with the app's codec rather than read back from the
    cookie jar, so tests can switch identities with use_token().
    """
    async def _register(username: str = "alice", password: str = "secret123") -> tuple:
        response = await client.post(
            "/users/auth/register",
            json={
                "username": username,
                "displayName": username.title(),
                "email": f"{username}@example.com",
                "password": password,
            },
        )
        assert response.status_code == 201, response.text
        user = response.json()
        # Stay anonymous until the test picks an identity
        client.cookies.clear()
        token = app.state.token_codec.encode(uuid.UUID(user["id"]))
        return user, token

    return _register


@pytest.fixture
def use_token(client):
    """Make subsequent requests as the owner of ``token`` (None = anonymous)."""
    def _use(token):
        client.cookies.clear()
        if token is not None:
            client.cookies.set("token", token)

    return _use
