"""
XFound Backend — HTTP API Tests
=================================

Routes, dependencies and global exception handlers through httpx's ASGI
transport. The database session and the current user are replaced with
dependency overrides; services are patched where a route would query.
"""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio

from app.database import get_db_session
from app.dependencies import get_current_user
from app.exceptions import NotFoundError
from app.main import app
from app.models.user import User
from app.schemas.chat import ChatResponse

CURRENT_USER = User(
    id=uuid.uuid4(),
    username="priya",
    email="priya@example.com",
    password_hash="x",
)


@pytest_asyncio.fixture
async def overrides(mock_db_session):
    async def _db():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[get_current_user] = lambda: CURRENT_USER
    try:
        yield mock_db_session
    finally:
        app.dependency_overrides.clear()


class TestAuthGuards:

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self, test_client):
        response = await test_client.get("/api/chats/user")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"] == "authentication_error"

    @pytest.mark.asyncio
    async def test_garbage_token_is_401(self, test_client):
        response = await test_client.get(
            "/api/chats/user", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    @pytest.mark.asyncio
    async def test_logout_without_token_is_401(self, test_client):
        response = await test_client.post("/api/auth/logout")
        assert response.status_code == 401


class TestAuthRoutes:

    @pytest.mark.asyncio
    async def test_signup_missing_field_is_422(self, test_client):
        response = await test_client.post(
            "/api/auth/signup", json={"username": "priya", "password": "secret123"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_signup_password_mismatch_is_400(self, test_client, overrides):
        response = await test_client.post(
            "/api/auth/signup",
            json={
                "username": "priya",
                "email": "priya@example.com",
                "password": "secret123",
                "confirmPassword": "secret124",
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Passwords do not match"

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email_is_404(self, test_client, overrides):
        result = MagicMock()
        result.scalars.return_value.first.return_value = None
        overrides.execute.return_value = result

        response = await test_client.post(
            "/api/auth/forgot-password", json={"email": "ghost@example.com"}
        )
        assert response.status_code == 404


class TestItemRoutes:

    @pytest.mark.asyncio
    async def test_search_without_query_is_400(self, test_client, overrides):
        response = await test_client.get("/api/items/search")
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_missing_item_is_404(self, test_client, overrides):
        overrides.get.return_value = None
        response = await test_client.get(f"/api/items/{uuid.uuid4()}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_create_without_image_is_400(self, test_client, overrides):
        response = await test_client.post(
            "/api/items",
            data={
                "name": "Umbrella",
                "description": "Black umbrella",
                "category": "Accessories",
                "location": "Gate 2",
                "college_name": "VJTI",
                "status": "Found",
            },
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Please upload an image"

    @pytest.mark.asyncio
    async def test_create_with_invalid_college_is_400(self, test_client, overrides, sample_image_bytes):
        response = await test_client.post(
            "/api/items",
            data={
                "name": "Umbrella",
                "description": "Black umbrella",
                "category": "Accessories",
                "location": "Gate 2",
                "college_name": "HARVARD",
            },
            files={"image": ("umbrella.jpg", sample_image_bytes, "image/jpeg")},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid college name"

    @pytest.mark.asyncio
    async def test_other_users_listing_is_403(self, test_client, overrides):
        response = await test_client.get(f"/api/items/user/{uuid.uuid4()}")
        assert response.status_code == 403


class TestChatRoutes:

    @pytest.mark.asyncio
    async def test_open_chat_passes_caller(self, test_client, overrides):
        other = uuid.uuid4()
        now = datetime.now(timezone.utc)
        chat = ChatResponse(
            id=uuid.uuid4(), item_id=uuid.uuid4(),
            participants=[CURRENT_USER.id, other], messages=[],
            created_at=now, updated_at=now,
        )
        with patch("app.routes.chats.chat_service") as service:
            service.get_or_create_chat = AsyncMock(return_value=chat)
            response = await test_client.post(
                "/api/chats",
                json={"itemId": str(chat.item_id), "participants": [str(CURRENT_USER.id), str(other)]},
            )

        assert response.status_code == 200
        assert response.json()["id"] == str(chat.id)
        args = service.get_or_create_chat.call_args.args
        assert args[1] == CURRENT_USER.id
        assert args[2] == chat.item_id

    @pytest.mark.asyncio
    async def test_missing_chat_is_404(self, test_client, overrides):
        with patch("app.routes.chats.chat_service") as service:
            service.get_chat = AsyncMock(side_effect=NotFoundError(resource="chat"))
            response = await test_client.get(f"/api/chats/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestInfrastructure:

    @pytest.mark.asyncio
    async def test_health_reports_database_down_and_online_users(self, test_client):
        engine = MagicMock()
        engine.connect.side_effect = OSError("connection refused")
        with patch("app.routes.health.engine", engine):
            response = await test_client.get("/health")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["database"] == "disconnected"
        assert body["online_users"] == len(app.state.presence)

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, test_client):
        response = await test_client.get("/api/items/search", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"

    @pytest.mark.asyncio
    async def test_missing_file_is_404(self, test_client):
        response = await test_client.get("/api/files/2026/01/01/nothing.jpg")
        assert response.status_code == 404
