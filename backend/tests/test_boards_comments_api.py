"""Board listing, comments, health, rate limiting and error body tests."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from pinboard.main import create_app
from pinboard.models import Board, Comment, Pin

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_pin(user_id, created_at, board_id=None, title="Pin"):
    return Pin(
        media=f"/pins/{title}.png",
        width=100,
        height=100,
        title=title,
        description="seeded",
        board_id=board_id,
        user_id=user_id,
        created_at=created_at,
    )


class TestBoards:

    @pytest.mark.asyncio
    async def test_boards_with_count_and_first_pin(self, client, register_user, db_session):
        user, _ = await register_user("alice")
        user_id = uuid.UUID(user["id"])

        travel = Board(title="Travel", user_id=user_id, created_at=T0)
        empty = Board(title="Empty", user_id=user_id, created_at=T0 + timedelta(hours=1))
        db_session.add_all([travel, empty])
        await db_session.flush()
        db_session.add_all([
            make_pin(user_id, T0 + timedelta(minutes=30), travel.id, title="second"),
            make_pin(user_id, T0 + timedelta(minutes=10), travel.id, title="first"),
            make_pin(user_id, T0 + timedelta(minutes=50), travel.id, title="third"),
            make_pin(user_id, T0 + timedelta(minutes=5), None, title="unboarded"),
        ])
        await db_session.commit()

        response = await client.get(f"/boards/{user['id']}")
        assert response.status_code == 200
        boards = response.json()

        assert [b["title"] for b in boards] == ["Travel", "Empty"]
        assert boards[0]["pinCount"] == 3
        assert boards[0]["firstPin"]["title"] == "first"
        assert boards[1]["pinCount"] == 0
        assert boards[1]["firstPin"] is None

    @pytest.mark.asyncio
    async def test_user_without_boards(self, client):
        response = await client.get(f"/boards/{uuid.uuid4()}")
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_only_that_users_boards(self, client, register_user, db_session):
        alice, _ = await register_user("alice")
        bob, _ = await register_user("bob")
        db_session.add_all([
            Board(title="Alice's", user_id=uuid.UUID(alice["id"])),
            Board(title="Bob's", user_id=uuid.UUID(bob["id"])),
        ])
        await db_session.commit()

        boards = (await client.get(f"/boards/{bob['id']}")).json()
        assert [b["title"] for b in boards] == ["Bob's"]


class TestComments:

    @pytest.mark.asyncio
    async def test_comments_newest_first_with_author(self, client, register_user, db_session):
        user, _ = await register_user("alice")
        user_id = uuid.UUID(user["id"])
        pin = make_pin(user_id, T0)
        db_session.add(pin)
        await db_session.flush()
        db_session.add_all([
            Comment(description="t1", pin_id=pin.id, user_id=user_id, created_at=T0 + timedelta(seconds=1)),
            Comment(description="t3", pin_id=pin.id, user_id=user_id, created_at=T0 + timedelta(seconds=3)),
            Comment(description="t2", pin_id=pin.id, user_id=user_id, created_at=T0 + timedelta(seconds=2)),
        ])
        await db_session.commit()

        response = await client.get(f"/comments/{pin.id}")
        assert response.status_code == 200
        comments = response.json()
        assert [c["description"] for c in comments] == ["t3", "t2", "t1"]
        assert comments[0]["author"]["username"] == "alice"
        assert comments[0]["author"]["displayName"] == "Alice"

    @pytest.mark.asyncio
    async def test_create_comment(self, client, register_user, use_token, db_session):
        user, token = await register_user("alice")
        pin = make_pin(uuid.UUID(user["id"]), T0)
        db_session.add(pin)
        await db_session.commit()
        use_token(token)

        response = await client.post(
            "/comments",
            json={"description": "  Lovely colours  ", "pin": str(pin.id)},
        )
        assert response.status_code == 201
        body = response.json()
        assert body["description"] == "Lovely colours"
        assert body["pinId"] == str(pin.id)
        assert body["userId"] == user["id"]

        listed = (await client.get(f"/comments/{pin.id}")).json()
        assert [c["id"] for c in listed] == [body["id"]]

    @pytest.mark.asyncio
    async def test_comment_on_unknown_pin_is_404(self, client, register_user, use_token):
        _, token = await register_user("alice")
        use_token(token)

        response = await client.post(
            "/comments",
            json={"description": "hello", "pin": str(uuid.uuid4())},
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_blank_comment_is_400(self, client, register_user, use_token, db_session):
        user, token = await register_user("alice")
        pin = make_pin(uuid.UUID(user["id"]), T0)
        db_session.add(pin)
        await db_session.commit()
        use_token(token)

        response = await client.post("/comments", json={"description": "   ", "pin": str(pin.id)})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_comment_requires_login(self, client):
        response = await client.post(
            "/comments",
            json={"description": "hello", "pin": str(uuid.uuid4())},
        )
        assert response.status_code == 401


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_reports_dependencies(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["image_service"] == "available"

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        response = await client.get("/pins", headers={"X-Request-ID": "abc12345"})
        assert response.headers["X-Request-ID"] == "abc12345"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("supplied", ["x" * 65, "<script>alert(1)</script>", "two words"])
    async def test_unsafe_request_id_is_replaced(self, client, supplied):
        response = await client.get(f"/pins/{uuid.uuid4()}", headers={"X-Request-ID": supplied})
        rid = response.headers["X-Request-ID"]
        assert rid != supplied
        assert len(rid) == 8
        assert response.json()["request_id"] == rid

    @pytest.mark.asyncio
    async def test_error_body_shape(self, client):
        response = await client.get(f"/pins/{uuid.uuid4()}", headers={"X-Request-ID": "req-42"})
        body = response.json()
        assert set(body) == {"error", "message", "details", "request_id"}
        assert body["request_id"] == "req-42"


class TestRateLimit:

    @pytest.mark.asyncio
    async def test_requests_over_the_limit_get_429(self, test_settings, stub_image_service):
        app = create_app(test_settings.model_copy(update={"rate_limit_requests": 10}))
        app.state.image_service = stub_image_service
        await app.state.db.create_all()

        transport = ASGITransport(app=app)
        try:
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                statuses = [(await client.get("/pins")).status_code for _ in range(10)]
                limited = await client.get("/pins")
                health = await client.get("/health")
        finally:
            await app.state.db.dispose()

        assert statuses == [200] * 10
        assert limited.status_code == 429
        assert int(limited.headers["Retry-After"]) > 0
        body = limited.json()
        assert set(body) == {"error", "message", "details", "request_id"}
        assert body["error"] == "rate_limit_exceeded"
        assert health.status_code == 200
