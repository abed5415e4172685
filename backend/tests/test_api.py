"""
NoteKeeper Backend — HTTP API Tests
=====================================

What:  End-to-end requests through the FastAPI app (httpx + ASGITransport)
       on both storage backends.

What we test:
    ✅ camelCase JSON in and out
    ✅ 401 without/with bad token, 403 for non-admins on /api/admin
    ✅ 403 vs 404 on foreign notes, 404 on foreign categories
    ✅ Error body shape and request id correlation
    ✅ Admin safeguards surface as 400
    ✅ Health endpoints report the active backend
"""

import pytest

from conftest import admin_headers, register_and_login


class TestAuthEndpoints:

    @pytest.mark.asyncio
    async def test_register_returns_token_and_camel_case_user(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "alice@example.com", "password": "secret-pw"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["token"]
        assert body["user"]["username"] == "alice"
        assert body["user"]["isAdmin"] is False
        assert body["user"]["isActive"] is True
        assert "passwordHash" not in body["user"]
        assert "password_hash" not in body["user"]

    @pytest.mark.asyncio
    async def test_register_validation_error_shape(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"username": "alice", "email": "alice@example.com", "password": "123"},
            headers={"X-Request-ID": "req-123"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation"
        assert body["request_id"] == "req-123"
        assert response.headers["X-Request-ID"] == "req-123"

    @pytest.mark.asyncio
    async def test_login_bad_credentials(self, client):
        response = await client.post(
            "/api/auth/login", json={"email": "admin@localhost", "password": "nope"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_profile_requires_token(self, client):
        missing = await client.get("/api/auth/profile")
        garbage = await client.get(
            "/api/auth/profile", headers={"Authorization": "Bearer garbage"}
        )

        assert missing.status_code == 401
        assert garbage.status_code == 401
        assert missing.json()["error"] == "authentication"

    @pytest.mark.asyncio
    async def test_profile_and_preferences(self, client):
        headers = await register_and_login(client, "alice")

        updated = await client.put(
            "/api/auth/preferences", json={"preferences": {"theme": "dark"}}, headers=headers
        )
        profile = await client.get("/api/auth/profile", headers=headers)

        assert updated.status_code == 200
        assert profile.json()["preferences"] == {"theme": "dark", "markdown": True}

    @pytest.mark.asyncio
    async def test_deactivated_user_token_stops_working(self, client, storage):
        headers = await register_and_login(client, "alice")
        alice = await storage.users.get_by_username("alice")
        await storage.users.update(alice.id, {"is_active": False})

        response = await client.get("/api/auth/profile", headers=headers)

        assert response.status_code == 401


class TestNoteEndpoints:

    @pytest.mark.asyncio
    async def test_create_and_list(self, client):
        headers = await register_and_login(client, "alice")

        created = await client.post(
            "/api/notes",
            json={"title": "T", "isPinned": True, "tags": ["work"]},
            headers=headers,
        )
        listed = await client.get("/api/notes", headers=headers)

        assert created.status_code == 201
        note = created.json()
        assert note["isPinned"] is True
        assert note["isFavorite"] is False
        assert note["categoryId"] is None
        assert note["categoryName"] is None
        assert note["viewCount"] == 0
        assert [n["id"] for n in listed.json()] == [note["id"]]

    @pytest.mark.asyncio
    async def test_partial_update_and_toggles(self, client):
        headers = await register_and_login(client, "alice")
        note = (await client.post("/api/notes", json={"title": "T", "content": "c"}, headers=headers)).json()

        updated = await client.put(f"/api/notes/{note['id']}", json={"title": "T2"}, headers=headers)
        favorite = await client.put(
            f"/api/notes/{note['id']}/favorite", json={"isFavorite": True}, headers=headers
        )
        favorites = await client.get("/api/notes", params={"favorites": "true"}, headers=headers)
        archive = await client.put(
            f"/api/notes/{note['id']}/archive", json={"isArchived": True}, headers=headers
        )
        active = await client.get("/api/notes", headers=headers)
        archived = await client.get("/api/notes", params={"archived": "true"}, headers=headers)

        assert updated.json()["title"] == "T2"
        assert updated.json()["content"] == "c"
        assert favorite.json() == {"success": True}
        assert [n["id"] for n in favorites.json()] == [note["id"]]
        assert archive.json() == {"success": True}
        assert active.json() == []
        assert [n["id"] for n in archived.json()] == [note["id"]]

    @pytest.mark.asyncio
    async def test_foreign_note_is_404_on_read_and_403_on_write(self, client):
        alice = await register_and_login(client, "alice")
        bob = await register_and_login(client, "bob")
        note = (await client.post("/api/notes", json={"title": "T"}, headers=alice)).json()

        read = await client.get(f"/api/notes/{note['id']}", headers=bob)
        write = await client.put(f"/api/notes/{note['id']}", json={"title": "x"}, headers=bob)
        delete = await client.delete(f"/api/notes/{note['id']}", headers=bob)

        assert read.status_code == 404
        assert write.status_code == 403
        assert delete.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_then_404(self, client):
        headers = await register_and_login(client, "alice")
        note = (await client.post("/api/notes", json={"title": "T"}, headers=headers)).json()

        first = await client.delete(f"/api/notes/{note['id']}", headers=headers)
        second = await client.delete(f"/api/notes/{note['id']}", headers=headers)

        assert first.status_code == 204
        assert second.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_category_is_400(self, client):
        headers = await register_and_login(client, "alice")

        response = await client.post(
            "/api/notes", json={"title": "T", "categoryId": "999999"}, headers=headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, client):
        headers = await register_and_login(client, "alice")

        response = await client.post("/api/notes", json={"tags": "not-a-list"}, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "validation"


class TestCategoryEndpoints:

    @pytest.mark.asyncio
    async def test_default_category_crud_and_stats(self, client):
        headers = await register_and_login(client, "alice")

        listed = (await client.get("/api/categories", headers=headers)).json()
        general = listed[0]
        created = await client.post(
            "/api/categories", json={"name": "Work", "color": "#FF0000"}, headers=headers
        )
        await client.post(
            "/api/notes", json={"title": "T", "categoryId": general["id"]}, headers=headers
        )
        stats = (await client.get("/api/categories/stats", headers=headers)).json()

        assert [c["name"] for c in listed] == ["General"]
        assert created.status_code == 201
        assert {s["name"]: s["noteCount"] for s in stats} == {"General": 1, "Work": 0}

    @pytest.mark.asyncio
    async def test_delete_category_uncategorizes_notes(self, client):
        headers = await register_and_login(client, "alice")
        category = (
            await client.post("/api/categories", json={"name": "Temp"}, headers=headers)
        ).json()
        note = (
            await client.post(
                "/api/notes", json={"title": "T", "categoryId": category["id"]}, headers=headers
            )
        ).json()

        listed = (await client.get("/api/notes", headers=headers)).json()
        deleted = await client.delete(f"/api/categories/{category['id']}", headers=headers)
        after = await client.get(f"/api/notes/{note['id']}", headers=headers)

        assert deleted.status_code == 204
        assert after.json()["categoryId"] is None
        assert after.json()["categoryName"] is None
        assert note["categoryName"] == "Temp"
        assert note["categoryColor"] == "#3498db"
        assert [(n["categoryName"], n["categoryColor"]) for n in listed] == [("Temp", "#3498db")]

    @pytest.mark.asyncio
    async def test_foreign_category_is_404(self, client):
        alice = await register_and_login(client, "alice")
        bob = await register_and_login(client, "bob")
        category = (await client.get("/api/categories", headers=alice)).json()[0]

        read = await client.get(f"/api/categories/{category['id']}", headers=bob)
        write = await client.put(
            f"/api/categories/{category['id']}", json={"name": "x"}, headers=bob
        )
        delete = await client.delete(f"/api/categories/{category['id']}", headers=bob)

        assert (read.status_code, write.status_code, delete.status_code) == (404, 404, 404)

    @pytest.mark.asyncio
    async def test_invalid_color_is_400(self, client):
        headers = await register_and_login(client, "alice")

        response = await client.post(
            "/api/categories", json={"name": "Bad", "color": "blue"}, headers=headers
        )

        assert response.status_code == 400


class TestAdminEndpoints:

    @pytest.mark.asyncio
    async def test_non_admin_is_forbidden(self, client):
        headers = await register_and_login(client, "alice")

        response = await client.get("/api/admin/dashboard", headers=headers)

        assert response.status_code == 403
        assert response.json()["error"] == "access_denied"

    @pytest.mark.asyncio
    async def test_dashboard_and_users(self, client):
        await register_and_login(client, "alice")
        headers = await admin_headers(client)

        dashboard = (await client.get("/api/admin/dashboard", headers=headers)).json()
        users = (await client.get("/api/admin/users", headers=headers)).json()
        alice = next(u for u in users if u["username"] == "alice")
        details = (await client.get(f"/api/admin/users/{alice['id']}", headers=headers)).json()

        assert dashboard["totalUsers"] == 2
        assert dashboard["activeUsers"] == 2
        assert dashboard["totalCategories"] == 1
        assert details["categoryCount"] == 1
        assert details["noteCount"] == 0

    @pytest.mark.asyncio
    async def test_last_admin_cannot_demote_self(self, client, storage):
        headers = await admin_headers(client)
        admin = await storage.users.get_by_username("admin")

        response = await client.put(
            f"/api/admin/users/{admin.id}", json={"isAdmin": False}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "last_admin_protected"

    @pytest.mark.asyncio
    async def test_admin_cannot_delete_self(self, client, storage):
        headers = await admin_headers(client)
        admin = await storage.users.get_by_username("admin")

        response = await client.delete(f"/api/admin/users/{admin.id}", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "validation"

    @pytest.mark.asyncio
    async def test_deactivate_user_blocks_login(self, client, storage):
        await register_and_login(client, "alice")
        headers = await admin_headers(client)
        alice = await storage.users.get_by_username("alice")

        deleted = await client.delete(f"/api/admin/users/{alice.id}", headers=headers)
        login = await client.post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "secret-pw"}
        )

        assert deleted.status_code == 204
        assert login.status_code == 401

    @pytest.mark.asyncio
    async def test_promote_user(self, client, storage):
        await register_and_login(client, "alice")
        headers = await admin_headers(client)
        alice = await storage.users.get_by_username("alice")

        response = await client.put(
            f"/api/admin/users/{alice.id}", json={"isAdmin": True}, headers=headers
        )

        assert response.status_code == 200
        assert response.json()["isAdmin"] is True


class TestHealthEndpoints:

    @pytest.mark.asyncio
    async def test_public_health(self, client, test_settings):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["storage"] == test_settings.storage_backend
        assert body["storageStatus"] == "connected"

    @pytest.mark.asyncio
    async def test_admin_system_health(self, client, test_settings):
        headers = await admin_headers(client)

        response = await client.get("/api/admin/system/health", headers=headers)

        assert response.status_code == 200
        assert response.json()["storage"] == test_settings.storage_backend

    @pytest.mark.asyncio
    async def test_health_status_documents_only_reported_values(self, client):
        schema = (await client.get("/openapi.json")).json()

        status_field = schema["components"]["schemas"]["HealthResponse"]["properties"]["status"]
        assert status_field["description"] == "healthy or unhealthy"
