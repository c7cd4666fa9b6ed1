"""Tests for profiles, history, dashboard, discover, reports and the contact form."""

from tests.fixtures.sample_media import create_minimal_png


class TestProfile:
    """Tests for PATCH /api/users/profile."""

    def test_update_profile_fields(self, client, user):
        response = client.patch("/api/users/profile", data={"display_name": "Alice A.", "bio": "Hi there"})
        assert response.status_code == 200
        data = response.json()
        assert data["display_name"] == "Alice A."
        assert data["bio"] == "Hi there"
        assert data["username"] == "alice"
        assert "password" not in data

    def test_change_username(self, client, user):
        response = client.patch("/api/users/profile", data={"username": "alice_new"})
        assert response.status_code == 200
        assert client.get("/api/auth/me").json()["username"] == "alice_new"

    def test_username_taken(self, client, register):
        register("bob")
        register("alice")
        response = client.patch("/api/users/profile", data={"username": "bob"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Username already taken"

    def test_keeping_own_username_is_allowed(self, client, user):
        response = client.patch("/api/users/profile", data={"username": "alice", "bio": "same name"})
        assert response.status_code == 200

    def test_username_too_short(self, client, user):
        response = client.patch("/api/users/profile", data={"username": "ab"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "username"

    def test_avatar_upload_replaces_previous(self, client, user, app_config):
        first = client.patch(
            "/api/users/profile",
            files={"profile_image": ("me.png", create_minimal_png(), "image/png")},
        ).json()["profile_image"]
        assert first.startswith("/media/avatars/")

        second = client.patch(
            "/api/users/profile",
            files={"profile_image": ("me2.png", create_minimal_png(), "image/png")},
        ).json()["profile_image"]
        assert not (app_config["avatars"] / first.rsplit("/", 1)[1]).exists()
        assert (app_config["avatars"] / second.rsplit("/", 1)[1]).exists()

    def test_avatar_wrong_type(self, client, user):
        response = client.patch(
            "/api/users/profile",
            files={"profile_image": ("me.exe", b"MZ", "application/octet-stream")},
        )
        assert response.status_code == 400


class TestHistory:
    """Tests for GET /api/users/{id}/history."""

    def test_history_newest_first(self, client, user, upload):
        first = upload("First")
        second = upload("Second")
        client.get(f"/api/videos/{first['id']}")
        client.get(f"/api/videos/{second['id']}")

        history = client.get(f"/api/users/{user['id']}/history").json()
        assert [entry["video_id"] for entry in history] == [second["id"], first["id"]]

    def test_other_users_history_denied(self, client, register):
        alice = register("alice")
        register("bob")
        response = client.get(f"/api/users/{alice['id']}/history")
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"

    def test_anonymous_view_has_no_history(self, client, user, upload, login):
        video = upload("Anon view")
        client.cookies.clear()
        client.get(f"/api/videos/{video['id']}")
        login("alice@example.com")
        assert client.get(f"/api/users/{user['id']}/history").json() == []


class TestDashboard:
    """Tests for GET /api/dashboard/stats."""

    def test_empty_dashboard(self, client, user):
        stats = client.get("/api/dashboard/stats").json()
        assert stats == {"total_videos": 0, "total_views": 0, "total_likes": 0, "subscriber_count": 0}

    def test_dashboard_totals(self, client, register, upload, login):
        register("alice")
        first = upload("One")
        second = upload("Two")
        channel = client.get("/api/channels/user").json()[0]
        for _ in range(2):
            client.post(f"/api/videos/{first['id']}/view")
        client.post(f"/api/videos/{second['id']}/view")

        register("bob")
        client.post(f"/api/videos/{first['id']}/like")
        client.post(f"/api/videos/{second['id']}/like")
        client.post(f"/api/channels/{channel['id']}/subscribe")

        login("alice@example.com")
        stats = client.get("/api/dashboard/stats").json()
        assert stats == {"total_videos": 2, "total_views": 3, "total_likes": 2, "subscriber_count": 1}


class TestDiscover:
    """Tests for GET /api/discover."""

    def test_discover_ranks_by_interest_and_skips_watched(self, client, user, upload):
        """Fresh videos sharing a watched tag outrank fresh unrelated ones."""
        watched = upload("Watched", tags="solo")
        related = upload("Related", tags="solo")
        unrelated = upload("Unrelated", tags="other")
        client.get(f"/api/videos/{watched['id']}")

        feed = client.get("/api/discover").json()
        assert [video["id"] for video in feed] == [related["id"], unrelated["id"]]
        assert feed[0]["score"] > feed[1]["score"]
        assert feed[0]["creator"]["username"] == "alice"

    def test_discover_requires_login(self, client):
        assert client.get("/api/discover").status_code == 401


class TestReports:
    """Tests for POST /api/reports."""

    def test_create_report(self, client, user, upload):
        video = upload("Reported")
        response = client.post(
            "/api/reports",
            json={"report_type": "video", "content_id": video["id"], "reason": "Spam", "details": "Reposted"},
        )
        assert response.status_code == 201
        report = response.json()
        assert report["status"] == "pending"
        assert report["reported_by"] == user["id"]
        assert report["report_type"] == "video"
        assert report["resolved_at"] is None

    def test_invalid_report_type(self, client, user):
        response = client.post("/api/reports", json={"report_type": "channel", "content_id": 1, "reason": "x"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "report_type"

    def test_report_requires_login(self, client):
        response = client.post("/api/reports", json={"report_type": "video", "content_id": 1, "reason": "x"})
        assert response.status_code == 401


class TestContact:
    """Tests for POST /api/contact."""

    def test_contact_message(self, client):
        response = client.post(
            "/api/contact",
            json={
                "name": "Visitor",
                "email": "visitor@example.com",
                "subject": "Question",
                "message": "How do I upload a video?",
            },
        )
        assert response.status_code == 201
        assert response.json() == {"message": "Message received"}

    def test_contact_validation(self, client):
        response = client.post(
            "/api/contact",
            json={"name": "V", "email": "nope", "subject": "Hi", "message": "short"},
        )
        assert response.status_code == 400
        paths = {error["path"] for error in response.json()["errors"]}
        assert paths == {"name", "email", "subject", "message"}
