"""Tests for video upload, feeds, the watch page, reactions and comments."""

from tests.fixtures.sample_media import ADMIN_EMAIL, create_minimal_mp4, create_minimal_png


class TestUploadVideo:
    """Tests for POST /api/videos."""

    def test_upload_stores_file_and_metadata(self, client, user, upload, app_config):
        """The file lands under the videos dir and the row carries the parsed metadata."""
        video = upload(
            "My First Clip",
            description="hello",
            duration=300,
            tags="solo, amateur ,,",
            categories='["Amateur", "Solo"]',
        )

        assert video["title"] == "My First Clip"
        assert video["user_id"] == user["id"]
        assert video["tags"] == ["solo", "amateur"]
        assert video["categories"] == ["Amateur", "Solo"]
        assert video["views"] == 0
        assert video["likes"] == 0
        assert video["is_published"] is True
        assert video["is_quickie"] is False
        assert video["creator"]["username"] == "alice"
        assert video["file_path"].startswith("/media/videos/")
        assert video["file_path"].endswith(".mp4")

        stored = app_config["videos"] / video["file_path"].rsplit("/", 1)[1]
        assert stored.read_bytes() == create_minimal_mp4()

    def test_upload_with_thumbnail(self, client, user, upload, app_config):
        """An optional thumbnail is stored next to the video."""
        video = upload("With Thumb", with_thumbnail=True)
        assert video["thumbnail_path"].startswith("/media/thumbnails/")
        stored = app_config["thumbnails"] / video["thumbnail_path"].rsplit("/", 1)[1]
        assert stored.exists()

    def test_upload_malformed_categories_fall_back_to_commas(self, client, user, upload):
        """Categories that aren't a JSON list are split on commas."""
        video = upload("Fallback", categories="Amateur, Solo")
        assert video["categories"] == ["Amateur", "Solo"]

    def test_upload_requires_login(self, client):
        """Anonymous uploads are rejected."""
        response = client.post(
            "/api/videos",
            data={"title": "Nope"},
            files={"video_file": ("clip.mp4", create_minimal_mp4(), "video/mp4")},
        )
        assert response.status_code == 401

    def test_upload_without_file(self, client, user):
        """Metadata without a file is a 400."""
        response = client.post("/api/videos", data={"title": "No file"})
        assert response.status_code == 400
        assert response.json()["detail"] == "No video file uploaded"

    def test_upload_unsupported_extension(self, client, user):
        """Only video extensions are accepted."""
        response = client.post(
            "/api/videos",
            data={"title": "Script"},
            files={"video_file": ("evil.sh", b"#!/bin/sh", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Unsupported file type.")

    def test_upload_missing_title(self, client, user):
        """A missing title is a validation error on the title field."""
        response = client.post(
            "/api/videos",
            files={"video_file": ("clip.mp4", create_minimal_mp4(), "video/mp4")},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "title"

    def test_quickie_longer_than_limit_rejected(self, client, user, app_config):
        """A quickie over 120 seconds fails validation on duration and stores nothing."""
        response = client.post(
            "/api/videos",
            data={"title": "Too long", "is_quickie": "true", "duration": "121"},
            files={"video_file": ("clip.mp4", create_minimal_mp4(), "video/mp4")},
        )
        assert response.status_code == 400
        error = response.json()["errors"][0]
        assert error["path"] == "duration"
        assert error["code"] == "quickie_too_long"
        assert list(app_config["videos"].iterdir()) == []

    def test_quickie_at_limit_accepted(self, client, user, upload):
        """Exactly 120 seconds is still a quickie."""
        video = upload("Short", is_quickie=True, duration=120)
        assert video["is_quickie"] is True
        assert video["duration"] == 120

    def test_non_numeric_duration_rejected(self, client, user):
        """Duration must be an integer."""
        response = client.post(
            "/api/videos",
            data={"title": "Bad duration", "duration": "abc"},
            files={"video_file": ("clip.mp4", create_minimal_mp4(), "video/mp4")},
        )
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "duration"

    def test_upload_is_auto_tagged(self, client, user, upload):
        """Detected categories are appended to both lists; the uploader's own come first."""
        video = upload("Homemade couple weekend", duration=900, tags="beach", categories="Outdoor")
        assert video["categories"] == ["Outdoor", "amateur", "couples"]
        assert video["tags"] == ["beach", "amateur", "couples"]
        assert video["is_quickie"] is False

    def test_short_upload_becomes_quickie(self, client, user, upload):
        video = upload("Evening", duration=45)
        assert video["is_quickie"] is True
        quickies = client.get("/api/videos/quickies").json()
        assert [q["id"] for q in quickies] == [video["id"]]

    def test_quickie_keywords_never_override_long_duration(self, client, user, upload):
        """A title full of quickie words does not turn a long upload into a quickie."""
        video = upload("Quick teaser clip", duration=600)
        assert video["is_quickie"] is False
        assert video["duration"] == 600

    def test_auto_tagging_can_be_disabled(self, client, user, upload, monkeypatch):
        monkeypatch.setattr("api.app.AUTO_TAGGING_ENABLED", False)
        video = upload("Homemade clip", duration=45)
        assert video["categories"] == []
        assert video["tags"] == []
        assert video["is_quickie"] is False


class TestVideoFeeds:
    """Tests for the list endpoints."""

    def test_empty_feeds(self, client):
        """Every feed is an empty list on an empty table."""
        for path in ("/api/videos", "/api/videos/recent", "/api/videos/trending", "/api/videos/quickies"):
            response = client.get(path)
            assert response.status_code == 200
            assert response.json() == []

    def test_recent_excludes_quickies_and_unpublished(self, client, user, upload):
        """Recent shows published non-quickies, newest first."""
        first = upload("First")
        upload("Quick", is_quickie=True, duration=30)
        upload("Hidden", is_published=False)
        second = upload("Second")

        ids = [video["id"] for video in client.get("/api/videos/recent").json()]
        assert ids == [second["id"], first["id"]]

    def test_trending_orders_by_views(self, client, user, upload):
        """Trending is most viewed first."""
        quiet = upload("Quiet")
        popular = upload("Popular")
        for _ in range(3):
            client.post(f"/api/videos/{popular['id']}/view")
        client.post(f"/api/videos/{quiet['id']}/view")

        trending = client.get("/api/videos/trending").json()
        assert [video["id"] for video in trending] == [popular["id"], quiet["id"]]
        assert trending[0]["views"] == 3

    def test_quickies_feed(self, client, user, upload):
        """The quickies feed only has quickies, newest first."""
        upload("Regular")
        older = upload("Quick 1", is_quickie=True, duration=20)
        newer = upload("Quick 2", is_quickie=True, duration=40)

        ids = [video["id"] for video in client.get("/api/videos/quickies").json()]
        assert ids == [newer["id"], older["id"]]

    def test_list_videos_pagination(self, client, user, upload):
        """limit/offset page through published videos, newest first."""
        videos = [upload(f"Video {i}") for i in range(5)]

        page = client.get("/api/videos", params={"limit": 2, "offset": 1}).json()
        assert [video["id"] for video in page] == [videos[3]["id"], videos[2]["id"]]
        assert page[0]["creator"]["username"] == "alice"

    def test_list_videos_rejects_bad_limit(self, client):
        """Out-of-range query parameters are validation errors."""
        response = client.get("/api/videos", params={"limit": 0})
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "limit"


class TestWatchPage:
    """Tests for GET /api/videos/{id}."""

    def test_detail_counts_view_and_includes_creator(self, client, user, upload):
        """Each fetch adds a view; the creator carries a subscriber count."""
        video = upload("Watch me")

        first = client.get(f"/api/videos/{video['id']}").json()
        second = client.get(f"/api/videos/{video['id']}").json()
        assert first["views"] == 1
        assert second["views"] == 2
        assert second["creator"]["username"] == "alice"
        assert second["creator"]["subscriber_count"] == 0
        assert second["intro_video"] is None
        assert second["user_reaction"] is None

    def test_detail_records_history(self, client, user, upload):
        """Logged-in viewers get a history entry."""
        video = upload("History")
        client.get(f"/api/videos/{video['id']}")

        history = client.get(f"/api/users/{user['id']}/history").json()
        assert [entry["video_id"] for entry in history] == [video["id"]]
        assert history[0]["video"]["title"] == "History"

    def test_detail_not_found(self, client):
        """Unknown ids are 404."""
        response = client.get("/api/videos/9999")
        assert response.status_code == 404
        assert response.json()["detail"] == "Video not found"

    def test_unpublished_hidden_from_others(self, client, register, upload, login):
        """Unpublished videos are 404 to everyone but the owner and admins."""
        register("alice")
        hidden = upload("Draft", is_published=False)
        assert client.get(f"/api/videos/{hidden['id']}").status_code == 200

        register("bob")
        assert client.get(f"/api/videos/{hidden['id']}").status_code == 404

        client.cookies.clear()
        assert client.get(f"/api/videos/{hidden['id']}").status_code == 404

        register("siteadmin", email=ADMIN_EMAIL)
        assert client.get(f"/api/videos/{hidden['id']}").status_code == 200

    def test_related_videos_share_tags_or_categories(self, client, user, upload):
        """Related videos overlap the current video, best match first."""
        current = upload("Current", tags="beach,sunset", categories="Outdoor")
        tag_match = upload("Tag match", tags="beach")
        category_match = upload("Category match", categories="Outdoor")
        upload("Unrelated", tags="other")

        detail = client.get(f"/api/videos/{current['id']}").json()
        related_ids = [video["id"] for video in detail["related_videos"]]
        assert related_ids == [category_match["id"], tag_match["id"]]

    def test_intro_video_from_site_settings(self, client, register, upload):
        """The watch page carries the intro clip when the admin enables it."""
        register("siteadmin", email=ADMIN_EMAIL)
        client.put(
            "/api/admin/site-settings",
            json={
                "intro_video_enabled": True,
                "intro_video_url": "/media/videos/intro.mp4",
                "intro_video_duration": 5,
            },
        )
        video = upload("With intro")

        detail = client.get(f"/api/videos/{video['id']}").json()
        assert detail["intro_video"] == {"enabled": True, "url": "/media/videos/intro.mp4", "duration": 5}

    def test_user_reaction_reflects_viewer(self, client, user, upload):
        """The viewer's own like or dislike is reported."""
        video = upload("React")
        client.post(f"/api/videos/{video['id']}/dislike")
        assert client.get(f"/api/videos/{video['id']}").json()["user_reaction"] == "dislike"


class TestUpdateVideo:
    """Tests for PATCH /api/videos/{id}."""

    def test_owner_updates_fields(self, client, user, upload):
        """The owner can change title, tags and visibility."""
        video = upload("Old title", description="keep me")
        response = client.patch(
            f"/api/videos/{video['id']}",
            json={"title": "New title", "tags": "a, b", "is_published": False},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Video updated successfully"
        assert data["title"] == "New title"
        assert data["tags"] == ["a", "b"]
        assert data["is_published"] is False
        assert data["description"] == "keep me"

    def test_null_title_is_ignored_but_description_clears(self, client, user, upload):
        """Only description can be cleared with null."""
        video = upload("Stays", description="goes away")
        data = client.patch(f"/api/videos/{video['id']}", json={"title": None, "description": None}).json()
        assert data["title"] == "Stays"
        assert data["description"] is None

    def test_blank_title_rejected(self, client, user, upload):
        """A whitespace-only title is a 400 on title and leaves the stored title alone."""
        video = upload("Keeps its name")
        response = client.patch(f"/api/videos/{video['id']}", json={"title": "   "})
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "title"
        assert client.get(f"/api/videos/{video['id']}").json()["title"] == "Keeps its name"

    def test_title_is_stripped(self, client, user, upload):
        video = upload("Untidy")
        data = client.patch(f"/api/videos/{video['id']}", json={"title": "  Tidy  "}).json()
        assert data["title"] == "Tidy"

    def test_other_user_forbidden(self, client, register, upload):
        """Non-owners get 403."""
        register("alice")
        video = upload("Mine")
        register("bob")
        response = client.patch(f"/api/videos/{video['id']}", json={"title": "Stolen"})
        assert response.status_code == 403
        assert response.json()["detail"] == "You do not have permission to edit this video"

    def test_admin_can_update(self, client, register, upload):
        """Admins may edit any video."""
        register("alice")
        video = upload("Moderate me")
        register("siteadmin", email=ADMIN_EMAIL)
        response = client.patch(f"/api/videos/{video['id']}", json={"title": "Moderated"})
        assert response.status_code == 200
        assert response.json()["title"] == "Moderated"

    def test_update_missing_video(self, client, user):
        """Unknown ids are 404."""
        assert client.patch("/api/videos/9999", json={"title": "x"}).status_code == 404


class TestDeleteVideo:
    """Tests for DELETE /api/videos/{id}."""

    def test_owner_deletes_video_and_file(self, client, user, upload, app_config):
        """Deleting removes the row and the uploaded file."""
        video = upload("Delete me", with_thumbnail=True)
        stored = app_config["videos"] / video["file_path"].rsplit("/", 1)[1]
        assert stored.exists()

        response = client.delete(f"/api/videos/{video['id']}")
        assert response.status_code == 200
        assert response.json() == {"message": "Video deleted successfully"}
        assert not stored.exists()
        assert client.get(f"/api/videos/{video['id']}").status_code == 404

    def test_other_user_cannot_delete(self, client, register, upload):
        """Non-owners get 403 and the video survives."""
        register("alice")
        video = upload("Keep me")
        register("bob")
        response = client.delete(f"/api/videos/{video['id']}")
        assert response.status_code == 403
        assert client.get(f"/api/videos/{video['id']}").status_code == 200


class TestThumbnail:
    """Tests for POST /api/videos/{id}/thumbnail."""

    def test_replace_thumbnail(self, client, user, upload, app_config):
        """A new thumbnail replaces and removes the old one."""
        video = upload("Thumbs", with_thumbnail=True)
        old = app_config["thumbnails"] / video["thumbnail_path"].rsplit("/", 1)[1]

        response = client.post(
            f"/api/videos/{video['id']}/thumbnail",
            files={"thumbnail_file": ("new.jpg", create_minimal_png(), "image/jpeg")},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["thumbnail_url"].endswith(".jpg")
        assert data["video"]["thumbnail_path"] == data["thumbnail_url"]
        assert not old.exists()

    def test_thumbnail_missing_file(self, client, user, upload):
        """A request without a file is a 400."""
        video = upload("No thumb")
        response = client.post(f"/api/videos/{video['id']}/thumbnail")
        assert response.status_code == 400
        assert response.json()["detail"] == "No thumbnail file uploaded"


class TestReactions:
    """Tests for like/dislike toggles."""

    def test_like_toggles(self, client, user, upload):
        """Liking twice returns the count to where it started."""
        video = upload("Like me")

        first = client.post(f"/api/videos/{video['id']}/like").json()
        assert first == {"likes": 1, "dislikes": 0, "user_liked": True, "user_disliked": False}

        second = client.post(f"/api/videos/{video['id']}/like").json()
        assert second == {"likes": 0, "dislikes": 0, "user_liked": False, "user_disliked": False}

    def test_dislike_switches_like(self, client, user, upload):
        """A dislike replaces an existing like."""
        video = upload("Switch")
        client.post(f"/api/videos/{video['id']}/like")

        state = client.post(f"/api/videos/{video['id']}/dislike").json()
        assert state == {"likes": 0, "dislikes": 1, "user_liked": False, "user_disliked": True}

    def test_likes_from_different_users_add_up(self, client, register, upload):
        """Each user contributes at most one like."""
        register("alice")
        video = upload("Popular")
        client.post(f"/api/videos/{video['id']}/like")
        register("bob")
        state = client.post(f"/api/videos/{video['id']}/like").json()
        assert state["likes"] == 2

    def test_liked_videos_listed(self, client, user, upload):
        """Likes show up on the user's liked-videos page, dislikes don't."""
        liked = upload("Liked")
        disliked = upload("Disliked")
        client.post(f"/api/videos/{liked['id']}/like")
        client.post(f"/api/videos/{disliked['id']}/dislike")

        entries = client.get(f"/api/users/{user['id']}/liked-videos").json()
        assert [entry["video_id"] for entry in entries] == [liked["id"]]
        assert entries[0]["video"]["title"] == "Liked"

    def test_like_requires_login(self, client, user, upload):
        """Anonymous reactions are rejected."""
        video = upload("Anon")
        client.cookies.clear()
        assert client.post(f"/api/videos/{video['id']}/like").status_code == 401

    def test_like_missing_video(self, client, user):
        """Reacting to an unknown video is a 404."""
        assert client.post("/api/videos/9999/like").status_code == 404


class TestViews:
    """Tests for POST /api/videos/{id}/view."""

    def test_view_increments(self, client, user, upload):
        video = upload("Viewed")
        assert client.post(f"/api/videos/{video['id']}/view").json() == {"views": 1}
        assert client.post(f"/api/videos/{video['id']}/view").json() == {"views": 2}

    def test_view_missing_video(self, client):
        assert client.post("/api/videos/9999/view").status_code == 404

    def test_unpublished_view_hidden_from_others(self, client, register, upload, login):
        """Views on a draft only count for its owner; everyone else gets 404 and nothing is recorded."""
        register("alice")
        draft = upload("Draft", is_published=False)

        register("bob")
        response = client.post(f"/api/videos/{draft['id']}/view")
        assert response.status_code == 404
        assert response.json()["detail"] == "Video not found"
        bob = client.get("/api/auth/me").json()
        assert client.get(f"/api/users/{bob['id']}/history").json() == []

        client.cookies.clear()
        assert client.post(f"/api/videos/{draft['id']}/view").status_code == 404

        login("alice@example.com")
        assert client.post(f"/api/videos/{draft['id']}/view").json() == {"views": 1}


class TestComments:
    """Tests for video comments."""

    def test_add_and_list_comments(self, client, user, upload):
        """Comments are returned newest first with their author."""
        video = upload("Discuss")
        first = client.post(f"/api/videos/{video['id']}/comments", json={"content": "First!"})
        assert first.status_code == 201
        assert first.json()["user"]["username"] == "alice"
        client.post(f"/api/videos/{video['id']}/comments", json={"content": "  Second  "})

        comments = client.get(f"/api/videos/{video['id']}/comments").json()
        assert [comment["content"] for comment in comments] == ["Second", "First!"]
        assert comments[0]["user_id"] == user["id"]

    def test_empty_comment_rejected(self, client, user, upload):
        """Whitespace-only comments fail validation on content."""
        video = upload("Quiet")
        response = client.post(f"/api/videos/{video['id']}/comments", json={"content": "   "})
        assert response.status_code == 400
        assert response.json()["errors"][0]["path"] == "content"

    def test_comment_requires_login(self, client, user, upload):
        video = upload("Members only")
        client.cookies.clear()
        response = client.post(f"/api/videos/{video['id']}/comments", json={"content": "hi"})
        assert response.status_code == 401

    def test_comments_on_missing_video(self, client):
        assert client.get("/api/videos/9999/comments").status_code == 404
