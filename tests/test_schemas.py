"""Tests for request models and the tag/category/form parsing helpers."""

import pytest
from pydantic import ValidationError

from api.schemas import (
    AdminVideoCreate,
    CommentCreate,
    ContactRequest,
    RegisterRequest,
    SiteAdSettings,
    SiteSettingsUpdate,
    VideoAdSettings,
    VideoCreate,
    VideoUpdate,
    coerce_form_bool,
    coerce_form_fields,
    coerce_form_int,
    decode_list,
    encode_list,
    parse_category_input,
    parse_tag_input,
)


def error_for(exc_info, field):
    """The first error reported on `field`."""
    for error in exc_info.value.errors():
        if error["loc"] and error["loc"][0] == field:
            return error
    raise AssertionError(f"no error on {field}: {exc_info.value.errors()}")


class TestParseTagInput:
    """Tests for parse_tag_input."""

    def test_comma_separated(self):
        assert parse_tag_input(" solo, amateur ,,hd ") == ["solo", "amateur", "hd"]

    def test_list(self):
        assert parse_tag_input(["a", " b ", "", None]) == ["a", "b"]

    def test_none_and_empty(self):
        assert parse_tag_input(None) == []
        assert parse_tag_input("") == []

    def test_keeps_order_and_duplicates(self):
        assert parse_tag_input("b,a,b") == ["b", "a", "b"]


class TestParseCategoryInput:
    """Tests for parse_category_input."""

    def test_json_list_string(self):
        assert parse_category_input('["Amateur", " Solo "]') == ["Amateur", "Solo"]

    def test_comma_separated(self):
        assert parse_category_input("Amateur, Solo") == ["Amateur", "Solo"]

    def test_malformed_json_falls_back_to_commas(self):
        assert parse_category_input("[broken, json") == ["[broken", "json"]

    def test_json_numbers_become_strings(self):
        assert parse_category_input("[1, 2]") == ["1", "2"]

    def test_list(self):
        assert parse_category_input(["A", "B"]) == ["A", "B"]

    def test_round_trip_storage_encoding(self):
        assert decode_list(encode_list(["a", "b, c"])) == ["a", "b, c"]
        assert decode_list(None) == []


class TestFormCoercion:
    """Tests for multipart form coercion."""

    @pytest.mark.parametrize("value,expected", [("true", True), ("On", True), ("0", False), ("no", False)])
    def test_bool(self, value, expected):
        assert coerce_form_bool(value) is expected

    def test_unknown_bool_passes_through(self):
        assert coerce_form_bool("maybe") == "maybe"

    def test_int(self):
        assert coerce_form_int(" 42 ") == 42
        assert coerce_form_int("") is None
        assert coerce_form_int("abc") == "abc"

    def test_fields(self):
        result = coerce_form_fields(
            {"title": "T", "description": None, "is_quickie": "true", "duration": ""},
            bool_fields=("is_quickie",),
            int_fields=("duration",),
        )
        assert result == {"title": "T", "is_quickie": True}


class TestRegisterRequest:
    """Tests for registration validation."""

    def test_valid(self):
        data = RegisterRequest(
            username=" alice ", email="Alice@Example.com", password="secret123", confirm_password="secret123"
        )
        assert data.username == "alice"
        assert data.email == "alice@example.com"

    def test_password_mismatch(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterRequest(username="alice", email="a@example.com", password="secret123", confirm_password="other123")
        error = error_for(exc_info, "confirm_password")
        assert error["type"] == "password_mismatch"
        assert error["msg"] == "Passwords do not match"

    def test_short_password_does_not_also_report_mismatch(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterRequest(username="alice", email="a@example.com", password="123", confirm_password="123456")
        fields = [error["loc"][0] for error in exc_info.value.errors()]
        assert fields == ["password"]


class TestVideoCreate:
    """Tests for video metadata validation."""

    def test_defaults(self):
        video = VideoCreate(title="  Clip  ", file_path="/media/videos/a.mp4")
        assert video.title == "Clip"
        assert video.is_published is True
        assert video.is_quickie is False
        assert video.tags == []

    def test_quickie_limit(self):
        VideoCreate(title="Quick", file_path="x", is_quickie=True, duration=120)
        with pytest.raises(ValidationError) as exc_info:
            VideoCreate(title="Quick", file_path="x", is_quickie=True, duration=121)
        error = error_for(exc_info, "duration")
        assert error["type"] == "quickie_too_long"
        assert "120 seconds" in error["msg"]

    def test_long_regular_video_allowed(self):
        assert VideoCreate(title="Long", file_path="x", duration=7200).duration == 7200

    def test_negative_duration(self):
        with pytest.raises(ValidationError):
            VideoCreate(title="Neg", file_path="x", duration=-1)

    def test_blank_title(self):
        with pytest.raises(ValidationError) as exc_info:
            VideoCreate(title="   ", file_path="x")
        assert error_for(exc_info, "title")["type"] == "string_too_short"

    def test_admin_create_requires_user(self):
        with pytest.raises(ValidationError) as exc_info:
            AdminVideoCreate(title="T", file_path="x")
        assert error_for(exc_info, "user_id")["type"] == "missing"


class TestVideoUpdate:
    def test_unset_fields_excluded(self):
        update = VideoUpdate(tags="a, b")
        assert update.model_dump(exclude_unset=True) == {"tags": ["a", "b"]}

    def test_null_tags_stay_null(self):
        assert VideoUpdate(tags=None).tags is None

    def test_title_is_stripped(self):
        assert VideoUpdate(title="  New title  ").title == "New title"

    def test_blank_title(self):
        with pytest.raises(ValidationError) as exc_info:
            VideoUpdate(title="   ")
        assert error_for(exc_info, "title")["type"] == "string_too_short"

    def test_null_title_stays_null(self):
        assert VideoUpdate(title=None).title is None


class TestCommentCreate:
    def test_strips(self):
        assert CommentCreate(content="  hi  ").content == "hi"

    def test_blank(self):
        with pytest.raises(ValidationError):
            CommentCreate(content="   ")


class TestAdSettings:
    """Tests for site and per-video ad settings."""

    def test_parallel_lists(self):
        settings = SiteAdSettings(site_ads_enabled=True, site_ad_urls=["a", "b"], site_ad_positions=["pre-roll", "mid-roll"])
        assert [p.value for p in settings.site_ad_positions] == ["pre-roll", "mid-roll"]

    def test_mismatched_lists(self):
        with pytest.raises(ValidationError) as exc_info:
            SiteAdSettings(site_ads_enabled=True, site_ad_urls=["a"], site_ad_positions=[])
        assert exc_info.value.errors()[0]["type"] == "ad_list_mismatch"

    def test_partial_update_skips_check(self):
        """One list alone can't be checked here; the endpoint checks it against stored values."""
        update = SiteSettingsUpdate(site_ad_urls=["a", "b"])
        assert update.site_ad_positions is None

    def test_null_site_ad_urls(self):
        with pytest.raises(ValidationError) as exc_info:
            SiteSettingsUpdate(site_ad_urls=None)
        error = error_for(exc_info, "site_ad_urls")
        assert error["type"] == "null_not_allowed"
        assert error["msg"] == "site_ad_urls cannot be null"

    def test_null_intro_url_allowed(self):
        update = SiteSettingsUpdate(intro_video_url=None)
        assert update.model_dump(exclude_unset=True) == {"intro_video_url": None}

    def test_unknown_position(self):
        with pytest.raises(ValidationError):
            SiteAdSettings(site_ads_enabled=True, site_ad_urls=["a"], site_ad_positions=["halftime"])

    def test_video_ad_start_time_from_form_string(self):
        assert VideoAdSettings(has_ads=True, ad_start_time="15").ad_start_time == 15
        assert VideoAdSettings(has_ads=True, ad_start_time="").ad_start_time is None


class TestContactRequest:
    def test_minimum_lengths(self):
        with pytest.raises(ValidationError) as exc_info:
            ContactRequest(name="A", email="a@example.com", subject="Hey", message="Too short")
        fields = {error["loc"][0] for error in exc_info.value.errors()}
        assert fields == {"name", "subject", "message"}
