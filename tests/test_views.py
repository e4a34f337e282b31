from datetime import datetime, timezone

import pytest

from app.client.models import Bookmark, ChangeEvent, Session
from app.client.views import (
    count_label,
    display_title,
    filter_bookmarks,
    format_inserted_at,
    hostname,
    sidebar_title,
)


def _bookmark(bookmark_id, title, url):
    return Bookmark(id=bookmark_id, title=title, url=url)


def test_titles_fall_back_for_untitled_bookmarks():
    untitled = _bookmark(1, None, "https://example.com/page")
    titled = _bookmark(2, "Example", "https://example.com")

    assert display_title(untitled) == "https://example.com/page"
    assert display_title(titled) == "Example"
    assert sidebar_title(untitled) == "Untitled"
    assert sidebar_title(titled) == "Example"


def test_hostname_falls_back_to_raw_url():
    assert hostname("https://Docs.Python.org/3/") == "docs.python.org"
    assert hostname("not a url") == "not a url"
    assert hostname("") == ""


def test_filter_matches_title_or_url_case_insensitively():
    bookmarks = [
        _bookmark(1, "Python docs", "https://docs.python.org"),
        _bookmark(2, None, "https://GitHub.com"),
        _bookmark(3, "Gardening", "https://garden.example"),
    ]

    assert [b.id for b in filter_bookmarks(bookmarks, "PYTHON")] == [1]
    assert [b.id for b in filter_bookmarks(bookmarks, "github")] == [2]
    assert [b.id for b in filter_bookmarks(bookmarks, "")] == [1, 2, 3]
    assert [b.id for b in filter_bookmarks(bookmarks, None)] == [1, 2, 3]
    assert filter_bookmarks(bookmarks, "missing") == []


def test_count_label_pluralizes():
    assert count_label(0) == "0 bookmarks"
    assert count_label(1) == "1 bookmark"
    assert count_label(12) == "12 bookmarks"


def test_format_inserted_at():
    naive = datetime(2024, 3, 5, 9, 7)
    assert format_inserted_at(naive) == "2024-03-05 at 09:07"
    assert format_inserted_at(None) == ""

    aware = datetime(2024, 3, 5, 9, 7, tzinfo=timezone.utc)
    local = aware.astimezone()
    assert format_inserted_at(aware) == local.strftime("%Y-%m-%d at %H:%M")


def test_session_display_name_falls_back_to_email_then_user():
    assert Session(user_id=1, access_token="t", full_name="Ada").display_name == "Ada"
    by_email = Session(user_id=1, access_token="t", email="ada@example.com")
    assert by_email.display_name == "ada@example.com"
    assert by_email.initials == "A"
    assert Session(user_id=1, access_token="t").display_name == "User"


def test_session_repr_hides_access_token():
    assert "secret-token" not in repr(Session(user_id=1, access_token="secret-token"))


def test_change_event_payload_parses_record_timestamp():
    event = ChangeEvent.from_payload(
        {
            "cursor": 4,
            "kind": "update",
            "record": {
                "id": 9,
                "user_id": 1,
                "title": "Docs",
                "url": "http://docs",
                "inserted_at": "2024-01-01T12:00:00+00:00",
            },
        }
    )

    assert event.cursor == 4
    assert event.kind == "update"
    assert event.record.owner_id == 1
    assert event.record.inserted_at == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)


def test_count_label_shows_filtered_over_total():
    assert count_label(2, 5) == "2/5 bookmarks"
    assert count_label(1, 1) == "1/1 bookmarks"
    assert count_label(0, 3) == "0/3 bookmarks"


def test_change_event_payload_rejects_missing_record_id():
    with pytest.raises(KeyError):
        ChangeEvent.from_payload({"kind": "insert", "record": {}})
