from datetime import timedelta

from app.extensions import db
from app.jobs.scheduler import run_change_log_prune
from app.models import ApiToken, Bookmark, ChangeEvent, User, utcnow


def _create_user(username: str, password: str, display_name=None, email=None):
    user = User(username=username, display_name=display_name, email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def _token(client, username: str, password: str):
    response = client.post(
        "/api/v1/auth/token",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200
    return response.get_json()["token"]


def _auth(client, username="u1", password="secret"):
    return {"Authorization": f"Bearer {_token(client, username, password)}"}


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_signup_then_sign_in_returns_session(client):
    response = client.post(
        "/api/v1/auth/signup",
        json={
            "username": "ada",
            "password": "secret",
            "display_name": "Ada Lovelace",
            "email": "ada@example.com",
        },
    )
    assert response.status_code == 201

    duplicate = client.post(
        "/api/v1/auth/signup", json={"username": "ada", "password": "other"}
    )
    assert duplicate.status_code == 409

    response = client.post(
        "/api/v1/auth/token", json={"username": "ada", "password": "secret"}
    )
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["token"].startswith("sb_")
    assert payload["session"]["user"]["full_name"] == "Ada Lovelace"
    assert payload["session"]["user"]["email"] == "ada@example.com"
    assert payload["session"]["provider"] == "password"


def test_sign_in_rejects_bad_credentials_and_unknown_provider(client, app):
    with app.app_context():
        _create_user("u1", "secret")

    response = client.post(
        "/api/v1/auth/token", json={"username": "u1", "password": "wrong"}
    )
    assert response.status_code == 401
    assert response.get_json()["error"] == "invalid credentials"

    response = client.post(
        "/api/v1/auth/token",
        json={"username": "u1", "password": "secret", "provider": "google"},
    )
    assert response.status_code == 400
    assert "google" in response.get_json()["error"]


def test_logout_revokes_token(client, app):
    with app.app_context():
        _create_user("u1", "secret")
    auth = _auth(client)

    assert client.get("/api/v1/auth/session", headers=auth).status_code == 200
    assert client.post("/api/v1/auth/logout", headers=auth).status_code == 200
    response = client.get("/api/v1/auth/session", headers=auth)
    assert response.status_code == 401
    assert response.get_json()["error"] == "authentication required"


def test_expired_token_is_rejected(client, app):
    with app.app_context():
        _create_user("u1", "secret")
    auth = _auth(client)

    with app.app_context():
        row = ApiToken.query.first()
        row.expires_at = utcnow() - timedelta(minutes=1)
        db.session.commit()

    assert client.get("/api/v1/bookmarks", headers=auth).status_code == 401


def test_bookmark_crud_logs_change_events(client, app):
    with app.app_context():
        _create_user("u1", "secret")
    auth = _auth(client)

    response = client.post(
        "/api/v1/bookmarks",
        headers=auth,
        json={"title": "Docs", "url": "http://docs"},
    )
    assert response.status_code == 201
    created = response.get_json()
    assert created["title"] == "Docs"
    assert created["inserted_at"]

    response = client.patch(
        f"/api/v1/bookmarks/{created['id']}",
        headers=auth,
        json={"title": "New", "url": "http://new"},
    )
    assert response.status_code == 200
    assert response.get_json() == {"status": "updated", "id": created["id"]}

    response = client.delete(f"/api/v1/bookmarks/{created['id']}", headers=auth)
    assert response.status_code == 200

    response = client.get("/api/v1/changes?since=0", headers=auth)
    payload = response.get_json()
    assert [event["kind"] for event in payload["events"]] == [
        "insert",
        "update",
        "delete",
    ]
    assert payload["events"][1]["record"]["title"] == "New"
    assert payload["events"][2]["record"]["id"] == created["id"]
    assert payload["cursor"] == payload["events"][-1]["cursor"]
    assert payload["has_more"] is False

    with app.app_context():
        assert Bookmark.query.count() == 0


def test_create_requires_url_and_rejects_foreign_owner(client, app):
    with app.app_context():
        _create_user("u1", "secret")
        other = _create_user("u2", "secret")
        other_id = other.id
    auth = _auth(client)

    response = client.post("/api/v1/bookmarks", headers=auth, json={"title": "x"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "url is required"

    response = client.post(
        "/api/v1/bookmarks",
        headers=auth,
        json={"title": "x", "url": "http://x", "user_id": other_id},
    )
    assert response.status_code == 403


def test_update_rejects_empty_url(client, app):
    with app.app_context():
        _create_user("u1", "secret")
    auth = _auth(client)
    created = client.post(
        "/api/v1/bookmarks", headers=auth, json={"title": "A", "url": "http://a"}
    ).get_json()

    response = client.patch(
        f"/api/v1/bookmarks/{created['id']}", headers=auth, json={"url": "  "}
    )
    assert response.status_code == 400

    response = client.get(f"/api/v1/bookmarks/{created['id']}", headers=auth)
    assert response.get_json()["url"] == "http://a"


def test_bookmarks_are_scoped_to_owner(client, app):
    with app.app_context():
        owner = _create_user("u1", "secret")
        _create_user("u2", "secret")
        db.session.add(Bookmark(user_id=owner.id, title="Mine", url="http://mine"))
        db.session.commit()
        owner_id = owner.id
        bookmark_id = Bookmark.query.first().id

    other_auth = _auth(client, "u2")
    response = client.get("/api/v1/bookmarks", headers=other_auth)
    assert response.get_json()["items"] == []
    response = client.delete(f"/api/v1/bookmarks/{bookmark_id}", headers=other_auth)
    assert response.status_code == 404

    owner_auth = _auth(client, "u1")
    response = client.get(
        f"/api/v1/bookmarks?user_id={owner_id + 100}", headers=owner_auth
    )
    assert response.get_json()["items"] == []
    response = client.get(f"/api/v1/bookmarks?user_id={owner_id}", headers=owner_auth)
    assert [item["title"] for item in response.get_json()["items"]] == ["Mine"]


def test_bookmark_list_orders_by_inserted_at_and_reports_cursor(client, app):
    with app.app_context():
        user = _create_user("u1", "secret")
        now = utcnow()
        for title, age_days in [("old", 2), ("new", 0), ("mid", 1)]:
            db.session.add(
                Bookmark(
                    user_id=user.id,
                    title=title,
                    url=f"http://{title}",
                    inserted_at=now - timedelta(days=age_days),
                )
            )
        db.session.commit()
    auth = _auth(client)

    client.post("/api/v1/bookmarks", headers=auth, json={"url": "http://latest"})

    payload = client.get("/api/v1/bookmarks", headers=auth).get_json()
    assert [item["title"] for item in payload["items"]][1:] == ["new", "mid", "old"]
    assert payload["items"][0]["url"] == "http://latest"
    assert payload["items"][0]["title"] is None
    assert payload["cursor"] == client.get(
        "/api/v1/changes/head", headers=auth
    ).get_json()["cursor"]

    ascending = client.get("/api/v1/bookmarks?order=asc", headers=auth).get_json()
    assert [item["title"] for item in ascending["items"]][:3] == ["old", "mid", "new"]
    assert client.get("/api/v1/bookmarks?order=up", headers=auth).status_code == 400


def test_changes_feed_pages_by_cursor(client, app):
    with app.app_context():
        _create_user("u1", "secret")
    auth = _auth(client)
    for index in range(3):
        client.post(
            "/api/v1/bookmarks", headers=auth, json={"url": f"http://{index}.test"}
        )

    first = client.get("/api/v1/changes?since=0&limit=2", headers=auth).get_json()
    assert len(first["events"]) == 2
    assert first["has_more"] is True

    second = client.get(
        f"/api/v1/changes?since={first['cursor']}&limit=2", headers=auth
    ).get_json()
    assert [event["record"]["url"] for event in second["events"]] == ["http://2.test"]
    assert second["has_more"] is False

    empty = client.get(
        f"/api/v1/changes?since={second['cursor']}", headers=auth
    ).get_json()
    assert empty["events"] == []
    assert empty["cursor"] == second["cursor"]


def test_change_log_prune_removes_expired_events(app):
    with app.app_context():
        user = _create_user("u1", "secret")
        db.session.add_all(
            [
                ChangeEvent(
                    user_id=user.id,
                    kind="insert",
                    payload={"id": 1},
                    created_at=utcnow() - timedelta(days=30),
                ),
                ChangeEvent(user_id=user.id, kind="insert", payload={"id": 2}),
            ]
        )
        db.session.commit()

    run_change_log_prune(app)

    with app.app_context():
        remaining = ChangeEvent.query.all()
        assert [event.payload["id"] for event in remaining] == [2]
