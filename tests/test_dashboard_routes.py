from urllib.parse import parse_qs, urlparse

import httpx
from fastapi.testclient import TestClient

from app import db
from app.main import app
from app.state import dashboard_store
from conftest import (
    BUSINESS_ACCOUNT_ID,
    GRAPH,
    LONG_LIVED_TOKEN,
    PICTURE_BYTES,
    PICTURE_URL,
    SHORT_LIVED_TOKEN,
    USER_ID,
)

client = TestClient(app)
DASHBOARD = f"/users/{USER_ID}/accounts"


def _candidate(business_account_id: str = BUSINESS_ACCOUNT_ID) -> dict:
    return {
        "id": "104000000000000",
        "name": "Sunny Bakes",
        "access_token": SHORT_LIVED_TOKEN,
        "instagram_business_account": {"id": business_account_id},
        "picture": {"data": {"url": PICTURE_URL}},
    }


def _connect_form(**overrides) -> dict:
    form = {
        "app_scoped_user_id": "10160000000000000",
        "short_lived_access_token": SHORT_LIVED_TOKEN,
        "instagram_business_account_id": BUSINESS_ACCOUNT_ID,
        "facebook_page_id": "104000000000000",
        "instagram_account_name": "Sunny Bakes",
        "picture_url": PICTURE_URL,
        "user_id": USER_ID,
    }
    form.update(overrides)
    return form


def _flash(response) -> tuple[str, str]:
    query = parse_qs(urlparse(response.headers["location"]).query)
    return query["flash"][0], query["flash_type"][0]


def test_health() -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "missing_settings": []}


def test_empty_dashboard_renders_connect_buttons() -> None:
    response = client.get(DASHBOARD)
    assert response.status_code == 200
    assert "Connect A New Account" in response.text
    assert "Your Existing Accounts" not in response.text


def test_candidates_exclude_linked_accounts() -> None:
    db.insert_instagram_account("Linked", "p-1", "111", "token", f"{USER_ID}/instagramAccount/111/profile_picture.png", USER_ID)

    response = client.post(
        f"{DASHBOARD}/instagram/candidates",
        json={"app_scoped_user_id": "10160000000000000", "accounts": [_candidate("111"), _candidate()]},
    )

    assert response.json() == {"ok": True, "pending": [BUSINESS_ACCOUNT_ID]}
    page = client.get(DASHBOARD).text
    assert f'name="instagram_business_account_id" value="{BUSINESS_ACCOUNT_ID}"' in page
    assert 'name="instagram_business_account_id" value="111"' not in page
    assert 'name="app_scoped_user_id" value="10160000000000000"' in page


def test_connect_account_success(linking_http) -> None:
    client.post(f"{DASHBOARD}/instagram/candidates", json={"accounts": [_candidate()]})

    response = client.post(f"{DASHBOARD}/instagram", data=_connect_form(), follow_redirects=False)

    assert response.status_code == 303
    assert _flash(response) == ("Successfully added Instagram account", "success")
    (row,) = db.list_instagram_accounts(USER_ID)
    assert row["access_token"] == LONG_LIVED_TOKEN
    assert dashboard_store.get(USER_ID).pending == ()
    page = client.get(DASHBOARD).text
    assert "Your Existing Accounts" in page
    assert f"/media/{row['picture_file_path']}" in page


def test_connect_account_failure_keeps_candidate(fake_http) -> None:
    fake_http.add(
        f"{GRAPH}/{BUSINESS_ACCOUNT_ID}?",
        httpx.Response(400, json={"error": {"message": "Invalid OAuth access token.", "code": 190}}),
    )
    client.post(f"{DASHBOARD}/instagram/candidates", json={"accounts": [_candidate()]})

    response = client.post(f"{DASHBOARD}/instagram", data=_connect_form(), follow_redirects=False)

    message, level = _flash(response)
    assert level == "error"
    assert message.startswith("Sorry, we ran into an error connecting")
    assert len(dashboard_store.get(USER_ID).pending) == 1
    assert db.list_instagram_accounts(USER_ID) == []


def test_connect_rejects_mismatched_user() -> None:
    response = client.post(f"{DASHBOARD}/instagram", data=_connect_form(user_id="user-2"), follow_redirects=False)
    assert response.status_code == 400


def test_media_is_served_after_linking(linking_http) -> None:
    client.post(f"{DASHBOARD}/instagram", data=_connect_form())
    (row,) = db.list_instagram_accounts(USER_ID)

    response = client.get(f"/media/{row['picture_file_path']}")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/jpeg"
    assert response.content == PICTURE_BYTES
    assert client.get("/media/nope/missing.png").status_code == 404


def test_media_requires_admin_credentials(monkeypatch, s3) -> None:
    key = f"{USER_ID}/instagramAccount/{BUSINESS_ACCOUNT_ID}/profile_picture.jpeg"
    s3.put_object(Bucket="media", Key=key, Body=PICTURE_BYTES, ContentType="image/jpeg")
    monkeypatch.setenv("ADMIN_USER", "admin")
    monkeypatch.setenv("ADMIN_PASS", "secret")

    assert client.get(f"/media/{key}").status_code == 401
    assert client.get(f"/media/{key}", auth=("admin", "wrong")).status_code == 401
    response = client.get(f"/media/{key}", auth=("admin", "secret"))
    assert response.status_code == 200
    assert response.content == PICTURE_BYTES


def test_delete_flow_through_confirmation_modal(linking_http) -> None:
    client.post(f"{DASHBOARD}/instagram", data=_connect_form())

    client.post(f"{DASHBOARD}/delete/request", data={"kind": "instagram", "target_id": BUSINESS_ACCOUNT_ID})
    assert "Are you sure you want to delete this account?" in client.get(DASHBOARD).text

    client.post(f"{DASHBOARD}/delete/cancel")
    assert "Are you sure" not in client.get(DASHBOARD).text

    client.post(f"{DASHBOARD}/delete/request", data={"kind": "instagram", "target_id": BUSINESS_ACCOUNT_ID})
    response = client.post(
        f"{DASHBOARD}/delete",
        data={"kind": "instagram", "target_id": BUSINESS_ACCOUNT_ID, "user_id": USER_ID},
        follow_redirects=False,
    )

    assert _flash(response) == ("Successfully deleted Instagram account", "success")
    assert db.list_instagram_accounts(USER_ID) == []
    assert dashboard_store.get(USER_ID).delete_target is None


def test_delete_youtube_channel_route() -> None:
    db.insert_youtube_channel("UC123", "@sunnybakes", None, USER_ID)
    client.post(f"{DASHBOARD}/delete/request", data={"kind": "youtube", "target_id": "UC123"})
    assert "@sunnybakes" in client.get(DASHBOARD).text

    response = client.post(
        f"{DASHBOARD}/delete",
        data={"kind": "youtube", "target_id": "UC123", "user_id": USER_ID},
        follow_redirects=False,
    )

    assert _flash(response) == ("Successfully deleted YouTube channel", "success")
    assert db.list_youtube_channels(USER_ID) == []


def test_delete_failure_keeps_modal_open(monkeypatch) -> None:
    db.insert_youtube_channel("UC123", "@sunnybakes", None, USER_ID)
    client.post(f"{DASHBOARD}/delete/request", data={"kind": "youtube", "target_id": "UC123"})
    monkeypatch.delenv("SOCIAL_MEDIA_POST_MEDIA_FILES_STORAGE_BUCKET")

    response = client.post(
        f"{DASHBOARD}/delete",
        data={"kind": "youtube", "target_id": "UC123", "user_id": USER_ID},
        follow_redirects=False,
    )

    assert _flash(response)[1] == "error"
    assert dashboard_store.get(USER_ID).delete_target is not None


def test_unknown_delete_kind_is_rejected() -> None:
    response = client.post(f"{DASHBOARD}/delete/request", data={"kind": "tiktok", "target_id": "1"})
    assert response.status_code == 400


def test_publishing_limit_route(linking_http) -> None:
    client.post(f"{DASHBOARD}/instagram", data=_connect_form())
    limit = {"config": {"quota_total": 50}, "quota_usage": 7}
    linking_http.add(
        f"{GRAPH}/{BUSINESS_ACCOUNT_ID}/content_publishing_limit?",
        httpx.Response(200, json={"data": [limit]}),
    )

    response = client.get(f"{DASHBOARD}/instagram/{BUSINESS_ACCOUNT_ID}/publishing-limit")

    assert response.json() == {"ok": True, "data": limit}


def test_admin_credentials_are_enforced(monkeypatch) -> None:
    monkeypatch.setenv("ADMIN_USER", "admin")
    monkeypatch.setenv("ADMIN_PASS", "secret")

    assert client.get(DASHBOARD).status_code == 401
    assert client.get(DASHBOARD, auth=("admin", "wrong")).status_code == 401
    assert client.get(DASHBOARD, auth=("admin", "secret")).status_code == 200
