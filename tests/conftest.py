import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import boto3
import httpx
import pytest
from moto import mock_aws

_DB_DIR = tempfile.mkdtemp(prefix="social-accounts-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test_app.db"

sys.path.append(str(Path(__file__).resolve().parents[1]))

from app import db  # noqa: E402
from app.models import Base  # noqa: E402
from app.state import dashboard_store  # noqa: E402

GRAPH = "https://graph.facebook.com/v20.0"
BUSINESS_ACCOUNT_ID = "17841400000000000"
SHORT_LIVED_TOKEN = "EAABshortlived0000"
LONG_LIVED_TOKEN = "EAABlonglived99999"
PICTURE_URL = "https://scontent.example/pic.jpg"
USER_ID = "user-1"
BUCKET = "media"
PICTURE_BYTES = b"\xff\xd8\xffjpeg-bytes"


class FakeHttp:
    """Stands in for ``httpx.get``; routes are matched by url prefix in order."""

    def __init__(self) -> None:
        self.routes: list[tuple[str, Any]] = []
        self.calls: list[str] = []

    def add(self, prefix: str, response: Any) -> None:
        self.routes.append((prefix, response))

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        self.calls.append(url)
        for prefix, response in self.routes:
            if url.startswith(prefix):
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected request {url}")

    def called(self, prefix: str) -> bool:
        return any(url.startswith(prefix) for url in self.calls)


@pytest.fixture(autouse=True)
def app_settings(monkeypatch):
    monkeypatch.setenv("FACEBOOK_GRAPH_API_VERSION", "20.0")
    monkeypatch.setenv("FACEBOOK_CLIENT_ID", "client-id")
    monkeypatch.setenv("FACEBOOK_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("SOCIAL_MEDIA_POST_MEDIA_FILES_STORAGE_BUCKET", BUCKET)
    monkeypatch.setenv("STORAGE_REGION", "us-east-1")
    monkeypatch.delenv("STORAGE_ENDPOINT_URL", raising=False)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.delenv("ADMIN_USER", raising=False)
    monkeypatch.delenv("ADMIN_PASS", raising=False)


@pytest.fixture(autouse=True)
def s3(app_settings):
    """In-memory S3 with the "media" bucket created."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


def stored_keys(client) -> list[str]:
    response = client.list_objects_v2(Bucket=BUCKET)
    return sorted(item["Key"] for item in response.get("Contents", []))


def stored_object(client, key: str) -> tuple[bytes, str]:
    response = client.get_object(Bucket=BUCKET, Key=key)
    return response["Body"].read(), response["ContentType"]


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(db.engine)
    db.init_db()
    dashboard_store.clear()
    yield
    dashboard_store.clear()


@pytest.fixture
def fake_http(monkeypatch) -> FakeHttp:
    fake = FakeHttp()
    monkeypatch.setattr(httpx, "get", fake.get)
    return fake


@pytest.fixture
def linking_http(fake_http) -> FakeHttp:
    """Graph and CDN responses for a link that succeeds end to end."""
    fake_http.add(
        f"{GRAPH}/{BUSINESS_ACCOUNT_ID}?",
        httpx.Response(200, json={"username": "sunny.bakes", "id": BUSINESS_ACCOUNT_ID}),
    )
    fake_http.add(
        f"{GRAPH}/oauth/access_token?",
        httpx.Response(200, json={"access_token": LONG_LIVED_TOKEN, "token_type": "bearer", "expires_in": 5183944}),
    )
    fake_http.add(
        PICTURE_URL,
        httpx.Response(200, content=PICTURE_BYTES, headers={"content-type": "image/jpeg"}),
    )
    return fake_http
