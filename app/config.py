from __future__ import annotations

import os

GRAPH_API_VERSION_ENV = "FACEBOOK_GRAPH_API_VERSION"
CLIENT_ID_ENV = "FACEBOOK_CLIENT_ID"
CLIENT_SECRET_ENV = "FACEBOOK_CLIENT_SECRET"
STORAGE_BUCKET_ENV = "SOCIAL_MEDIA_POST_MEDIA_FILES_STORAGE_BUCKET"
STORAGE_ENDPOINT_URL_ENV = "STORAGE_ENDPOINT_URL"
STORAGE_REGION_ENV = "STORAGE_REGION"
DATABASE_URL_ENV = "DATABASE_URL"
ADMIN_USER_ENV = "ADMIN_USER"
ADMIN_PASS_ENV = "ADMIN_PASS"

DEFAULT_GRAPH_API_VERSION = "20.0"
GRAPH_BASE = "https://graph.facebook.com"

REQUIRED_SETTINGS = (
    GRAPH_API_VERSION_ENV,
    CLIENT_ID_ENV,
    CLIENT_SECRET_ENV,
    STORAGE_BUCKET_ENV,
)


def _get(name: str) -> str | None:
    value = (os.getenv(name) or "").strip()
    return value or None


def get_graph_api_version() -> str:
    version = _get(GRAPH_API_VERSION_ENV) or DEFAULT_GRAPH_API_VERSION
    return version.lstrip("v")


def get_client_credentials() -> tuple[str, str] | None:
    client_id = _get(CLIENT_ID_ENV)
    client_secret = _get(CLIENT_SECRET_ENV)
    if not client_id or not client_secret:
        return None
    return client_id, client_secret


def get_storage_bucket() -> str | None:
    return _get(STORAGE_BUCKET_ENV)


def get_storage_endpoint_url() -> str | None:
    return _get(STORAGE_ENDPOINT_URL_ENV)


def get_storage_region() -> str:
    return _get(STORAGE_REGION_ENV) or "us-east-1"


def get_database_url() -> str:
    return _get(DATABASE_URL_ENV) or "sqlite:///app.db"


def get_admin_credentials() -> tuple[str, str] | None:
    user = _get(ADMIN_USER_ENV)
    password = _get(ADMIN_PASS_ENV)
    if not user or not password:
        return None
    return user, password


def missing_settings() -> list[str]:
    return [name for name in REQUIRED_SETTINGS if _get(name) is None]


__all__ = [
    "GRAPH_BASE",
    "get_admin_credentials",
    "get_client_credentials",
    "get_database_url",
    "get_graph_api_version",
    "get_storage_bucket",
    "get_storage_endpoint_url",
    "get_storage_region",
    "missing_settings",
]
