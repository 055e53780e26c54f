from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlencode

import httpx

from app import config
from app.errors import GraphAPIError, GraphTransportError, MissingConfigurationError
from app.log_context import LogContext

logger = logging.getLogger("social-accounts")

GRAPH_TIMEOUT = 20.0


@dataclass(frozen=True)
class GraphError:
    message: str
    type: str | None = None
    code: int | None = None
    error_subcode: int | None = None
    fbtrace_id: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "GraphError":
        if not isinstance(payload, dict):
            return cls(message=str(payload))
        return cls(
            message=str(payload.get("message") or "unknown graph error"),
            type=payload.get("type"),
            code=payload.get("code"),
            error_subcode=payload.get("error_subcode"),
            fbtrace_id=payload.get("fbtrace_id"),
        )


def build_graph_url(
    path: str,
    search_params: Mapping[str, Any] | None = None,
    access_token: str | None = None,
) -> str:
    version = config.get_graph_api_version()
    params = {key: value for key, value in (search_params or {}).items() if value is not None}
    if access_token:
        params["access_token"] = access_token
    url = f"{config.GRAPH_BASE}/v{version}/{path.lstrip('/')}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


def parse_graph_response(response: httpx.Response) -> dict[str, Any]:
    try:
        body: Any = response.json()
    except ValueError as exc:
        raise GraphTransportError(
            f"graph response was not json status={response.status_code}"
        ) from exc
    if not isinstance(body, dict):
        raise GraphTransportError(f"graph response was not an object status={response.status_code}")
    if body.get("error") is not None:
        graph_error = GraphError.from_payload(body["error"])
        raise GraphAPIError(graph_error.message, graph_error)
    return body


def graph_get(url: str) -> dict[str, Any]:
    try:
        response = httpx.get(url, timeout=GRAPH_TIMEOUT)
    except httpx.HTTPError as exc:
        raise GraphTransportError(str(exc)) from exc
    return parse_graph_response(response)


def fetch_instagram_username(
    instagram_business_account_id: str,
    short_lived_access_token: str,
    context: LogContext | None = None,
) -> str:
    context = (context or LogContext()).bind(function="fetch_instagram_username")
    url = build_graph_url(
        f"/{instagram_business_account_id}",
        {"fields": "username"},
        short_lived_access_token,
    )
    try:
        data = graph_get(url)
    except GraphAPIError as exc:
        logger.error("graph_username_fail error=%s %s", exc.graph_error, context)
        raise GraphAPIError(
            "Failed fetching Instagram business account from page id", exc.graph_error
        ) from exc
    username = data.get("username")
    if not username:
        logger.error("graph_username_fail error=missing_username %s", context)
        raise GraphAPIError("Graph API response did not include a username")
    logger.info("graph_username_success username=%s %s", username, context)
    return username


def fetch_long_lived_access_token(
    short_lived_access_token: str,
    context: LogContext | None = None,
) -> str:
    context = (context or LogContext()).bind(function="fetch_long_lived_access_token")
    credentials = config.get_client_credentials()
    if credentials is None:
        logger.error("graph_token_exchange_fail error=client_credentials_missing %s", context)
        raise MissingConfigurationError("Facebook client id or secret is not configured")
    client_id, client_secret = credentials
    url = build_graph_url(
        "/oauth/access_token",
        {
            "grant_type": "fb_exchange_token",
            "client_id": client_id,
            "client_secret": client_secret,
            "fb_exchange_token": short_lived_access_token,
        },
    )
    try:
        data = graph_get(url)
    except GraphAPIError as exc:
        logger.error("graph_token_exchange_fail error=%s %s", exc.graph_error, context)
        raise GraphAPIError("Failed fetching long lived access token", exc.graph_error) from exc
    access_token = data.get("access_token")
    if not access_token:
        logger.error("graph_token_exchange_fail error=missing_access_token %s", context)
        raise GraphAPIError("Graph API response did not include an access token")
    logger.info("graph_token_exchange_success expires_in=%s %s", data.get("expires_in"), context)
    return access_token


def fetch_publishing_limit(
    instagram_business_account_id: str,
    access_token: str,
    context: LogContext | None = None,
) -> dict[str, Any]:
    context = (context or LogContext()).bind(function="fetch_publishing_limit")
    url = build_graph_url(
        f"/{instagram_business_account_id}/content_publishing_limit",
        {"fields": "config,quota_usage"},
        access_token,
    )
    try:
        data = graph_get(url)
    except GraphAPIError as exc:
        logger.error("graph_publishing_limit_fail error=%s %s", exc.graph_error, context)
        raise
    entries = data.get("data") or []
    if not entries:
        logger.error("graph_publishing_limit_fail error=empty_data %s", context)
        raise GraphAPIError("No data found in response from Facebook Graph API")
    logger.info("graph_publishing_limit_success limit=%s %s", entries[0], context)
    return entries[0]


__all__ = [
    "GraphError",
    "build_graph_url",
    "fetch_instagram_username",
    "fetch_long_lived_access_token",
    "fetch_publishing_limit",
    "graph_get",
    "parse_graph_response",
]
