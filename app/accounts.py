"""Linking and unlinking of social accounts.

The actions here never raise: every failure is logged with the context the
flow built up and returned as an ``ActionResult`` carrying one of the generic
messages from ``app.errors``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from app import db, meta_client, storage
from app.errors import (
    CONNECT_ERROR_MESSAGE,
    DELETE_CHANNEL_ERROR_MESSAGE,
    DELETE_ERROR_MESSAGE,
    RATE_LIMIT_ERROR_MESSAGE,
    AccountNotFoundError,
    LinkingError,
)
from app.log_context import LogContext

logger = logging.getLogger("social-accounts")

SAVE_SUCCESS_MESSAGE = "Successfully added Instagram account"
DELETE_SUCCESS_MESSAGE = "Successfully deleted Instagram account"
DELETE_CHANNEL_SUCCESS_MESSAGE = "Successfully deleted YouTube channel"


class SaveInstagramAccountRequest(BaseModel):
    app_scoped_user_id: str = ""
    short_lived_access_token: str
    instagram_business_account_id: str
    facebook_page_id: str
    instagram_account_name: str
    picture_url: str
    user_id: str


@dataclass(frozen=True)
class ActionResult:
    data: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _report_failure(event: str, exc: BaseException, context: LogContext) -> None:
    if isinstance(exc, LinkingError):
        logger.error("%s error_type=%s error=%s %s", event, type(exc).__name__, exc, context)
    else:
        logger.exception("%s error_type=unexpected error=%s %s", event, exc, context)


def save_instagram_account(request: SaveInstagramAccountRequest) -> ActionResult:
    context = LogContext(
        {
            "action": "save_instagram_account",
            "app_scoped_user_id": request.app_scoped_user_id,
            "short_lived_access_token": request.short_lived_access_token,
            "instagram_business_account_id": request.instagram_business_account_id,
            "facebook_page_id": request.facebook_page_id,
            "instagram_account_name": request.instagram_account_name,
            "picture_url": request.picture_url,
            "user_id": request.user_id,
        }
    )
    try:
        username = meta_client.fetch_instagram_username(
            request.instagram_business_account_id,
            request.short_lived_access_token,
            context,
        )
        context = context.bind(instagram_username=username)

        long_lived_access_token = meta_client.fetch_long_lived_access_token(
            request.short_lived_access_token,
            context,
        )
        context = context.bind(long_lived_access_token=long_lived_access_token)

        picture_file_path = storage.rehost_profile_picture(
            request.picture_url,
            request.user_id,
            request.instagram_business_account_id,
            context,
        )
        context = context.bind(picture_file_path=picture_file_path)

        db.insert_instagram_account(
            account_name=request.instagram_account_name,
            facebook_page_id=request.facebook_page_id,
            instagram_business_account_id=request.instagram_business_account_id,
            access_token=long_lived_access_token,
            picture_file_path=picture_file_path,
            user_id=request.user_id,
        )
    except Exception as exc:  # noqa: BLE001
        _report_failure("save_instagram_account_fail", exc, context)
        return ActionResult(error=CONNECT_ERROR_MESSAGE)

    logger.info("save_instagram_account_success %s", context)
    return ActionResult(
        data={
            "message": SAVE_SUCCESS_MESSAGE,
            "instagram_business_account_id": request.instagram_business_account_id,
        }
    )


def delete_instagram_account(user_id: str, instagram_business_account_id: str) -> ActionResult:
    context = LogContext(
        {
            "action": "delete_instagram_account",
            "user_id": user_id,
            "instagram_business_account_id": instagram_business_account_id,
        }
    )
    try:
        deleted = db.delete_instagram_account(user_id, instagram_business_account_id)
        context = context.bind(rows_deleted=deleted)
    except Exception as exc:  # noqa: BLE001
        _report_failure("delete_instagram_account_fail", exc, context)
        return ActionResult(error=DELETE_ERROR_MESSAGE)

    prefix = storage.account_media_prefix(user_id, storage.INSTAGRAM_ACCOUNT_FOLDER, instagram_business_account_id)
    try:
        storage.get_storage().remove([prefix])
    except Exception as exc:  # noqa: BLE001
        # The row is already gone; the media prefix stays behind as an orphan.
        _report_failure("delete_instagram_account_media_orphaned", exc, context.bind(media_prefix=prefix))
        return ActionResult(error=DELETE_ERROR_MESSAGE)

    logger.info("delete_instagram_account_success %s", context)
    return ActionResult(data=DELETE_SUCCESS_MESSAGE)


def delete_youtube_channel(user_id: str, channel_id: str) -> ActionResult:
    context = LogContext({"action": "delete_youtube_channel", "user_id": user_id, "channel_id": channel_id})
    try:
        deleted = db.delete_youtube_channel(user_id, channel_id)
        context = context.bind(rows_deleted=deleted)
    except Exception as exc:  # noqa: BLE001
        _report_failure("delete_youtube_channel_fail", exc, context)
        return ActionResult(error=DELETE_CHANNEL_ERROR_MESSAGE)

    prefix = storage.account_media_prefix(user_id, storage.YOUTUBE_CHANNEL_FOLDER, channel_id)
    try:
        storage.get_storage().remove([prefix])
    except Exception as exc:  # noqa: BLE001
        _report_failure("delete_youtube_channel_media_orphaned", exc, context.bind(media_prefix=prefix))
        return ActionResult(error=DELETE_CHANNEL_ERROR_MESSAGE)

    logger.info("delete_youtube_channel_success %s", context)
    return ActionResult(data=DELETE_CHANNEL_SUCCESS_MESSAGE)


def fetch_instagram_publishing_limit(user_id: str, instagram_business_account_id: str) -> ActionResult:
    context = LogContext(
        {
            "action": "fetch_instagram_publishing_limit",
            "user_id": user_id,
            "instagram_business_account_id": instagram_business_account_id,
        }
    )
    try:
        account = db.get_instagram_account(user_id, instagram_business_account_id)
        if account is None:
            raise AccountNotFoundError(f"no linked account {instagram_business_account_id}")
        limit = meta_client.fetch_publishing_limit(
            instagram_business_account_id,
            account["access_token"],
            context,
        )
    except Exception as exc:  # noqa: BLE001
        _report_failure("fetch_instagram_publishing_limit_fail", exc, context)
        return ActionResult(error=RATE_LIMIT_ERROR_MESSAGE)
    return ActionResult(data=limit)


__all__ = [
    "ActionResult",
    "SaveInstagramAccountRequest",
    "delete_instagram_account",
    "delete_youtube_channel",
    "fetch_instagram_publishing_limit",
    "save_instagram_account",
]
