"""Object storage for re-hosted account media.

``ObjectStorage`` wraps an S3 bucket. Keys follow the
``{user_id}/{kind}/{account_id}/...`` layout, so the rest of the app only deals
in object paths. ``STORAGE_ENDPOINT_URL`` points the client at an
S3-compatible server (MinIO, LocalStack) instead of AWS.
"""

from __future__ import annotations

import logging
import mimetypes
from posixpath import normpath
from typing import Any

import boto3
import httpx
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from app import config
from app.errors import MediaDownloadError, MissingConfigurationError, StorageError
from app.log_context import LogContext

logger = logging.getLogger("social-accounts")

DOWNLOAD_TIMEOUT = 20.0
DELETE_BATCH_SIZE = 1000
INSTAGRAM_ACCOUNT_FOLDER = "instagramAccount"
YOUTUBE_CHANNEL_FOLDER = "youtubeChannel"
PROFILE_PICTURE_NAME = "profile_picture"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


def create_s3_client() -> Any:
    return boto3.client(
        "s3",
        region_name=config.get_storage_region(),
        endpoint_url=config.get_storage_endpoint_url(),
        config=Config(signature_version="s3v4"),
    )


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class ObjectStorage:
    def __init__(self, bucket: str, client: Any = None):
        self.bucket = bucket
        self.client = client if client is not None else create_s3_client()

    @staticmethod
    def _key(object_path: str) -> str:
        cleaned = object_path.strip().strip("/")
        if not cleaned or ".." in cleaned.split("/"):
            raise StorageError(f"invalid object path: {object_path!r}")
        return normpath(cleaned)

    def _object_exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in MISSING_OBJECT_CODES:
                return False
            raise
        return True

    def upload(self, object_path: str, data: bytes, content_type: str | None = None, upsert: bool = False) -> str:
        key = self._key(object_path)
        try:
            if not upsert and self._object_exists(key):
                raise StorageError(f"object already exists: {key}")
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or DEFAULT_CONTENT_TYPE,
            )
        except (NoCredentialsError, ClientError, BotoCoreError) as exc:
            logger.error("storage_upload_fail bucket=%s path=%s error=%s", self.bucket, key, exc)
            raise StorageError(f"upload failed for {key}: {exc}") from exc
        logger.info(
            "storage_upload_success bucket=%s path=%s content_type=%s bytes=%s",
            self.bucket,
            key,
            content_type,
            len(data),
        )
        return key

    def _keys_under(self, key: str) -> list[str]:
        keys: list[str] = []
        paginator = self.client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=key):
            for item in page.get("Contents", []):
                # "abc/1" must not match "abc/10"
                if item["Key"] == key or item["Key"].startswith(f"{key}/"):
                    keys.append(item["Key"])
        return keys

    def remove(self, object_paths: list[str]) -> list[str]:
        """Delete each path, or every object under it when it names a prefix.

        Returns the keys that were actually deleted.
        """
        removed: list[str] = []
        try:
            keys: list[str] = []
            for object_path in object_paths:
                keys.extend(self._keys_under(self._key(object_path)))
            for start in range(0, len(keys), DELETE_BATCH_SIZE):
                batch = keys[start : start + DELETE_BATCH_SIZE]
                response = self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": key} for key in batch], "Quiet": False},
                )
                errors = response.get("Errors", [])
                if errors:
                    raise StorageError(f"remove failed for {[error.get('Key') for error in errors]}")
                removed.extend(item["Key"] for item in response.get("Deleted", []))
        except (NoCredentialsError, ClientError, BotoCoreError) as exc:
            logger.error("storage_remove_fail bucket=%s paths=%s error=%s", self.bucket, object_paths, exc)
            raise StorageError(f"remove failed for {object_paths}: {exc}") from exc
        logger.info("storage_remove_success bucket=%s paths=%s", self.bucket, removed)
        return removed

    def read(self, object_path: str) -> tuple[bytes, str]:
        key = self._key(object_path)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
        except ClientError as exc:
            if _error_code(exc) in MISSING_OBJECT_CODES:
                raise StorageError(f"object not found: {key}") from exc
            logger.error("storage_read_fail bucket=%s path=%s error=%s", self.bucket, key, exc)
            raise StorageError(f"read failed for {key}: {exc}") from exc
        except (NoCredentialsError, BotoCoreError) as exc:
            logger.error("storage_read_fail bucket=%s path=%s error=%s", self.bucket, key, exc)
            raise StorageError(f"read failed for {key}: {exc}") from exc
        return body, response.get("ContentType") or DEFAULT_CONTENT_TYPE


def get_storage() -> ObjectStorage:
    bucket = config.get_storage_bucket()
    if not bucket:
        raise MissingConfigurationError("No bucket name found in environment")
    return ObjectStorage(bucket)


def account_media_prefix(user_id: str, folder: str, account_id: str) -> str:
    return f"{user_id}/{folder}/{account_id}"


def profile_picture_path(user_id: str, instagram_business_account_id: str, extension: str) -> str:
    prefix = account_media_prefix(user_id, INSTAGRAM_ACCOUNT_FOLDER, instagram_business_account_id)
    return f"{prefix}/{PROFILE_PICTURE_NAME}.{extension}"


def extension_for_content_type(content_type: str | None, url: str | None = None) -> str:
    mime_type = (content_type or "").split(";", 1)[0].strip().lower()
    if "/" not in mime_type and url:
        guessed, _ = mimetypes.guess_type(url.split("?", 1)[0])
        mime_type = (guessed or "").lower()
    if "/" in mime_type:
        subtype = mime_type.split("/", 1)[1]
        if subtype:
            return subtype
    return "bin"


def download_media(url: str, context: LogContext) -> tuple[bytes, str | None]:
    try:
        response = httpx.get(url, timeout=DOWNLOAD_TIMEOUT, follow_redirects=True)
    except httpx.HTTPError as exc:
        logger.error("media_download_fail error=%s %s", exc, context)
        raise MediaDownloadError(f"Failed to download picture from URL: {url}") from exc
    if not response.is_success:
        logger.error("media_download_fail status_code=%s %s", response.status_code, context)
        raise MediaDownloadError(f"Failed to download picture from URL: {url}")
    return response.content, response.headers.get("content-type")


def rehost_profile_picture(
    picture_url: str,
    user_id: str,
    instagram_business_account_id: str,
    context: LogContext | None = None,
) -> str:
    context = (context or LogContext()).bind(
        function="rehost_profile_picture",
        user_id=user_id,
        instagram_business_account_id=instagram_business_account_id,
        picture_url=picture_url,
    )
    try:
        storage = get_storage()
    except MissingConfigurationError:
        logger.error("media_rehost_fail error=bucket_not_configured %s", context)
        raise

    data, content_type = download_media(picture_url, context)
    extension = extension_for_content_type(content_type, picture_url)
    object_path = profile_picture_path(user_id, instagram_business_account_id, extension)
    try:
        stored_path = storage.upload(object_path, data, content_type=content_type, upsert=True)
    except StorageError as exc:
        logger.error("media_rehost_fail error=%s %s", exc, context)
        raise StorageError("Sorry, we had an issue uploading your file. Please try again.") from exc
    if not stored_path:
        logger.error("media_rehost_fail error=empty_storage_path %s", context)
        raise StorageError("No file path found in storage response")
    logger.info("media_rehost_success path=%s %s", stored_path, context)
    return stored_path


__all__ = [
    "INSTAGRAM_ACCOUNT_FOLDER",
    "ObjectStorage",
    "YOUTUBE_CHANNEL_FOLDER",
    "account_media_prefix",
    "extension_for_content_type",
    "get_storage",
    "profile_picture_path",
    "rehost_profile_picture",
]
