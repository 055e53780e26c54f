from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, delete, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app import config
from app.errors import PersistenceError
from app.models import Base, InstagramAccount, YoutubeChannel

logger = logging.getLogger("social-accounts")
DATABASE_URL = config.get_database_url()

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args, hide_parameters=True)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        # bound parameters carry access tokens, so only the driver error is kept
        driver_error = getattr(exc, "orig", None)
        reason = str(driver_error or type(exc).__name__)
        logger.error("db_write_fail error_type=%s error=%s", type(exc).__name__, reason)
        raise PersistenceError(reason) from driver_error
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    Base.metadata.create_all(engine)
    logger.info("db_write_success event=init_db")


def row_to_dict(row: Any) -> dict[str, Any] | None:
    if row is None:
        return None
    return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}


def insert_instagram_account(
    account_name: str,
    facebook_page_id: str,
    instagram_business_account_id: str,
    access_token: str,
    picture_file_path: str,
    user_id: str,
) -> dict[str, Any]:
    with get_session() as session:
        account = InstagramAccount(
            account_name=account_name,
            facebook_page_id=facebook_page_id,
            instagram_business_account_id=instagram_business_account_id,
            access_token=access_token,
            picture_file_path=picture_file_path,
            user_id=user_id,
        )
        session.add(account)
        session.flush()
        created = row_to_dict(account)
    logger.info(
        "db_write_success event=insert_instagram_account user_id=%s instagram_business_account_id=%s",
        user_id,
        instagram_business_account_id,
    )
    return created


def list_instagram_accounts(user_id: str) -> list[dict[str, Any]]:
    with get_session() as session:
        rows = session.execute(
            select(InstagramAccount)
            .where(InstagramAccount.user_id == user_id)
            .order_by(InstagramAccount.id)
        ).scalars().all()
        return [row_to_dict(row) for row in rows]


def get_instagram_account(user_id: str, instagram_business_account_id: str) -> dict[str, Any] | None:
    with get_session() as session:
        row = session.execute(
            select(InstagramAccount).where(
                InstagramAccount.user_id == user_id,
                InstagramAccount.instagram_business_account_id == instagram_business_account_id,
            )
        ).scalar_one_or_none()
        return row_to_dict(row)


def linked_instagram_account_ids(user_id: str) -> set[str]:
    with get_session() as session:
        ids = session.execute(
            select(InstagramAccount.instagram_business_account_id).where(InstagramAccount.user_id == user_id)
        ).scalars().all()
        return set(ids)


def delete_instagram_account(user_id: str, instagram_business_account_id: str) -> int:
    with get_session() as session:
        result = session.execute(
            delete(InstagramAccount).where(
                InstagramAccount.user_id == user_id,
                InstagramAccount.instagram_business_account_id == instagram_business_account_id,
            )
        )
        deleted = result.rowcount or 0
    logger.info(
        "db_write_success event=delete_instagram_account user_id=%s instagram_business_account_id=%s rows=%s",
        user_id,
        instagram_business_account_id,
        deleted,
    )
    return deleted


def insert_youtube_channel(
    channel_id: str,
    channel_custom_url: str,
    profile_picture_path: str | None,
    user_id: str,
) -> dict[str, Any]:
    """Seed a channel row.

    Channels are linked outside this service; the dashboard only lists and deletes them.
    """
    with get_session() as session:
        channel = YoutubeChannel(
            id=channel_id,
            channel_custom_url=channel_custom_url,
            profile_picture_path=profile_picture_path,
            user_id=user_id,
        )
        session.add(channel)
        session.flush()
        created = row_to_dict(channel)
    logger.info("db_write_success event=insert_youtube_channel user_id=%s channel_id=%s", user_id, channel_id)
    return created


def list_youtube_channels(user_id: str) -> list[dict[str, Any]]:
    with get_session() as session:
        rows = session.execute(
            select(YoutubeChannel)
            .where(YoutubeChannel.user_id == user_id)
            .order_by(YoutubeChannel.created_at)
        ).scalars().all()
        return [row_to_dict(row) for row in rows]


def delete_youtube_channel(user_id: str, channel_id: str) -> int:
    with get_session() as session:
        result = session.execute(
            delete(YoutubeChannel).where(
                YoutubeChannel.user_id == user_id,
                YoutubeChannel.id == channel_id,
            )
        )
        deleted = result.rowcount or 0
    logger.info(
        "db_write_success event=delete_youtube_channel user_id=%s channel_id=%s rows=%s",
        user_id,
        channel_id,
        deleted,
    )
    return deleted
