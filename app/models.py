from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class InstagramAccount(Base):
    __tablename__ = "instagram-accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_name: Mapped[str] = mapped_column(String(255))
    facebook_page_id: Mapped[str] = mapped_column(String(64))
    instagram_business_account_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    access_token: Mapped[str] = mapped_column(Text)
    picture_file_path: Mapped[str] = mapped_column(String(512))
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class YoutubeChannel(Base):
    __tablename__ = "youtube-channels"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    channel_custom_url: Mapped[str] = mapped_column(String(255))
    profile_picture_path: Mapped[str | None] = mapped_column(String(512))
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
