"""
NoteKeeper Backend — User SQLAlchemy Model
============================================

What:  ORM model for the `users` table (relational backend only).
How:   Registered on `Base.metadata`; created by `RelationalStorage.initialize()`.

Table Design:
    - Integer auto-increment key, exposed upward as an opaque string id
    - username and email carry UNIQUE constraints
    - preferences is a JSON document serialized into TEXT
    - users are never deleted: is_active=False is the deletion semantics
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notekeeper.database import Base
from notekeeper.schemas.domain import utc_now


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False, comment="bcrypt digest")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    preferences: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return f"<UserRow(id={self.id}, username='{self.username}', is_admin={self.is_admin})>"
