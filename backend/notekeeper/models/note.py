"""
NoteKeeper Backend — Note SQLAlchemy Model
============================================

What:  ORM model representing the `notes` table.
How:   Registered on the shared Base; `RelationalStorage.initialize()`
       creates it with `create_all` (no migrations).

Table Design Rationale:
    - category_id → categories ON DELETE SET NULL; the storage layer also
      clears it explicitly before deleting a category, so the cascade holds
      on engines that do not enforce foreign keys
    - user_id → users ON DELETE CASCADE
    - tags / attachments: JSON arrays serialized into TEXT, parsed back into
      lists by the repository
    - view_count: declared, defaulted to 0, never incremented

    Index on (user_id, is_pinned, updated_at):
        Matches the list query "one owner's notes, pinned first, newest first"
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from notekeeper.database import Base
from notekeeper.schemas.domain import DEFAULT_NOTE_TITLE, utc_now


class NoteRow(Base):
    """
    Query Patterns:
        - List one owner's notes: WHERE user_id = :uid
          ORDER BY is_pinned DESC, updated_at DESC, id ASC
        - Single note: WHERE id = :id (ownership checked on the loaded row)
        - Category cascade: UPDATE notes SET category_id = NULL
          WHERE category_id = :cid
    """

    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default=DEFAULT_NOTE_TITLE)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tags: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    attachments: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    view_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("idx_notes_owner_listing", "user_id", "is_pinned", "updated_at"),
        Index("idx_notes_category_id", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<NoteRow(id={self.id}, title='{self.title}', user_id={self.user_id})>"
