"""
NoteKeeper Backend — Category SQLAlchemy Model
================================================

What:  ORM model for the `categories` table.
How:   `user_id` references users with ON DELETE CASCADE. The index on
       user_id serves the only list query (categories of one owner).
"""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notekeeper.database import Base
from notekeeper.schemas.domain import DEFAULT_CATEGORY_COLOR, utc_now


class CategoryRow(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default=DEFAULT_CATEGORY_COLOR)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("idx_categories_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<CategoryRow(id={self.id}, name='{self.name}', user_id={self.user_id})>"
