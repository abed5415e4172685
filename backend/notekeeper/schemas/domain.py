"""
NoteKeeper Backend — Canonical Domain Entities
================================================

What:  The one field set every layer above storage sees for users,
       categories and notes.
How:   Plain Pydantic models with snake_case names. Both backends translate
       their own representation (ORM rows, JSON documents) into these at the
       storage boundary, so services never see `is_active` vs `isActive`
       style differences or integer vs string identifiers.
Who:   Returned by every StorageProvider repository; consumed by services.

Identifiers are opaque strings: the relational backend renders its integer
keys as strings, the file backend generates hex ids.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


DEFAULT_PREFERENCES: Dict[str, Any] = {"theme": "system", "markdown": True}
DEFAULT_CATEGORY_COLOR = "#3498db"
DEFAULT_NOTE_TITLE = "Untitled Note"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class User(BaseModel):
    """A registered account. `password_hash` never leaves the service layer."""

    id: str
    username: str
    email: str
    password_hash: str
    is_admin: bool = False
    is_active: bool = True
    preferences: Dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_PREFERENCES))
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class Category(BaseModel):
    id: str
    name: str
    color: str = DEFAULT_CATEGORY_COLOR
    description: str = ""
    user_id: str
    created_at: datetime
    updated_at: datetime


class Note(BaseModel):
    """
    A user's note.

    `view_count` is persisted and exposed but no operation increments it.
    """

    id: str
    title: str = DEFAULT_NOTE_TITLE
    content: str = ""
    category_id: Optional[str] = None
    user_id: str
    is_pinned: bool = False
    is_favorite: bool = False
    is_archived: bool = False
    tags: List[str] = Field(default_factory=list)
    attachments: List[str] = Field(default_factory=list)
    view_count: int = 0
    created_at: datetime
    updated_at: datetime


class NoteFilters(BaseModel):
    """
    Optional predicates for `notes.list_by_owner`. A None field is not
    applied; every non-None field must match.
    """

    category_id: Optional[str] = None
    is_archived: Optional[bool] = None
    is_favorite: Optional[bool] = None
    tag: Optional[str] = None

    def matches(self, note: Note) -> bool:
        if self.category_id is not None and note.category_id != self.category_id:
            return False
        if self.is_archived is not None and note.is_archived != self.is_archived:
            return False
        if self.is_favorite is not None and note.is_favorite != self.is_favorite:
            return False
        if self.tag is not None and self.tag not in note.tags:
            return False
        return True


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Drops blanks and duplicates, keeping first-seen order."""
    seen: List[str] = []
    for tag in tags or []:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def sort_notes(notes: List[Note]) -> List[Note]:
    """
    Pinned first, then most recently updated first. `sorted` is stable, so
    callers control the final tie-break through the input order.
    """
    return sorted(notes, key=lambda n: (not n.is_pinned, -n.updated_at.timestamp()))


def next_timestamp(previous: Optional[datetime]) -> datetime:
    """
    Returns "now", nudged forward when the clock has not moved past
    `previous`, so successive updates of one record strictly increase.
    """
    now = utc_now()
    if previous is not None:
        previous = ensure_utc(previous)
        if now <= previous:
            now = previous + timedelta(microseconds=1)
    return now
