"""
NoteKeeper Backend — Note Service (Business Logic)
====================================================

What:  Create, list, read, partially update and delete one user's notes,
       plus the favorite and archive toggles.
How:   Applies creation defaults and category-ownership checks, then calls
       `storage.notes`. Every call is scoped by the acting user's id.
Who:   /api/notes routes.

Error mapping:
    get    absent or foreign                → NotFoundOrAccessDeniedError (404)
    update/delete  absent                   → NotFoundError (404)
    update/delete  foreign                  → AccessDeniedError (403)
    create/update  category not owned/found → ValidationError (400)
"""

import logging
from typing import Any, Dict, List, Optional

from notekeeper.exceptions import NotFoundError, NotFoundOrAccessDeniedError, ValidationError
from notekeeper.schemas.domain import DEFAULT_NOTE_TITLE, Category, Note, NoteFilters
from notekeeper.storage.base import StorageProvider

logger = logging.getLogger(__name__)

# Flags whose explicit null in a partial update means "leave unchanged".
_FLAG_FIELDS = ("is_pinned", "is_favorite", "is_archived")


def _title_or_default(title: Optional[str]) -> str:
    if title is None or not title.strip():
        return DEFAULT_NOTE_TITLE
    return title


class NoteService:
    """
    Stateless over its storage provider; holds no copies of notes between
    calls.
    """

    def __init__(self, storage: StorageProvider):
        self.storage = storage

    async def _check_category(self, user_id: str, category_id: Optional[str]) -> Optional[str]:
        """Returns the category id to store, or raises if the user does not own it."""
        if not category_id:
            return None
        category = await self.storage.categories.get_by_id(category_id, owner_id=user_id)
        if category is None:
            raise ValidationError(
                f"Category '{category_id}' does not exist", field="category_id"
            )
        return category.id

    async def create_note(
        self,
        user_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        category_id: Optional[str] = None,
        is_pinned: bool = False,
        tags: Optional[List[str]] = None,
        attachments: Optional[List[str]] = None,
    ) -> Note:
        note = await self.storage.notes.create(
            user_id,
            title=_title_or_default(title),
            content=content or "",
            category_id=await self._check_category(user_id, category_id),
            is_pinned=is_pinned,
            tags=tags or [],
            attachments=attachments or [],
        )
        logger.info("Note created: %s (owner=%s)", note.id, user_id)
        return note

    async def list_notes(
        self,
        user_id: str,
        category_id: Optional[str] = None,
        archived: bool = False,
        favorites: bool = False,
        tag: Optional[str] = None,
    ) -> List[Note]:
        """
        Archived and active notes are listed separately. `favorites=False`
        does not exclude favorites; it just stops filtering on the flag.
        """
        filters = NoteFilters(
            category_id=category_id or None,
            is_archived=archived,
            is_favorite=True if favorites else None,
            tag=tag or None,
        )
        return await self.storage.notes.list_by_owner(user_id, filters)

    async def categories_by_id(self, user_id: str) -> Dict[str, Category]:
        """The user's categories keyed by id, for rendering note category names."""
        return {c.id: c for c in await self.storage.categories.list_by_owner(user_id)}

    async def get_note(self, user_id: str, note_id: str) -> Note:
        note = await self.storage.notes.get_by_id(note_id, owner_id=user_id)
        if note is None:
            raise NotFoundOrAccessDeniedError(resource="note", resource_id=note_id)
        return note

    async def update_note(self, user_id: str, note_id: str, changes: Dict[str, Any]) -> Note:
        """
        Applies only the fields present in `changes`.

        Raises:
            AccessDeniedError: the note belongs to another user
            NotFoundError:     no such note
            ValidationError:   `category_id` names a category the user does not own
        """
        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            if key in _FLAG_FIELDS:
                if value is not None:
                    fields[key] = bool(value)
            elif key == "title":
                fields["title"] = _title_or_default(value)
            elif key == "content":
                fields["content"] = value or ""
            elif key == "category_id":
                fields["category_id"] = await self._check_category(user_id, value)
            elif key in ("tags", "attachments"):
                fields[key] = value or []
            else:
                raise ValidationError(f"Unknown note field '{key}'", field=key)

        return await self.storage.notes.update(note_id, user_id, fields)

    async def delete_note(self, user_id: str, note_id: str) -> None:
        if not await self.storage.notes.delete(note_id, user_id):
            raise NotFoundError(resource="note", resource_id=note_id)
        logger.info("Note deleted: %s (owner=%s)", note_id, user_id)

    async def set_favorite(self, user_id: str, note_id: str, is_favorite: bool) -> Note:
        return await self.storage.notes.update(note_id, user_id, {"is_favorite": is_favorite})

    async def set_archived(self, user_id: str, note_id: str, is_archived: bool) -> Note:
        return await self.storage.notes.update(note_id, user_id, {"is_archived": is_archived})
