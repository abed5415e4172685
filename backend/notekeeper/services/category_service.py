"""
NoteKeeper Backend — Category Service
=======================================

What:  Validated CRUD over one user's categories, plus note-count statistics.
Who:   /api/categories routes.

Validation rules (create and update):
    name         required, 1..50 characters after trimming
    color        #RRGGBB, hex digits in either case; default #3498db
    description  optional, trimmed, default ""

A category owned by someone else is reported exactly like a missing one
(NotFoundError), on reads and on writes.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from notekeeper.exceptions import AccessDeniedError, NotFoundError, ValidationError
from notekeeper.schemas.api import CategoryStatsItem
from notekeeper.schemas.domain import DEFAULT_CATEGORY_COLOR, Category
from notekeeper.storage.base import StorageProvider

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 50
COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _clean_name(name: Optional[str], required_message: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(required_message, field="name")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Category name must be {MAX_NAME_LENGTH} characters or less", field="name"
        )
    return cleaned


def _check_color(color: Optional[str]) -> str:
    if color is None or not COLOR_PATTERN.match(color):
        raise ValidationError("Invalid color format. Use hex format like #3498db", field="color")
    return color


class CategoryService:
    def __init__(self, storage: StorageProvider):
        self.storage = storage

    async def list_categories(self, user_id: str) -> List[Category]:
        return await self.storage.categories.list_by_owner(user_id)

    async def get_category(self, user_id: str, category_id: str) -> Category:
        category = await self.storage.categories.get_by_id(category_id, owner_id=user_id)
        if category is None:
            raise NotFoundError(resource="category", resource_id=category_id)
        return category

    async def create_category(
        self,
        user_id: str,
        name: Optional[str],
        color: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Category:
        cleaned_name = _clean_name(name, "Category name is required")
        # An empty color falls back to the default, like an absent one.
        cleaned_color = _check_color(color) if color else DEFAULT_CATEGORY_COLOR
        category = await self.storage.categories.create(
            user_id,
            name=cleaned_name,
            color=cleaned_color,
            description=(description or "").strip(),
        )
        logger.info("Category created: %s (id=%s, owner=%s)", category.name, category.id, user_id)
        return category

    async def update_category(
        self, user_id: str, category_id: str, changes: Dict[str, Any]
    ) -> Category:
        """`changes` holds only the fields the client sent."""
        fields: Dict[str, Any] = {}
        if "name" in changes:
            fields["name"] = _clean_name(changes["name"], "Category name cannot be empty")
        if "color" in changes:
            fields["color"] = _check_color(changes["color"])
        if "description" in changes:
            fields["description"] = (changes["description"] or "").strip()

        try:
            return await self.storage.categories.update(category_id, user_id, fields)
        except AccessDeniedError:
            raise NotFoundError(resource="category", resource_id=category_id)

    async def delete_category(self, user_id: str, category_id: str) -> None:
        """Deletes the category; its notes stay, with `category_id` cleared."""
        try:
            deleted = await self.storage.categories.delete(category_id, user_id)
        except AccessDeniedError:
            deleted = False
        if not deleted:
            raise NotFoundError(resource="category", resource_id=category_id)

    async def category_stats(self, user_id: str) -> List[CategoryStatsItem]:
        categories = await self.storage.categories.list_by_owner(user_id)
        counts = await self.storage.notes.count_by_category(user_id)
        return [
            CategoryStatsItem.from_entity(c, note_count=counts.get(c.id, 0))
            for c in categories
        ]
