"""
NoteKeeper Backend — Admin Service
====================================

What:  Dashboard statistics, user listing and details, admin edits of other
       accounts, deactivation.
Who:   /api/admin routes (already gated by `require_admin`).

Safeguards (checked before any write):
    1. An admin can never deactivate or delete their own account
       → ValidationError, whatever the admin count.
    2. No edit may leave the system without an active admin: demoting or
       deactivating the last active admin → LastAdminProtectedError.
"""

import logging
from typing import List, Optional

from notekeeper.exceptions import LastAdminProtectedError, NotFoundError, ValidationError
from notekeeper.schemas.api import (
    AdminUserDetails,
    DashboardStats,
    PublicUser,
    RecentNote,
    RecentUser,
)
from notekeeper.schemas.domain import NoteFilters, User
from notekeeper.storage.base import StorageProvider

logger = logging.getLogger(__name__)

RECENT_LIMIT = 5


class AdminService:
    def __init__(self, storage: StorageProvider):
        self.storage = storage

    async def _get(self, user_id: str) -> User:
        user = await self.storage.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)
        return user

    async def _guard_last_admin(self, target: User) -> None:
        """Refuse when `target` is the only active admin left."""
        if not (target.is_admin and target.is_active):
            return
        if await self.storage.users.count(is_active=True, is_admin=True) <= 1:
            raise LastAdminProtectedError(
                "Cannot remove the last active admin. At least one admin must exist.",
                context={"user_id": target.id},
            )

    async def dashboard(self) -> DashboardStats:
        users = await self.storage.users.list_all()
        usernames = {u.id: u.username for u in users}
        recent_notes = await self.storage.notes.list_recent(RECENT_LIMIT)

        return DashboardStats(
            total_users=len(users),
            active_users=sum(1 for u in users if u.is_active),
            total_notes=await self.storage.notes.count(),
            total_categories=await self.storage.categories.count(),
            recent_notes=[
                RecentNote(
                    title=note.title,
                    created_at=note.created_at,
                    username=usernames.get(note.user_id),
                )
                for note in recent_notes
            ],
            recent_users=[
                RecentUser(
                    username=u.username,
                    email=u.email,
                    created_at=u.created_at,
                    last_login=u.last_login,
                )
                for u in users[:RECENT_LIMIT]
            ],
        )

    async def list_users(self) -> List[PublicUser]:
        return [PublicUser.from_entity(u) for u in await self.storage.users.list_all()]

    async def get_user_details(self, user_id: str) -> AdminUserDetails:
        user = await self._get(user_id)
        notes = await self.storage.notes.list_by_owner(user.id, NoteFilters())
        categories = await self.storage.categories.list_by_owner(user.id)
        return AdminUserDetails.from_entity(
            user,
            note_count=len(notes),
            category_count=len(categories),
            favorite_notes=sum(1 for n in notes if n.is_favorite),
            pinned_notes=sum(1 for n in notes if n.is_pinned),
            archived_notes=sum(1 for n in notes if n.is_archived),
        )

    async def update_user(
        self,
        acting_user_id: str,
        user_id: str,
        is_active: Optional[bool] = None,
        is_admin: Optional[bool] = None,
    ) -> PublicUser:
        """
        Change `is_active` and/or `is_admin` of an account.

        Raises:
            NotFoundError:           no such user
            ValidationError:         the acting admin deactivates themselves
            LastAdminProtectedError: the change would leave zero active admins
        """
        target = await self._get(user_id)
        if user_id == acting_user_id and is_active is False:
            raise ValidationError("You cannot deactivate your own account", field="is_active")

        fields = {}
        if is_active is not None:
            fields["is_active"] = is_active
        if is_admin is not None:
            fields["is_admin"] = is_admin
        if not fields:
            return PublicUser.from_entity(target)

        if is_active is False or is_admin is False:
            await self._guard_last_admin(target)

        updated = await self.storage.users.update(user_id, fields)
        logger.info("Admin %s updated user %s: %s", acting_user_id, user_id, fields)
        return PublicUser.from_entity(updated)

    async def deactivate_user(self, acting_user_id: str, user_id: str) -> None:
        """Soft delete: users are never removed, only marked inactive."""
        if user_id == acting_user_id:
            raise ValidationError("You cannot delete your own account")
        target = await self._get(user_id)
        await self._guard_last_admin(target)
        await self.storage.users.update(user_id, {"is_active": False})
        logger.info("Admin %s deactivated user %s", acting_user_id, user_id)
