"""
NoteKeeper Backend — Storage Abstraction (Contract)
=====================================================

What:  Abstract repositories for users, categories and notes, grouped under a
       `StorageProvider` with lifecycle hooks.
How:   RelationalStorage (storage/sql.py) and FileStorage (storage/files.py)
       implement every method with the same observable semantics. Both
       return the canonical entities from `schemas.domain`.
Who:   Constructed once by `storage.create_storage()` at startup and passed
       explicitly into every service.

Shared semantics (both backends):
    create(...)                   → entity with a backend-assigned id
    get_by_id(id, owner_id=None)  → entity, or None when absent OR owned by
                                    someone else (no existence leakage)
    list_by_owner(owner_id, ...)  → ordered list
    update(id, owner_id, fields)  → entity; NotFoundError if absent,
                                    AccessDeniedError if foreign; only the
                                    given fields change; updated_at strictly
                                    increases
    delete(id, owner_id)          → True; False if already gone;
                                    AccessDeniedError if foreign

    Deleting a category clears `category_id` on the notes that referenced
    it, in both backends.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from notekeeper.exceptions import ValidationError
from notekeeper.schemas.domain import Category, Note, NoteFilters, User

# Fields an update may touch. Owner ids and timestamps are never caller-set.
USER_MUTABLE_FIELDS = frozenset(
    {"username", "email", "password_hash", "is_admin", "is_active", "preferences", "last_login"}
)
CATEGORY_MUTABLE_FIELDS = frozenset({"name", "color", "description"})
NOTE_MUTABLE_FIELDS = frozenset(
    {
        "title",
        "content",
        "category_id",
        "is_pinned",
        "is_favorite",
        "is_archived",
        "tags",
        "attachments",
    }
)


def check_fields(fields: Dict[str, Any], allowed: Iterable[str], resource: str) -> None:
    """Rejects updates naming a field the resource does not allow."""
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise ValidationError(
            message=f"Cannot update {resource} field(s): {', '.join(unknown)}",
            context={"fields": unknown},
        )


@dataclass(frozen=True)
class AdminSeed:
    """Credentials for the admin account seeded into an empty user collection."""

    username: str
    email: str
    password_hash: str


class UserRepository(ABC):
    """Users are never hard-deleted; `is_active=False` is deletion."""

    @abstractmethod
    async def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        is_admin: bool = False,
        is_active: bool = True,
        preferences: Optional[Dict[str, Any]] = None,
    ) -> User:
        """
        Persist a new user.

        Raises:
            ValidationError: username or email already taken
        """
        ...

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    async def list_all(self) -> List[User]:
        """All users, newest first."""
        ...

    @abstractmethod
    async def update(self, user_id: str, fields: Dict[str, Any]) -> User:
        """
        Raises:
            NotFoundError: no such user
            ValidationError: a field outside USER_MUTABLE_FIELDS
        """
        ...

    @abstractmethod
    async def count(
        self, *, is_active: Optional[bool] = None, is_admin: Optional[bool] = None
    ) -> int:
        """Number of users matching every non-None flag."""
        ...


class CategoryRepository(ABC):
    @abstractmethod
    async def create(
        self, owner_id: str, *, name: str, color: str, description: str = ""
    ) -> Category:
        ...

    @abstractmethod
    async def get_by_id(
        self, category_id: str, owner_id: Optional[str] = None
    ) -> Optional[Category]:
        ...

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[Category]:
        """One owner's categories ordered by name, case-insensitively."""
        ...

    @abstractmethod
    async def update(self, category_id: str, owner_id: str, fields: Dict[str, Any]) -> Category:
        ...

    @abstractmethod
    async def delete(self, category_id: str, owner_id: str) -> bool:
        """Deletes the category and clears `category_id` on its notes."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class NoteRepository(ABC):
    @abstractmethod
    async def create(
        self,
        owner_id: str,
        *,
        title: str,
        content: str = "",
        category_id: Optional[str] = None,
        is_pinned: bool = False,
        tags: Optional[List[str]] = None,
        attachments: Optional[List[str]] = None,
    ) -> Note:
        """New notes are never favorite or archived and start at view_count 0."""
        ...

    @abstractmethod
    async def get_by_id(self, note_id: str, owner_id: Optional[str] = None) -> Optional[Note]:
        ...

    @abstractmethod
    async def list_by_owner(
        self, owner_id: str, filters: Optional[NoteFilters] = None
    ) -> List[Note]:
        """Pinned first, then most recently updated first."""
        ...

    @abstractmethod
    async def update(self, note_id: str, owner_id: str, fields: Dict[str, Any]) -> Note:
        ...

    @abstractmethod
    async def delete(self, note_id: str, owner_id: str) -> bool:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def list_recent(self, limit: int = 5) -> List[Note]:
        """Newest-created notes across all users."""
        ...

    @abstractmethod
    async def count_by_category(self, owner_id: str) -> Dict[str, int]:
        """Maps category id → number of the owner's notes filed under it."""
        ...


class StorageProvider(ABC):
    """
    A complete persistence backend.

    Lifecycle:
        initialize()   once at startup: create tables / directories and seed
                       the default admin into an empty user collection
        health_check() cheap reachability probe for /health
        close()        once at shutdown
    """

    #: "database" or "file"; reported by the health endpoints
    kind: str

    users: UserRepository
    categories: CategoryRepository
    notes: NoteRepository

    @abstractmethod
    async def initialize(self) -> None:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
