"""
NoteKeeper Backend — File Storage Backend
===========================================

What:  StorageProvider implementation on flat JSON documents.
How:   Whole-document read-modify-write through aiofiles. Every write goes to
       a uniquely named temp file in the target's directory and is then moved
       into place with `os.replace`, so a crash mid-write leaves the previous
       document intact.
Who:   Selected by `create_storage()` when STORAGE_BACKEND=file (the default).

On-disk layout (under DATA_DIR):
    users.json           JSON array of user documents
    categories.json      JSON array of category documents
    notes/<id>.json      one document per note

Concurrency:
    One asyncio.Lock per collection ("users", "categories", "notes"). Every
    read-modify-write holds its collection's lock for the whole cycle; the
    category delete and any note write that sets a category hold
    "categories" then "notes". Lock order is always
    users → categories → notes.

    Limitation: the locks live in this process. Two processes sharing one
    DATA_DIR still race, last write wins.

Cost:
    Note listing scans every file in notes/ and filters in memory, so it is
    O(total notes) regardless of owner.
"""

import asyncio
import json
import logging
import os
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import aiofiles
import pydantic

from notekeeper.exceptions import (
    AccessDeniedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from notekeeper.schemas.domain import (
    DEFAULT_PREFERENCES,
    Category,
    Note,
    NoteFilters,
    User,
    next_timestamp,
    normalize_tags,
    sort_notes,
    utc_now,
)
from notekeeper.storage.base import (
    CATEGORY_MUTABLE_FIELDS,
    NOTE_MUTABLE_FIELDS,
    USER_MUTABLE_FIELDS,
    AdminSeed,
    CategoryRepository,
    NoteRepository,
    StorageProvider,
    UserRepository,
    check_fields,
)
from notekeeper.storage.identity import IdFactory, is_safe_id, new_id

logger = logging.getLogger(__name__)

# Returned by _read_json when the file does not exist.
_MISSING = object()


class FileUserRepository(UserRepository):
    def __init__(self, storage: "FileStorage"):
        self._storage = storage

    async def _load(self) -> List[User]:
        """
        Reads users.json. Must be called with the "users" lock held: a
        missing file triggers the default-admin bootstrap, which writes.
        """
        data = await self._storage._read_json(self._storage.users_path)
        if data is _MISSING:
            return await self._bootstrap()
        return [self._storage._parse(User, doc, self._storage.users_path) for doc in data]

    async def _save(self, users: List[User]) -> None:
        await self._storage._write_json(
            self._storage.users_path, [u.model_dump(mode="json") for u in users]
        )

    async def _bootstrap(self) -> List[User]:
        seed = self._storage.admin_seed
        if seed is None:
            return []
        now = utc_now()
        admin = User(
            id=self._storage.id_factory(),
            username=seed.username,
            email=seed.email,
            password_hash=seed.password_hash,
            is_admin=True,
            is_active=True,
            preferences=dict(DEFAULT_PREFERENCES),
            created_at=now,
            updated_at=now,
        )
        await self._save([admin])
        logger.warning(
            "Seeded default admin account '%s'. Change its password immediately.",
            seed.username,
        )
        return [admin]

    @staticmethod
    def _check_unique(
        users: List[User], username: Optional[str], email: Optional[str], skip_id: Optional[str] = None
    ) -> None:
        for user in users:
            if user.id == skip_id:
                continue
            if username is not None and user.username == username:
                raise ValidationError(message="Username already exists", field="username")
            if email is not None and user.email == email:
                raise ValidationError(message="Email already exists", field="email")

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
        async with self._storage.locked("users"):
            users = await self._load()
            self._check_unique(users, username, email)
            now = utc_now()
            user = User(
                id=self._storage.id_factory(),
                username=username,
                email=email,
                password_hash=password_hash,
                is_admin=is_admin,
                is_active=is_active,
                preferences=dict(preferences if preferences is not None else DEFAULT_PREFERENCES),
                created_at=now,
                updated_at=now,
            )
            users.append(user)
            await self._save(users)
        logger.info("User created: %s (id=%s)", user.username, user.id)
        return user

    async def _find(self, predicate) -> Optional[User]:
        async with self._storage.locked("users"):
            users = await self._load()
        return next((u for u in users if predicate(u)), None)

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return await self._find(lambda u: u.id == user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self._find(lambda u: u.email == email)

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self._find(lambda u: u.username == username)

    async def list_all(self) -> List[User]:
        async with self._storage.locked("users"):
            users = await self._load()
        # Stable sort over file order keeps later registrations first on ties.
        return sorted(reversed(users), key=lambda u: u.created_at, reverse=True)

    async def update(self, user_id: str, fields: Dict[str, Any]) -> User:
        check_fields(fields, USER_MUTABLE_FIELDS, "user")
        async with self._storage.locked("users"):
            users = await self._load()
            for index, user in enumerate(users):
                if user.id == user_id:
                    break
            else:
                raise NotFoundError(resource="user", resource_id=user_id)

            self._check_unique(users, fields.get("username"), fields.get("email"), skip_id=user_id)
            changes = dict(fields)
            changes["updated_at"] = next_timestamp(user.updated_at)
            updated = user.model_copy(update=changes)
            users[index] = updated
            await self._save(users)
        return updated

    async def count(
        self, *, is_active: Optional[bool] = None, is_admin: Optional[bool] = None
    ) -> int:
        async with self._storage.locked("users"):
            users = await self._load()
        return sum(
            1
            for u in users
            if (is_active is None or u.is_active == is_active)
            and (is_admin is None or u.is_admin == is_admin)
        )


class FileCategoryRepository(CategoryRepository):
    def __init__(self, storage: "FileStorage"):
        self._storage = storage

    async def _load(self) -> List[Category]:
        path = self._storage.categories_path
        data = await self._storage._read_json(path)
        if data is _MISSING:
            return []
        return [self._storage._parse(Category, doc, path) for doc in data]

    async def _save(self, categories: List[Category]) -> None:
        await self._storage._write_json(
            self._storage.categories_path, [c.model_dump(mode="json") for c in categories]
        )

    @staticmethod
    def _index_owned(categories: List[Category], category_id: str, owner_id: str) -> Optional[int]:
        for index, category in enumerate(categories):
            if category.id == category_id:
                if category.user_id != owner_id:
                    raise AccessDeniedError(resource="category", resource_id=category_id)
                return index
        return None

    async def create(
        self, owner_id: str, *, name: str, color: str, description: str = ""
    ) -> Category:
        now = utc_now()
        category = Category(
            id=self._storage.id_factory(),
            name=name,
            color=color,
            description=description,
            user_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        async with self._storage.locked("categories"):
            categories = await self._load()
            categories.append(category)
            await self._save(categories)
        return category

    async def get_by_id(
        self, category_id: str, owner_id: Optional[str] = None
    ) -> Optional[Category]:
        async with self._storage.locked("categories"):
            categories = await self._load()
        for category in categories:
            if category.id == category_id:
                if owner_id is not None and category.user_id != owner_id:
                    return None
                return category
        return None

    async def list_by_owner(self, owner_id: str) -> List[Category]:
        async with self._storage.locked("categories"):
            categories = await self._load()
        owned = [c for c in categories if c.user_id == owner_id]
        return sorted(owned, key=lambda c: c.name.lower())

    async def update(self, category_id: str, owner_id: str, fields: Dict[str, Any]) -> Category:
        check_fields(fields, CATEGORY_MUTABLE_FIELDS, "category")
        async with self._storage.locked("categories"):
            categories = await self._load()
            index = self._index_owned(categories, category_id, owner_id)
            if index is None:
                raise NotFoundError(resource="category", resource_id=category_id)
            current = categories[index]
            changes = dict(fields)
            changes["updated_at"] = next_timestamp(current.updated_at)
            updated = current.model_copy(update=changes)
            categories[index] = updated
            await self._save(categories)
        return updated

    async def delete(self, category_id: str, owner_id: str) -> bool:
        async with self._storage.locked("categories"):
            categories = await self._load()
            index = self._index_owned(categories, category_id, owner_id)
            if index is None:
                return False

            async with self._storage.locked("notes"):
                # Category document first: a failed write leaves every note untouched.
                del categories[index]
                await self._save(categories)

                detached = 0
                for note in await self._storage._scan_notes():
                    if note.category_id == category_id:
                        await self._storage._save_note(note.model_copy(update={"category_id": None}))
                        detached += 1
        logger.info(
            "Category %s deleted (owner=%s, %d note(s) detached)", category_id, owner_id, detached
        )
        return True

    async def count(self) -> int:
        async with self._storage.locked("categories"):
            return len(await self._load())


class FileNoteRepository(NoteRepository):
    def __init__(self, storage: "FileStorage"):
        self._storage = storage

    async def _load_owned(self, note_id: str, owner_id: str) -> Optional[Note]:
        note = await self._storage._read_note(note_id)
        if note is not None and note.user_id != owner_id:
            raise AccessDeniedError(resource="note", resource_id=note_id)
        return note

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
        now = utc_now()
        note = Note(
            id=self._storage.id_factory(),
            title=title,
            content=content,
            category_id=category_id,
            user_id=owner_id,
            is_pinned=is_pinned,
            is_favorite=False,
            is_archived=False,
            tags=normalize_tags(tags),
            attachments=list(attachments or []),
            view_count=0,
            created_at=now,
            updated_at=now,
        )
        async with self._storage.note_write(owner_id, category_id):
            await self._storage._save_note(note)
        return note

    async def get_by_id(self, note_id: str, owner_id: Optional[str] = None) -> Optional[Note]:
        note = await self._storage._read_note(note_id)
        if note is None or (owner_id is not None and note.user_id != owner_id):
            return None
        return note

    async def list_by_owner(
        self, owner_id: str, filters: Optional[NoteFilters] = None
    ) -> List[Note]:
        filters = filters or NoteFilters()
        notes = [
            n for n in await self._storage._scan_notes()
            if n.user_id == owner_id and filters.matches(n)
        ]
        # Creation order is the tie-break for equal (pinned, updated_at).
        notes.sort(key=lambda n: n.created_at)
        return sort_notes(notes)

    async def update(self, note_id: str, owner_id: str, fields: Dict[str, Any]) -> Note:
        check_fields(fields, NOTE_MUTABLE_FIELDS, "note")
        async with self._storage.note_write(owner_id, fields.get("category_id")):
            current = await self._load_owned(note_id, owner_id)
            if current is None:
                raise NotFoundError(resource="note", resource_id=note_id)

            changes = dict(fields)
            if "tags" in changes:
                changes["tags"] = normalize_tags(changes["tags"])
            if "attachments" in changes:
                changes["attachments"] = list(changes["attachments"] or [])
            changes["updated_at"] = next_timestamp(current.updated_at)
            updated = current.model_copy(update=changes)
            await self._storage._save_note(updated)
        return updated

    async def delete(self, note_id: str, owner_id: str) -> bool:
        async with self._storage.locked("notes"):
            note = await self._load_owned(note_id, owner_id)
            if note is None:
                return False
            try:
                os.remove(self._storage.note_path(note_id))
            except FileNotFoundError:
                return False
            except OSError as e:
                logger.error("Failed to delete note %s: %s", note_id, str(e))
                raise StorageError(context={"note_id": note_id, "os_error": str(e)}) from e
        return True

    async def count(self) -> int:
        return len(await self._storage._scan_notes())

    async def list_recent(self, limit: int = 5) -> List[Note]:
        notes = await self._storage._scan_notes()
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return notes[:limit]

    async def count_by_category(self, owner_id: str) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for note in await self._storage._scan_notes():
            if note.user_id == owner_id and note.category_id is not None:
                counts[note.category_id] = counts.get(note.category_id, 0) + 1
        return counts


class FileStorage(StorageProvider):
    """
    Storage on JSON files under one data directory.

    Args:
        data_dir:    root directory, created by initialize()
        admin_seed:  admin written into a missing users.json
        id_factory:  id generator; tests pass a deterministic one
    """

    kind = "file"

    def __init__(
        self,
        data_dir: str,
        admin_seed: Optional[AdminSeed] = None,
        id_factory: IdFactory = new_id,
    ):
        self.root = Path(data_dir)
        self.users_path = self.root / "users.json"
        self.categories_path = self.root / "categories.json"
        self.notes_dir = self.root / "notes"
        self.admin_seed = admin_seed
        self.id_factory = id_factory

        self._locks = {
            "users": asyncio.Lock(),
            "categories": asyncio.Lock(),
            "notes": asyncio.Lock(),
        }

        self.users = FileUserRepository(self)
        self.categories = FileCategoryRepository(self)
        self.notes = FileNoteRepository(self)

    @asynccontextmanager
    async def locked(self, collection: str) -> AsyncIterator[None]:
        async with self._locks[collection]:
            yield

    @asynccontextmanager
    async def note_write(self, owner_id: str, category_id: Optional[str]) -> AsyncIterator[None]:
        """
        Holds "notes" for a note write. When the write files the note under
        a category, "categories" is taken first and the category must exist
        and belong to `owner_id` for the whole write, so a concurrent
        category delete cannot leave a dangling reference.
        """
        if category_id is None:
            async with self.locked("notes"):
                yield
            return

        async with self.locked("categories"):
            categories = await self.categories._load()
            if not any(c.id == category_id and c.user_id == owner_id for c in categories):
                raise ValidationError(
                    message=f"Category '{category_id}' does not exist",
                    field="category_id",
                )
            async with self.locked("notes"):
                yield

    def note_path(self, note_id: str) -> Path:
        return self.notes_dir / f"{note_id}.json"

    # ── Raw document I/O ──────────────────────────────────────────────────

    async def _read_json(self, path: Path) -> Any:
        """Parsed JSON, or _MISSING if the file does not exist."""
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            return _MISSING
        except OSError as e:
            logger.error("Failed to read %s: %s", path, str(e))
            raise StorageError(context={"path": str(path), "os_error": str(e)}) from e

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Corrupt JSON document %s: %s", path, str(e))
            raise StorageError(context={"path": str(path), "json_error": str(e)}) from e

    async def _write_json(self, path: Path, data: Any) -> None:
        """Write-to-temp then os.replace; the target is never half-written."""
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, indent=2, ensure_ascii=False))
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("Failed to write %s: %s", path, str(e))
            try:
                os.remove(tmp_path)
            except FileNotFoundError:
                pass
            raise StorageError(context={"path": str(path), "os_error": str(e)}) from e

    @staticmethod
    def _parse(model, doc: Any, path: Path):
        try:
            return model.model_validate(doc)
        except pydantic.ValidationError as e:
            logger.error("Malformed %s document in %s: %s", model.__name__, path, e)
            raise StorageError(context={"path": str(path)}) from e

    # ── Notes directory ───────────────────────────────────────────────────

    async def _read_note(self, note_id: str) -> Optional[Note]:
        # Ids that could not have been generated here would escape notes/.
        if not is_safe_id(note_id):
            return None
        path = self.note_path(note_id)
        data = await self._read_json(path)
        if data is _MISSING:
            return None
        return self._parse(Note, data, path)

    async def _save_note(self, note: Note) -> None:
        await self._write_json(self.note_path(note.id), note.model_dump(mode="json"))

    async def _scan_notes(self) -> List[Note]:
        """Every note on disk; files deleted mid-scan are skipped."""
        if not self.notes_dir.is_dir():
            return []
        notes = []
        for path in sorted(self.notes_dir.glob("*.json")):
            data = await self._read_json(path)
            if data is _MISSING:
                continue
            notes.append(self._parse(Note, data, path))
        return notes

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        try:
            self.notes_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create data directory %s: %s", self.root, str(e))
            raise StorageError(context={"path": str(self.root), "os_error": str(e)}) from e

        # Loading the users collection seeds the admin on first boot.
        async with self.locked("users"):
            await self.users._load()
        logger.info("File storage ready at %s", self.root.resolve())

    async def health_check(self) -> bool:
        healthy = self.notes_dir.is_dir() and os.access(self.root, os.W_OK)
        if not healthy:
            logger.warning("Health check: data directory %s is not writable", self.root)
        return healthy

    async def close(self) -> None:
        logger.info("File storage closed")
