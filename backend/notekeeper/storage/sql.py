"""
NoteKeeper Backend — Relational Storage Backend
=================================================

What:  StorageProvider implementation on async SQLAlchemy.
How:   Each repository call opens one session and one transaction
       (`transaction()`), so multi-statement operations such as the category
       delete (null the notes, then delete the row) commit together or not
       at all. Rows are converted to canonical entities before the call
       returns: integer keys become strings, JSON TEXT columns become lists
       and dicts, naive SQLite timestamps become UTC.
Who:   Selected by `create_storage()` when STORAGE_BACKEND=database.

Error translation (inside `transaction()`):
    IntegrityError                   → ValidationError (duplicate / bad FK)
    OperationalError, InterfaceError → StorageUnavailableError
    OSError while connecting         → StorageUnavailableError
    any other SQLAlchemyError        → StorageError
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notekeeper.config import Settings
from notekeeper.database import Base, build_engine, build_session_factory
from notekeeper.exceptions import (
    AccessDeniedError,
    NotFoundError,
    StorageError,
    StorageUnavailableError,
    ValidationError,
)
from notekeeper.models import CategoryRow, NoteRow, UserRow
from notekeeper.schemas.domain import (
    DEFAULT_PREFERENCES,
    Category,
    Note,
    NoteFilters,
    User,
    ensure_utc,
    next_timestamp,
    normalize_tags,
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

logger = logging.getLogger(__name__)


# ── Boundary conversions ──────────────────────────────────────────────────

def _pk(value: Optional[str]) -> Optional[int]:
    """
    Opaque string id → integer key. Only the exact string this backend
    emits resolves; "01", " 1" and "+1" are different ids and map to None.
    """
    if value is None:
        return None
    value = str(value)
    if not value.isascii() or not value.isdigit() or str(int(value)) != value:
        return None
    return int(value)


def _loads(raw: Optional[str], default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding unparseable JSON column value: %.40r", raw)
        return default


def _to_user(row: UserRow) -> User:
    return User(
        id=str(row.id),
        username=row.username,
        email=row.email,
        password_hash=row.password,
        is_admin=bool(row.is_admin),
        is_active=bool(row.is_active),
        preferences=_loads(row.preferences, dict(DEFAULT_PREFERENCES)),
        last_login=ensure_utc(row.last_login) if row.last_login else None,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _to_category(row: CategoryRow) -> Category:
    return Category(
        id=str(row.id),
        name=row.name,
        color=row.color,
        description=row.description or "",
        user_id=str(row.user_id),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _to_note(row: NoteRow) -> Note:
    return Note(
        id=str(row.id),
        title=row.title,
        content=row.content or "",
        category_id=str(row.category_id) if row.category_id is not None else None,
        user_id=str(row.user_id),
        is_pinned=bool(row.is_pinned),
        is_favorite=bool(row.is_favorite),
        is_archived=bool(row.is_archived),
        tags=_loads(row.tags, []),
        attachments=_loads(row.attachments, []),
        view_count=row.view_count or 0,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _category_fk(category_id: Optional[str]) -> Optional[int]:
    if category_id is None:
        return None
    pk = _pk(category_id)
    if pk is None:
        raise ValidationError(
            message=f"Category '{category_id}' does not exist",
            field="category_id",
        )
    return pk


# ══════════════════════════════════════════════════════════════════════════
# Repositories
# ══════════════════════════════════════════════════════════════════════════

class SqlUserRepository(UserRepository):
    def __init__(self, storage: "RelationalStorage"):
        self._storage = storage

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
        now = utc_now()
        async with self._storage.transaction() as session:
            row = UserRow(
                username=username,
                email=email,
                password=password_hash,
                is_admin=is_admin,
                is_active=is_active,
                preferences=json.dumps(
                    preferences if preferences is not None else DEFAULT_PREFERENCES
                ),
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
            user = _to_user(row)
        logger.info("User created: %s (id=%s)", user.username, user.id)
        return user

    async def get_by_id(self, user_id: str) -> Optional[User]:
        pk = _pk(user_id)
        if pk is None:
            return None
        async with self._storage.transaction() as session:
            row = await session.get(UserRow, pk)
            return _to_user(row) if row else None

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self._storage.transaction() as session:
            result = await session.execute(select(UserRow).where(UserRow.email == email))
            row = result.scalar_one_or_none()
            return _to_user(row) if row else None

    async def get_by_username(self, username: str) -> Optional[User]:
        async with self._storage.transaction() as session:
            result = await session.execute(select(UserRow).where(UserRow.username == username))
            row = result.scalar_one_or_none()
            return _to_user(row) if row else None

    async def list_all(self) -> List[User]:
        async with self._storage.transaction() as session:
            result = await session.execute(
                select(UserRow).order_by(UserRow.created_at.desc(), UserRow.id.desc())
            )
            return [_to_user(row) for row in result.scalars().all()]

    async def update(self, user_id: str, fields: Dict[str, Any]) -> User:
        check_fields(fields, USER_MUTABLE_FIELDS, "user")
        pk = _pk(user_id)
        async with self._storage.transaction() as session:
            row = await session.get(UserRow, pk) if pk is not None else None
            if row is None:
                raise NotFoundError(resource="user", resource_id=user_id)

            for key, value in fields.items():
                if key == "password_hash":
                    row.password = value
                elif key == "preferences":
                    row.preferences = json.dumps(value)
                else:
                    setattr(row, key, value)
            row.updated_at = next_timestamp(row.updated_at)
            await session.flush()
            return _to_user(row)

    async def count(
        self, *, is_active: Optional[bool] = None, is_admin: Optional[bool] = None
    ) -> int:
        query = select(func.count(UserRow.id))
        if is_active is not None:
            query = query.where(UserRow.is_active == is_active)
        if is_admin is not None:
            query = query.where(UserRow.is_admin == is_admin)
        async with self._storage.transaction() as session:
            return (await session.execute(query)).scalar_one()


class SqlCategoryRepository(CategoryRepository):
    def __init__(self, storage: "RelationalStorage"):
        self._storage = storage

    async def _load_owned(
        self, session: AsyncSession, category_id: str, owner_id: str
    ) -> Optional[CategoryRow]:
        """Loads the row for update/delete, raising if someone else owns it."""
        pk = _pk(category_id)
        row = await session.get(CategoryRow, pk) if pk is not None else None
        if row is not None and str(row.user_id) != owner_id:
            raise AccessDeniedError(resource="category", resource_id=category_id)
        return row

    async def create(
        self, owner_id: str, *, name: str, color: str, description: str = ""
    ) -> Category:
        owner_pk = _pk(owner_id)
        if owner_pk is None:
            raise ValidationError(message=f"Unknown owner '{owner_id}'", field="user_id")
        now = utc_now()
        async with self._storage.transaction() as session:
            row = CategoryRow(
                name=name,
                color=color,
                description=description,
                user_id=owner_pk,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
            return _to_category(row)

    async def get_by_id(
        self, category_id: str, owner_id: Optional[str] = None
    ) -> Optional[Category]:
        pk = _pk(category_id)
        if pk is None:
            return None
        async with self._storage.transaction() as session:
            row = await session.get(CategoryRow, pk)
            if row is None or (owner_id is not None and str(row.user_id) != owner_id):
                return None
            return _to_category(row)

    async def list_by_owner(self, owner_id: str) -> List[Category]:
        owner_pk = _pk(owner_id)
        if owner_pk is None:
            return []
        async with self._storage.transaction() as session:
            result = await session.execute(
                select(CategoryRow)
                .where(CategoryRow.user_id == owner_pk)
                .order_by(func.lower(CategoryRow.name), CategoryRow.id)
            )
            return [_to_category(row) for row in result.scalars().all()]

    async def update(self, category_id: str, owner_id: str, fields: Dict[str, Any]) -> Category:
        check_fields(fields, CATEGORY_MUTABLE_FIELDS, "category")
        async with self._storage.transaction() as session:
            row = await self._load_owned(session, category_id, owner_id)
            if row is None:
                raise NotFoundError(resource="category", resource_id=category_id)
            for key, value in fields.items():
                setattr(row, key, value)
            row.updated_at = next_timestamp(row.updated_at)
            await session.flush()
            return _to_category(row)

    async def delete(self, category_id: str, owner_id: str) -> bool:
        async with self._storage.transaction() as session:
            row = await self._load_owned(session, category_id, owner_id)
            if row is None:
                return False
            # Step 1: detach the notes; step 2: drop the row. One transaction.
            await session.execute(
                sql_update(NoteRow)
                .where(NoteRow.category_id == row.id)
                .values(category_id=None)
            )
            await session.delete(row)
        logger.info("Category %s deleted (owner=%s)", category_id, owner_id)
        return True

    async def count(self) -> int:
        async with self._storage.transaction() as session:
            return (await session.execute(select(func.count(CategoryRow.id)))).scalar_one()


class SqlNoteRepository(NoteRepository):
    def __init__(self, storage: "RelationalStorage"):
        self._storage = storage

    async def _load_owned(
        self, session: AsyncSession, note_id: str, owner_id: str
    ) -> Optional[NoteRow]:
        pk = _pk(note_id)
        row = await session.get(NoteRow, pk) if pk is not None else None
        if row is not None and str(row.user_id) != owner_id:
            raise AccessDeniedError(resource="note", resource_id=note_id)
        return row

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
        owner_pk = _pk(owner_id)
        if owner_pk is None:
            raise ValidationError(message=f"Unknown owner '{owner_id}'", field="user_id")
        now = utc_now()
        async with self._storage.transaction() as session:
            row = NoteRow(
                title=title,
                content=content,
                category_id=_category_fk(category_id),
                user_id=owner_pk,
                is_pinned=is_pinned,
                is_favorite=False,
                is_archived=False,
                tags=json.dumps(normalize_tags(tags)),
                attachments=json.dumps(list(attachments or [])),
                view_count=0,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            await session.flush()
            return _to_note(row)

    async def get_by_id(self, note_id: str, owner_id: Optional[str] = None) -> Optional[Note]:
        pk = _pk(note_id)
        if pk is None:
            return None
        async with self._storage.transaction() as session:
            row = await session.get(NoteRow, pk)
            if row is None or (owner_id is not None and str(row.user_id) != owner_id):
                return None
            return _to_note(row)

    async def list_by_owner(
        self, owner_id: str, filters: Optional[NoteFilters] = None
    ) -> List[Note]:
        filters = filters or NoteFilters()
        owner_pk = _pk(owner_id)
        if owner_pk is None:
            return []

        query = select(NoteRow).where(NoteRow.user_id == owner_pk)
        if filters.category_id is not None:
            category_pk = _pk(filters.category_id)
            if category_pk is None:
                return []
            query = query.where(NoteRow.category_id == category_pk)
        if filters.is_archived is not None:
            query = query.where(NoteRow.is_archived == filters.is_archived)
        if filters.is_favorite is not None:
            query = query.where(NoteRow.is_favorite == filters.is_favorite)
        query = query.order_by(
            NoteRow.is_pinned.desc(), NoteRow.updated_at.desc(), NoteRow.id.asc()
        )

        async with self._storage.transaction() as session:
            result = await session.execute(query)
            notes = [_to_note(row) for row in result.scalars().all()]

        # Tags live in a JSON TEXT column; membership is checked after decoding.
        if filters.tag is not None:
            notes = [note for note in notes if filters.tag in note.tags]
        return notes

    async def update(self, note_id: str, owner_id: str, fields: Dict[str, Any]) -> Note:
        check_fields(fields, NOTE_MUTABLE_FIELDS, "note")
        async with self._storage.transaction() as session:
            row = await self._load_owned(session, note_id, owner_id)
            if row is None:
                raise NotFoundError(resource="note", resource_id=note_id)

            for key, value in fields.items():
                if key == "category_id":
                    row.category_id = _category_fk(value)
                elif key == "tags":
                    row.tags = json.dumps(normalize_tags(value))
                elif key == "attachments":
                    row.attachments = json.dumps(list(value or []))
                else:
                    setattr(row, key, value)
            row.updated_at = next_timestamp(row.updated_at)
            await session.flush()
            return _to_note(row)

    async def delete(self, note_id: str, owner_id: str) -> bool:
        async with self._storage.transaction() as session:
            row = await self._load_owned(session, note_id, owner_id)
            if row is None:
                return False
            await session.delete(row)
        return True

    async def count(self) -> int:
        async with self._storage.transaction() as session:
            return (await session.execute(select(func.count(NoteRow.id)))).scalar_one()

    async def list_recent(self, limit: int = 5) -> List[Note]:
        async with self._storage.transaction() as session:
            result = await session.execute(
                select(NoteRow)
                .order_by(NoteRow.created_at.desc(), NoteRow.id.desc())
                .limit(limit)
            )
            return [_to_note(row) for row in result.scalars().all()]

    async def count_by_category(self, owner_id: str) -> Dict[str, int]:
        owner_pk = _pk(owner_id)
        if owner_pk is None:
            return {}
        async with self._storage.transaction() as session:
            result = await session.execute(
                select(NoteRow.category_id, func.count(NoteRow.id))
                .where(NoteRow.user_id == owner_pk, NoteRow.category_id.is_not(None))
                .group_by(NoteRow.category_id)
            )
            return {str(category_id): count for category_id, count in result.all()}


# ══════════════════════════════════════════════════════════════════════════
# Provider
# ══════════════════════════════════════════════════════════════════════════

class RelationalStorage(StorageProvider):
    """
    Storage on a relational database.

    Args:
        settings:   database URL and pool configuration
        admin_seed: admin created by initialize() when `users` is empty
    """

    kind = "database"

    def __init__(self, settings: Settings, admin_seed: Optional[AdminSeed] = None):
        self.engine = build_engine(settings)
        self._session_factory = build_session_factory(self.engine)
        self._admin_seed = admin_seed

        self.users = SqlUserRepository(self)
        self.categories = SqlCategoryRepository(self)
        self.notes = SqlNoteRepository(self)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        One session, one transaction. Commits when the block exits normally,
        rolls back on any exception, and translates driver failures into the
        application's error types.
        """
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            logger.warning("Integrity violation: %s", e.orig)
            raise ValidationError(
                message="A record with these values already exists or references a missing record",
                context={"db_error": type(e.orig).__name__},
            ) from e
        except (OperationalError, InterfaceError) as e:
            logger.error("Database unavailable: %s", e)
            raise StorageUnavailableError(context={"db_error": type(e).__name__}) from e
        except SQLAlchemyError as e:
            logger.error("Database error: %s", e, exc_info=True)
            raise StorageError(context={"db_error": type(e).__name__}) from e
        except OSError as e:
            logger.error("Database connection failed: %s", e)
            raise StorageUnavailableError(context={"os_error": str(e)}) from e

    async def initialize(self) -> None:
        """
        Create the three tables if absent (idempotent), then seed the
        default admin when no user exists yet.
        """
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (OperationalError, InterfaceError, OSError) as e:
            logger.error("Could not initialize database schema: %s", e)
            raise StorageUnavailableError(context={"error": str(e)}) from e
        logger.info("Database schema ready (users, categories, notes)")

        if self._admin_seed is not None and await self.users.count() == 0:
            await self.users.create(
                username=self._admin_seed.username,
                email=self._admin_seed.email,
                password_hash=self._admin_seed.password_hash,
                is_admin=True,
            )
            logger.warning(
                "Seeded default admin account '%s'. Change its password immediately.",
                self._admin_seed.username,
            )

    async def health_check(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Health check: database unreachable: %s", str(e))
            return False

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")
