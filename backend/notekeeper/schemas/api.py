"""
NoteKeeper Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the HTTP contract.
How:   FastAPI validates request bodies against these models and serializes
       responses through them. Every model renders camelCase keys
       (`isPinned`, `categoryId`) and accepts either camelCase or snake_case
       on input, so the snake_case domain names stay inside Python.
Who:   Route handlers (input/output) and services that build composite
       responses (auth, dashboard, statistics).

Schemas are separate from the domain entities in `schemas.domain` because
they control exactly what is exposed: `PublicUser` has no password hash.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base for every HTTP-facing model: camelCase out, either case in."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_entity(cls, entity: BaseModel, **extra: Any):
        """Builds the response model from a domain entity plus extra fields."""
        return cls.model_validate({**entity.model_dump(), **extra})


# ══════════════════════════════════════════════════════════════════════════
# Request Models — What clients send
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(APIModel):
    """
    Presence is checked by UserService (not by Pydantic) so a missing field
    produces the same 400 validation_error shape as every other rule.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(APIModel):
    email: str = ""
    password: str = ""


class PreferencesUpdate(APIModel):
    preferences: Dict[str, Any] = Field(description="Keys merged into the stored preferences")


class NoteCreate(APIModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category_id: Optional[str] = None
    is_pinned: bool = False
    tags: List[str] = Field(default_factory=list)
    attachments: List[str] = Field(default_factory=list)


class NoteUpdate(APIModel):
    """
    Partial update: only fields present in the request body are applied.
    Sending `"categoryId": null` explicitly clears the category.
    """

    title: Optional[str] = None
    content: Optional[str] = None
    category_id: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_favorite: Optional[bool] = None
    is_archived: Optional[bool] = None
    tags: Optional[List[str]] = None
    attachments: Optional[List[str]] = None


class FavoriteUpdate(APIModel):
    is_favorite: bool


class ArchiveUpdate(APIModel):
    is_archived: bool


class CategoryCreate(APIModel):
    name: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None


class CategoryUpdate(APIModel):
    name: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None


class AdminUserUpdate(APIModel):
    is_active: Optional[bool] = None
    is_admin: Optional[bool] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models — What the API returns
# ══════════════════════════════════════════════════════════════════════════


class PublicUser(APIModel):
    """A user as any client may see it. Never carries the password hash."""

    id: str
    username: str
    email: str
    is_admin: bool
    is_active: bool
    preferences: Dict[str, Any] = Field(default_factory=dict)
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AuthResponse(APIModel):
    token: str = Field(description="Bearer token for the Authorization header")
    user: PublicUser


class NoteResponse(APIModel):
    id: str
    title: str
    content: str
    category_id: Optional[str] = None
    category_name: Optional[str] = Field(default=None, description="Name of the owning category, if any")
    category_color: Optional[str] = None
    user_id: str
    is_pinned: bool
    is_favorite: bool
    is_archived: bool
    tags: List[str]
    attachments: List[str]
    view_count: int
    created_at: datetime
    updated_at: datetime


class CategoryResponse(APIModel):
    id: str
    name: str
    color: str
    description: str
    user_id: str
    created_at: datetime
    updated_at: datetime


class CategoryStatsItem(CategoryResponse):
    note_count: int = Field(description="Notes currently filed under this category")


class SuccessResponse(APIModel):
    success: bool = True


class AdminUserDetails(PublicUser):
    note_count: int
    category_count: int
    favorite_notes: int
    pinned_notes: int
    archived_notes: int


class RecentNote(APIModel):
    title: str
    created_at: datetime
    username: Optional[str] = None


class RecentUser(APIModel):
    username: str
    email: str
    created_at: datetime
    last_login: Optional[datetime] = None


class DashboardStats(APIModel):
    total_users: int
    total_notes: int
    total_categories: int
    active_users: int
    recent_notes: List[RecentNote]
    recent_users: List[RecentUser]


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "not_found",
            "message": "Note with ID '12' was not found",
            "request_id": "a1b2c3d4"
        }
    """

    error: str = Field(description="Machine-readable error code (ErrorKind value)")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(APIModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    storage: str = Field(description="Active backend: database or file")
    storage_status: str = Field(description="connected or disconnected")
    uptime_seconds: float
    timestamp: datetime
