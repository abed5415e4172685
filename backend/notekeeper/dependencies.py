"""
NoteKeeper Backend — FastAPI Dependencies
===========================================

What:  Per-request wiring: the active storage provider, the auth
       capabilities, the services built on them, and the current user.
How:   `create_app()` puts the provider, hasher and token service on
       `app.state`; these functions read them back through `Request`, so
       no module holds a global backend.
Who:   Every route handler via `Depends(...)`.

Auth flow:
    Authorization: Bearer <token>
        → TokenService.verify   (AuthenticationError 401 if bad)
        → storage.users.get_by_id
        → user missing or inactive → AuthenticationError 401
    require_admin additionally needs `is_admin` → AccessDeniedError 403
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from notekeeper.exceptions import AccessDeniedError, AuthenticationError
from notekeeper.schemas.domain import User
from notekeeper.security import PasswordHasher, TokenService
from notekeeper.services import AdminService, CategoryService, NoteService, UserService
from notekeeper.storage.base import StorageProvider

# auto_error=False: a missing header reaches get_current_user, which raises
# our AuthenticationError (401 in the standard error body).
bearer_scheme = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_user_service(
    storage: StorageProvider = Depends(get_storage),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
) -> UserService:
    return UserService(storage, hasher, tokens)


def get_admin_service(storage: StorageProvider = Depends(get_storage)) -> AdminService:
    return AdminService(storage)


def get_category_service(storage: StorageProvider = Depends(get_storage)) -> CategoryService:
    return CategoryService(storage)


def get_note_service(storage: StorageProvider = Depends(get_storage)) -> NoteService:
    return NoteService(storage)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    storage: StorageProvider = Depends(get_storage),
) -> User:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")

    claims = tokens.verify(credentials.credentials)
    user = await storage.users.get_by_id(claims.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid or expired token")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise AccessDeniedError("Admin access required", resource="admin")
    return user
