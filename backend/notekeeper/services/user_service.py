"""
NoteKeeper Backend — User Service
===================================

What:  Registration, login, profile and preferences.
How:   Validates input, talks to `storage.users` (and `storage.categories`
       for the default category), hashes and verifies passwords, signs tokens.
Who:   /api/auth routes.

Registration flow:
    validate fields → reject duplicate email/username → hash password →
    create user → create "General" category → sign token

Login never reveals which check failed: unknown email, inactive account and
wrong password all raise the same AuthenticationError.
"""

import logging
from typing import Any, Dict, Optional

from notekeeper.exceptions import AuthenticationError, NotFoundError, ValidationError
from notekeeper.schemas.api import AuthResponse, PublicUser
from notekeeper.schemas.domain import DEFAULT_CATEGORY_COLOR, User, utc_now
from notekeeper.security import PasswordHasher, TokenService
from notekeeper.storage.base import StorageProvider

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

DEFAULT_CATEGORY_NAME = "General"
DEFAULT_CATEGORY_DESCRIPTION = "Default category for general notes"

_INVALID_CREDENTIALS = "Invalid credentials"


class UserService:
    def __init__(self, storage: StorageProvider, hasher: PasswordHasher, tokens: TokenService):
        self.storage = storage
        self.hasher = hasher
        self.tokens = tokens

    def _auth_response(self, user: User) -> AuthResponse:
        return AuthResponse(
            token=self.tokens.sign(user.id, user.username),
            user=PublicUser.from_entity(user),
        )

    async def register(
        self,
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> AuthResponse:
        """
        Create an account plus its default category.

        Raises:
            ValidationError: missing field, short password, or the email or
                             username is already registered
        """
        username = (username or "").strip()
        email = (email or "").strip()
        if not username or not email or not password:
            raise ValidationError("All fields are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        if await self.storage.users.get_by_email(email) is not None:
            raise ValidationError("User already exists", field="email")
        if await self.storage.users.get_by_username(username) is not None:
            raise ValidationError("Username already taken", field="username")

        user = await self.storage.users.create(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
        )
        await self.storage.categories.create(
            user.id,
            name=DEFAULT_CATEGORY_NAME,
            color=DEFAULT_CATEGORY_COLOR,
            description=DEFAULT_CATEGORY_DESCRIPTION,
        )
        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return self._auth_response(user)

    async def login(self, email: str, password: str) -> AuthResponse:
        user = await self.storage.users.get_by_email((email or "").strip())
        if user is None or not user.is_active or not self.hasher.verify(password or "", user.password_hash):
            logger.info("Failed login attempt for %r", email)
            raise AuthenticationError(_INVALID_CREDENTIALS)

        user = await self.storage.users.update(user.id, {"last_login": utc_now()})
        logger.info("User %s logged in", user.username)
        return self._auth_response(user)

    async def get_user(self, user_id: str) -> User:
        user = await self.storage.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=user_id)
        return user

    async def get_profile(self, user_id: str) -> PublicUser:
        return PublicUser.from_entity(await self.get_user(user_id))

    async def update_preferences(self, user_id: str, preferences: Dict[str, Any]) -> PublicUser:
        """Merges `preferences` over the stored document; unknown keys are kept."""
        user = await self.get_user(user_id)
        merged = {**user.preferences, **preferences}
        user = await self.storage.users.update(user_id, {"preferences": merged})
        return PublicUser.from_entity(user)
