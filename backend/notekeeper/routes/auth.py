"""
NoteKeeper Backend — Auth Route Handlers
==========================================

What:  Registration, login, profile and preferences under /api/auth.
How:   Thin: parse the body, call UserService, return its response model.
"""

import logging

from fastapi import APIRouter, Depends

from notekeeper.dependencies import get_current_user, get_user_service
from notekeeper.schemas.api import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    PreferencesUpdate,
    PublicUser,
    RegisterRequest,
)
from notekeeper.schemas.domain import User
from notekeeper.services import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    responses={400: {"description": "Invalid or duplicate registration", "model": ErrorResponse}},
    summary="Create an account",
)
async def register(
    body: RegisterRequest,
    users: UserService = Depends(get_user_service),
) -> AuthResponse:
    """Creates the user and a default "General" category, returns a token."""
    return await users.register(body.username, body.email, body.password)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Exchange email and password for a token",
)
async def login(
    body: LoginRequest,
    users: UserService = Depends(get_user_service),
) -> AuthResponse:
    return await users.login(body.email, body.password)


@router.get("/profile", response_model=PublicUser, summary="Current user's profile")
async def profile(
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
) -> PublicUser:
    return await users.get_profile(current_user.id)


@router.put("/preferences", response_model=PublicUser, summary="Merge UI preferences")
async def update_preferences(
    body: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
) -> PublicUser:
    return await users.update_preferences(current_user.id, body.preferences)
