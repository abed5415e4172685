"""
NoteKeeper Backend — Admin Route Handlers
===========================================

What:  Dashboard, user management and system health under /api/admin.
How:   Every route depends on `require_admin` (401 without a token, 403 for
       non-admins). The acting admin's id is passed to AdminService so the
       self-protection rules can be enforced there.
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from notekeeper.dependencies import get_admin_service, get_storage, require_admin
from notekeeper.routes.health import build_health
from notekeeper.schemas.api import (
    AdminUserDetails,
    AdminUserUpdate,
    DashboardStats,
    ErrorResponse,
    HealthResponse,
    PublicUser,
)
from notekeeper.schemas.domain import User
from notekeeper.services import AdminService
from notekeeper.storage.base import StorageProvider

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    responses={
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        403: {"description": "Admin access required", "model": ErrorResponse},
    },
)


@router.get("/dashboard", response_model=DashboardStats, summary="System-wide statistics")
async def dashboard(
    _admin: User = Depends(require_admin),
    admin: AdminService = Depends(get_admin_service),
) -> DashboardStats:
    return await admin.dashboard()


@router.get("/users", response_model=List[PublicUser], summary="All users, newest first")
async def list_users(
    _admin: User = Depends(require_admin),
    admin: AdminService = Depends(get_admin_service),
) -> List[PublicUser]:
    return await admin.list_users()


@router.get(
    "/users/{user_id}",
    response_model=AdminUserDetails,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
)
async def get_user_details(
    user_id: str,
    _admin: User = Depends(require_admin),
    admin: AdminService = Depends(get_admin_service),
) -> AdminUserDetails:
    return await admin.get_user_details(user_id)


@router.put(
    "/users/{user_id}",
    response_model=PublicUser,
    responses={
        400: {"description": "Self-deactivation or last-admin protection", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Activate/deactivate a user or change admin rights",
)
async def update_user(
    user_id: str,
    body: AdminUserUpdate,
    acting: User = Depends(require_admin),
    admin: AdminService = Depends(get_admin_service),
) -> PublicUser:
    return await admin.update_user(
        acting.id, user_id, is_active=body.is_active, is_admin=body.is_admin
    )


@router.delete(
    "/users/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"description": "Self-deletion or last-admin protection", "model": ErrorResponse},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Deactivate a user (soft delete)",
)
async def delete_user(
    user_id: str,
    acting: User = Depends(require_admin),
    admin: AdminService = Depends(get_admin_service),
) -> Response:
    await admin.deactivate_user(acting.id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/system/health", response_model=HealthResponse, summary="Storage health")
async def system_health(
    _admin: User = Depends(require_admin),
    storage: StorageProvider = Depends(get_storage),
) -> HealthResponse:
    return await build_health(storage)
