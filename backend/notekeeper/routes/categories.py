"""
NoteKeeper Backend — Category Route Handlers
==============================================

What:  CRUD and statistics over the current user's categories.
How:   Delegates to CategoryService. A category owned by someone else is a
       404 on every route, never a 403.

Route order matters: /stats is declared before /{category_id}.
"""

from typing import List

from fastapi import APIRouter, Depends, Response, status

from notekeeper.dependencies import get_category_service, get_current_user
from notekeeper.schemas.api import (
    CategoryCreate,
    CategoryResponse,
    CategoryStatsItem,
    CategoryUpdate,
    ErrorResponse,
)
from notekeeper.schemas.domain import User
from notekeeper.services import CategoryService

router = APIRouter(prefix="/api/categories", tags=["Categories"])

_NOT_FOUND = {404: {"description": "Category not found", "model": ErrorResponse}}


@router.get("", response_model=List[CategoryResponse], summary="List categories by name")
async def list_categories(
    current_user: User = Depends(get_current_user),
    categories: CategoryService = Depends(get_category_service),
) -> List[CategoryResponse]:
    result = await categories.list_categories(current_user.id)
    return [CategoryResponse.from_entity(c) for c in result]


@router.get(
    "/stats",
    response_model=List[CategoryStatsItem],
    summary="Every category with its note count",
)
async def category_stats(
    current_user: User = Depends(get_current_user),
    categories: CategoryService = Depends(get_category_service),
) -> List[CategoryStatsItem]:
    return await categories.category_stats(current_user.id)


@router.get("/{category_id}", response_model=CategoryResponse, responses=_NOT_FOUND)
async def get_category(
    category_id: str,
    current_user: User = Depends(get_current_user),
    categories: CategoryService = Depends(get_category_service),
) -> CategoryResponse:
    category = await categories.get_category(current_user.id, category_id)
    return CategoryResponse.from_entity(category)


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Invalid name or color", "model": ErrorResponse}},
)
async def create_category(
    body: CategoryCreate,
    current_user: User = Depends(get_current_user),
    categories: CategoryService = Depends(get_category_service),
) -> CategoryResponse:
    category = await categories.create_category(
        current_user.id, body.name, body.color, body.description
    )
    return CategoryResponse.from_entity(category)


@router.put("/{category_id}", response_model=CategoryResponse, responses=_NOT_FOUND)
async def update_category(
    category_id: str,
    body: CategoryUpdate,
    current_user: User = Depends(get_current_user),
    categories: CategoryService = Depends(get_category_service),
) -> CategoryResponse:
    category = await categories.update_category(
        current_user.id, category_id, body.model_dump(exclude_unset=True)
    )
    return CategoryResponse.from_entity(category)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_NOT_FOUND,
    summary="Delete a category; its notes become uncategorized",
)
async def delete_category(
    category_id: str,
    current_user: User = Depends(get_current_user),
    categories: CategoryService = Depends(get_category_service),
) -> Response:
    await categories.delete_category(current_user.id, category_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
