"""
NoteKeeper Backend — Notes Route Handlers
===========================================

What:  CRUD over the current user's notes, plus favorite/archive toggles.
How:   Extracts query/body data, delegates to NoteService, renders
       NoteResponse (camelCase).

Listing filters (query string):
    category   only notes filed under this category id
    archived   false (default) lists active notes, true lists the archive
    favorites  true → favorites only; false → no favorite filtering
    tag        only notes carrying this tag
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from notekeeper.dependencies import get_current_user, get_note_service
from notekeeper.schemas.api import (
    ArchiveUpdate,
    ErrorResponse,
    FavoriteUpdate,
    NoteCreate,
    NoteResponse,
    NoteUpdate,
    SuccessResponse,
)
from notekeeper.schemas.domain import Note, User
from notekeeper.services import NoteService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

_OWNERSHIP_ERRORS = {
    403: {"description": "Note belongs to another user", "model": ErrorResponse},
    404: {"description": "Note not found", "model": ErrorResponse},
}


async def _render(notes: NoteService, user_id: str, items: List[Note]) -> List[NoteResponse]:
    """Attaches categoryName/categoryColor; a note whose category is gone gets nulls."""
    categories = await notes.categories_by_id(user_id)
    rendered = []
    for note in items:
        category = categories.get(note.category_id) if note.category_id else None
        rendered.append(
            NoteResponse.from_entity(
                note,
                category_name=category.name if category else None,
                category_color=category.color if category else None,
            )
        )
    return rendered



@router.get("", response_model=List[NoteResponse], summary="List the current user's notes")
async def list_notes(
    category: Optional[str] = Query(default=None, description="Category id filter"),
    archived: bool = Query(default=False, description="List archived instead of active notes"),
    favorites: bool = Query(default=False, description="Only favorites when true"),
    tag: Optional[str] = Query(default=None, description="Tag membership filter"),
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> List[NoteResponse]:
    """Pinned notes first, then most recently updated first."""
    result = await notes.list_notes(
        current_user.id,
        category_id=category,
        archived=archived,
        favorites=favorites,
        tag=tag,
    )
    return await _render(notes, current_user.id, result)


@router.post(
    "",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Unknown category", "model": ErrorResponse}},
    summary="Create a note",
)
async def create_note(
    body: NoteCreate,
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> NoteResponse:
    note = await notes.create_note(
        current_user.id,
        title=body.title,
        content=body.content,
        category_id=body.category_id,
        is_pinned=body.is_pinned,
        tags=body.tags,
        attachments=body.attachments,
    )
    return (await _render(notes, current_user.id, [note]))[0]


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    responses={404: {"description": "Note not found", "model": ErrorResponse}},
    summary="Get one note",
)
async def get_note(
    note_id: str,
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> NoteResponse:
    note = await notes.get_note(current_user.id, note_id)
    return (await _render(notes, current_user.id, [note]))[0]


@router.put(
    "/{note_id}",
    response_model=NoteResponse,
    responses=_OWNERSHIP_ERRORS,
    summary="Partially update a note",
)
async def update_note(
    note_id: str,
    body: NoteUpdate,
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> NoteResponse:
    # Only the keys the client actually sent; an explicit null is kept.
    changes = body.model_dump(exclude_unset=True)
    note = await notes.update_note(current_user.id, note_id, changes)
    return (await _render(notes, current_user.id, [note]))[0]


@router.delete(
    "/{note_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_OWNERSHIP_ERRORS,
    summary="Delete a note",
)
async def delete_note(
    note_id: str,
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> Response:
    await notes.delete_note(current_user.id, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/{note_id}/favorite",
    response_model=SuccessResponse,
    responses=_OWNERSHIP_ERRORS,
    summary="Mark or unmark a note as favorite",
)
async def set_favorite(
    note_id: str,
    body: FavoriteUpdate,
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> SuccessResponse:
    await notes.set_favorite(current_user.id, note_id, body.is_favorite)
    return SuccessResponse()


@router.put(
    "/{note_id}/archive",
    response_model=SuccessResponse,
    responses=_OWNERSHIP_ERRORS,
    summary="Archive or restore a note",
)
async def set_archived(
    note_id: str,
    body: ArchiveUpdate,
    current_user: User = Depends(get_current_user),
    notes: NoteService = Depends(get_note_service),
) -> SuccessResponse:
    await notes.set_archived(current_user.id, note_id, body.is_archived)
    return SuccessResponse()
