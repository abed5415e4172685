"""
NoteKeeper Backend — Services Layer
=====================================

What:  Business rules between the routes (HTTP) and storage (persistence).
How:   Each service is constructed with the active StorageProvider (and the
       auth capabilities it needs) by the dependencies in
       `notekeeper.dependencies`. Services never know which backend runs.

Service Inventory:
    - UserService:     registration, login, profile, preferences
    - AdminService:    dashboard, user listing/details, admin edits
    - CategoryService: validated category CRUD and statistics
    - NoteService:     note CRUD, favorite/archive toggles
"""

from notekeeper.services.admin_service import AdminService
from notekeeper.services.category_service import CategoryService
from notekeeper.services.note_service import NoteService
from notekeeper.services.user_service import UserService

__all__ = ["AdminService", "CategoryService", "NoteService", "UserService"]
