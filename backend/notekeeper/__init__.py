"""
NoteKeeper Backend — Application Package Initializer
====================================================

What: Marks the `notekeeper` directory as a Python package.
Who:  Imported by uvicorn (`notekeeper.main:app`), pytest, and every module.

Architecture Note:
    The backend is a layered CRUD service with a pluggable persistence core:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (Users, Admin,         │  ← ownership, validation,
    │     Categories, Notes)              │    last-admin protection
    ├─────────────────────────────────────┤
    │     StorageProvider (contract)      │  ← one interface ...
    ├──────────────────┬──────────────────┤
    │  RelationalStorage│  FileStorage    │  ← ... two backends
    │  (SQLAlchemy)     │  (JSON on disk) │
    └──────────────────┴──────────────────┘

    The backend is chosen once at startup (`Settings.storage_backend`) and
    handed to the services explicitly; nothing above the storage layer knows
    which one is active.
"""

__version__ = "1.0.0"
