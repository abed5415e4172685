"""
NoteKeeper Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:        /api/auth        register, login, profile, preferences
    - notes.py:       /api/notes       note CRUD, favorite, archive
    - categories.py:  /api/categories  category CRUD, stats
    - admin.py:       /api/admin       dashboard, users, system health
    - health.py:      /health          storage reachability

Routes stay thin: extract request data, call a service, return its model.
Business rules live in `notekeeper.services`.
"""
