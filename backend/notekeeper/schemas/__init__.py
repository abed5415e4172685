"""
NoteKeeper Backend — Schemas Package
=====================================

    - domain.py: canonical entities shared by storage and services
    - api.py:    HTTP request/response models (camelCase on the wire)
"""
