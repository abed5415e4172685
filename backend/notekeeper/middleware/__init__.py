"""
NoteKeeper Backend — Middleware Package
========================================

Middleware chain (outermost first):
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

Request ID runs first so every access-log line and every error body carries
the same correlation id.
"""
