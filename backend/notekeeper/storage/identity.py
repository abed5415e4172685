"""
NoteKeeper Backend — Identity Generator
=========================================

What:  Opaque unique identifiers for the file backend.
How:   8 random bytes from `secrets`, hex-encoded (16 characters). The only
       guarantee is uniqueness within an entity kind; callers compare ids for
       equality and nothing else.
Who:   FileStorage (the relational backend uses auto-increment keys).
"""

import re
import secrets
from typing import Callable

IdFactory = Callable[[], str]

# Anything the file backend will accept as a note filename stem.
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def new_id() -> str:
    """Returns a fresh 16-character hex identifier."""
    return secrets.token_hex(8)


def is_safe_id(value: str) -> bool:
    """
    True if `value` can be used as a filename stem without escaping the
    notes directory (no separators, no dots, bounded length).
    """
    return bool(value) and _SAFE_ID.match(value) is not None
