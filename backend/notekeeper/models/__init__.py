# Importing the package registers every table on Base.metadata.
from notekeeper.models.category import CategoryRow
from notekeeper.models.note import NoteRow
from notekeeper.models.user import UserRow

__all__ = ["CategoryRow", "NoteRow", "UserRow"]
