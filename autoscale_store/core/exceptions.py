"""Document store exception hierarchy.

Read, save and delete failures each have their own exception type but share a
single set of error codes, so callers can branch on ``error.code`` no matter
which operation raised.
"""

from enum import Enum
from typing import Optional


class DbErrorCode(str, Enum):
    """Error codes shared by every store operation."""
    NOT_FOUND = "NotFound"
    KEY_CONFLICT = "KeyConflict"
    INCONSISTENT_DATA = "InconsistentData"
    UNEXPECTED_RESPONSE = "UnexpectedResponse"
    INVALID_ARGUMENT = "InvalidArgument"


class DbError(Exception):
    """Base exception for all document store errors."""

    def __init__(self, code: DbErrorCode, message: str,
                 table: Optional[str] = None, item_id: Optional[str] = None):
        self.code = code
        self.message = message
        self.table = table
        self.item_id = item_id
        super().__init__(f"[{code.value}] {message}")


class DbReadError(DbError):
    """Reading an item from the store failed."""


class DbSaveError(DbError):
    """Saving an item to the store failed."""


class DbDeleteError(DbError):
    """Deleting an item from the store failed."""


class DbValidationError(DbError):
    """Caller-supplied item failed table validation."""

    def __init__(self, message: str, table: Optional[str] = None,
                 item_id: Optional[str] = None):
        super().__init__(DbErrorCode.INVALID_ARGUMENT, message, table=table, item_id=item_id)
