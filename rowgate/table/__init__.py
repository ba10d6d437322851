"""Row gateway tables.

Table is the generic gateway; AclTable, TagTable and UserTable are the
concrete record types.
"""

from .acl import AclTable
from .table import (
    IncompatiblePatchError,
    OrderingNotSupportedError,
    Table,
    TableError,
    UnknownFieldError,
)
from .tag import TagTable
from .user import InvalidDateError, UserTable

__all__ = [
    "Table",
    "AclTable",
    "TagTable",
    "UserTable",
    "TableError",
    "UnknownFieldError",
    "OrderingNotSupportedError",
    "IncompatiblePatchError",
    "InvalidDateError",
]
