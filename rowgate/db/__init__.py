from .driver import DatabaseDriver, DatabaseError
from .query import Query

__all__ = [
    "DatabaseDriver",
    "DatabaseError",
    "Query",
]
