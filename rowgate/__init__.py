"""rowgate: row gateway tables over a DB-API connection.

A ``Table`` maps one in-memory record to one database row and provides
load / bind / check / store / delete, state toggling and ordering
maintenance. Concrete record types live in ``rowgate.table``.
"""

__version__ = "0.1.0"
