"""Domain models for rowgate.

Schema descriptors for record types, configuration dataclasses and the
structured error record used for error log export.
"""

from .config_models import AppConfig, DatabaseConfig, RecordConfig, TableConfig
from .error_record import ErrorRecord
from .schema import Field, Schema

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "RecordConfig",
    "TableConfig",
    # Table models
    "Field",
    "Schema",
    "ErrorRecord",
]
