"""Exceptions, settings and shared types."""

from ._exceptions import (
    DataError,
    MissingColumnError,
    UnresolvedVariableError,
    ColumnConflictError,
    CorruptionError,
    SplitNotFoundError,
    MissingCoefficientError,
    MalformedTreeError,
)
from ._config import Settings, settings
from ._types import Row, DatasetLike

__all__ = [
    "DataError",
    "MissingColumnError",
    "UnresolvedVariableError",
    "ColumnConflictError",
    "CorruptionError",
    "SplitNotFoundError",
    "MissingCoefficientError",
    "MalformedTreeError",
    "Settings",
    "settings",
    "Row",
    "DatasetLike",
]
