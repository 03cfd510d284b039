"""
Storage error types shared by the database layer and the migration runner.
"""

from .errors import (
    ConflictError,
    ConflictKind,
    StorageError,
    classify_conflict,
)

__all__ = [
    'StorageError',
    'ConflictError',
    'ConflictKind',
    'classify_conflict',
]
