"""
Database migrations package for extension schema evolution.

This package provides:
- Migration: Interface implemented by class-based migration modules
- FunctionMigration: Adapter for modules exporting an async ``up`` function
- MigrationFile: A discovered migration file
- MigrationRecord: A row of the shared history table
- MigrationResult: Outcome of executing one migration
- MigrationManager: Discovery, range selection and loading
- MigrationRunner: Execution with history tracking
- MigrationError: Base of discovery and load errors
"""

from .errors import MigrationDiscoveryError, MigrationError, MigrationLoadError
from .migration import (
    FunctionMigration,
    Migration,
    MigrationFile,
    MigrationRecord,
    MigrationResult,
)
from .migration_manager import MigrationManager
from .migration_runner import MigrationRunner

__all__ = [
    'MigrationError',
    'MigrationDiscoveryError',
    'MigrationLoadError',
    'Migration',
    'FunctionMigration',
    'MigrationFile',
    'MigrationRecord',
    'MigrationResult',
    'MigrationManager',
    'MigrationRunner',
]
