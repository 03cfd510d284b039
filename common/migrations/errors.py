"""
Migration-specific exceptions.
"""


class MigrationError(Exception):
    """Base exception for migration errors."""
    pass


class MigrationDiscoveryError(MigrationError):
    """Migration file could not be used (invalid version in strict mode)."""
    pass


class MigrationLoadError(MigrationError):
    """Migration module failed to import or exports no up entry point."""
    pass
