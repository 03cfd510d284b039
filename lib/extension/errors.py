"""
lib/extension/errors.py

Extension upgrade exceptions.
"""


class ExtensionError(Exception):
    """Base exception for extension upgrade errors."""
    pass


class ManifestError(ExtensionError):
    """Extension manifest missing or invalid."""
    pass


class ExtensionNotFoundError(ExtensionError):
    """Extension directory or manifest not found."""
    pass


class UpgradeScriptError(ExtensionError):
    """Upgrade script failed to load or declares the wrong version."""
    pass


class VersionMarkerError(ExtensionError):
    """Version marker file could not be written."""
    pass


class UpgradeInProgressError(ExtensionError):
    """An upgrade pass is already running on this orchestrator."""
    pass
