"""
Extension upgrade system.

Provides version detection, per-version upgrade orchestration and the
upgrade script interface for installable extensions.
"""

from common.migrations.errors import MigrationDiscoveryError, MigrationLoadError

from .errors import (
    ExtensionError,
    ExtensionNotFoundError,
    ManifestError,
    UpgradeInProgressError,
    UpgradeScriptError,
    VersionMarkerError,
)
from .metadata import ExtensionManifest
from .upgrade_scripts import UpgradeContext, UpgradeScript, UpgradeScriptRunner
from .version_detector import ExtensionVersionDetector, ExtensionVersionInfo
from .version_manager import ExtensionVersionManager, UpgradeReport
from .orchestrator import ExtensionUpgradeOrchestrator, UpgradeSummary

__all__ = [
    # Errors
    'ExtensionError',
    'ExtensionNotFoundError',
    'ManifestError',
    'MigrationDiscoveryError',
    'MigrationLoadError',
    'UpgradeInProgressError',
    'UpgradeScriptError',
    'VersionMarkerError',
    # Manifest & detection
    'ExtensionManifest',
    'ExtensionVersionDetector',
    'ExtensionVersionInfo',
    # Upgrade scripts
    'UpgradeContext',
    'UpgradeScript',
    'UpgradeScriptRunner',
    # Orchestration
    'ExtensionVersionManager',
    'UpgradeReport',
    'ExtensionUpgradeOrchestrator',
    'UpgradeSummary',
]
