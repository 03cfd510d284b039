"""
lib/extension/version_detector.py

Detects which versions of an extension still need to be applied.

The installed version is never stored in the database: it is the highest
version-marker file under ``{extension}/data/versions/``. The target version
and the upgrade steps come from the extension manifest.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from common import semver

from .metadata import ExtensionManifest

VERSIONS_SUBDIR = Path('data') / 'versions'


@dataclass
class ExtensionVersionInfo:
    """
    Result of version detection for one extension.

    Attributes:
        identifier: Extension slug
        installed: Highest completed version, or None on first install
        current: Target version from the manifest
        needs_upgrade: True if installed is None or older than current
        upgrade_versions: Pending versions, ascending
    """
    identifier: str
    installed: Optional[str]
    current: str
    needs_upgrade: bool
    upgrade_versions: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'identifier': self.identifier,
            'installed': self.installed,
            'current': self.current,
            'needs_upgrade': self.needs_upgrade,
            'upgrade_versions': list(self.upgrade_versions),
        }


class ExtensionVersionDetector:
    """
    Compares an extension's version markers with its manifest.

    Example:
        >>> detector = ExtensionVersionDetector(Path('/srv/extensions/article-hub'))
        >>> info = detector.detect()
        >>> info.installed, info.current, info.upgrade_versions
        ('0.1.0', '0.3.0', ['0.2.0', '0.3.0'])
    """

    def __init__(self, extension_dir: Path):
        self.extension_dir = Path(extension_dir)
        self.identifier = self.extension_dir.name
        self.versions_dir = self.extension_dir / VERSIONS_SUBDIR
        self.logger = logging.getLogger(__name__)

    def installed_versions(self) -> List[str]:
        """
        List versions that have a marker file, ascending.

        Hidden files are ignored. Marker names that are not valid semantic
        versions are skipped with a warning.
        """
        if not self.versions_dir.is_dir():
            return []

        versions = []
        for entry in self.versions_dir.iterdir():
            if entry.name.startswith('.') or not entry.is_file():
                continue
            if not semver.is_valid(entry.name):
                self.logger.warning(
                    '[%s] Ignoring version marker with invalid version: %s',
                    self.identifier,
                    entry.name
                )
                continue
            versions.append(entry.name)

        return semver.sort_versions(versions)

    def installed_version(self) -> Optional[str]:
        """Highest completed version, or None."""
        versions = self.installed_versions()
        return versions[-1] if versions else None

    def detect(self) -> ExtensionVersionInfo:
        """
        Detect installed/current versions and the pending upgrade path.

        Raises:
            ExtensionNotFoundError: If the extension has no manifest
            ManifestError: If the manifest declares invalid versions
        """
        manifest = ExtensionManifest.load(self.extension_dir)
        installed = self.installed_version()
        current = manifest.version

        if installed is not None and semver.gt(installed, current):
            self.logger.warning(
                '[%s] Installed version %s is newer than manifest version %s; '
                'downgrades are not supported',
                self.identifier,
                installed,
                current
            )

        needs_upgrade = installed is None or semver.lt(installed, current)
        upgrade_versions = (
            self.pending_versions(manifest, installed) if needs_upgrade else []
        )

        info = ExtensionVersionInfo(
            identifier=self.identifier,
            installed=installed,
            current=current,
            needs_upgrade=needs_upgrade,
            upgrade_versions=upgrade_versions,
        )
        self.logger.debug('[%s] Version info: %s', self.identifier, info)
        return info

    def pending_versions(
        self,
        manifest: ExtensionManifest,
        installed: Optional[str]
    ) -> List[str]:
        """
        Compute the ordered upgrade steps after installed.

        A manifest without a step list has the target version as its only
        step. The target version is always the final step, so a completed
        upgrade leaves a marker for it.
        """
        current = manifest.version
        declared = manifest.upgrade_versions
        if declared is None:
            declared = [current]

        pending = {
            v for v in declared
            if semver.lte(v, current)
            and (installed is None or semver.gt(v, installed))
        }
        pending.add(current)

        return semver.sort_versions(pending)
