"""
lib/extension/metadata.py

Extension manifest structure.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from common import semver

from .errors import ExtensionNotFoundError, ManifestError

MANIFEST_FILENAMES = ('manifest.json', 'manifest.yaml', 'manifest.yml')


@dataclass
class ExtensionManifest:
    """
    Extension manifest: identity, target version and upgrade steps.

    Attributes:
        identifier: Extension slug (matches its directory name)
        version: Target semantic version the extension should reach
        upgrade_versions: Ordered versions that act as upgrade steps,
            or None when the manifest declares no step list
        name: Human-readable name for logs
        description: Short description

    Example:
        manifest.json:
            {
                "identifier": "article-hub",
                "version": "0.3.0",
                "upgrade_versions": ["0.1.0", "0.2.0", "0.3.0"]
            }
    """
    identifier: str
    version: str
    upgrade_versions: Optional[List[str]] = None
    name: str = ''
    description: str = ''
    extra: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate manifest after initialization."""
        if not semver.is_valid(self.version):
            raise ManifestError(
                f"Extension '{self.identifier}' declares invalid version "
                f"'{self.version}' (expected semantic version, e.g. '1.0.0')"
            )

        if self.upgrade_versions is not None:
            if not isinstance(self.upgrade_versions, list):
                raise ManifestError(
                    f"Extension '{self.identifier}' upgrade_versions must be a list"
                )
            invalid = [v for v in self.upgrade_versions if not semver.is_valid(v)]
            if invalid:
                raise ManifestError(
                    f"Extension '{self.identifier}' declares invalid upgrade "
                    f"versions: {', '.join(map(str, invalid))}"
                )

        if not self.name:
            self.name = self.identifier

    @classmethod
    def from_dict(cls, identifier: str, data: dict) -> 'ExtensionManifest':
        """Build a manifest from parsed JSON/YAML data."""
        if not isinstance(data, dict):
            raise ManifestError(f"Manifest for '{identifier}' must be a mapping")

        declared = data.get('identifier', identifier)
        if declared != identifier:
            raise ManifestError(
                f"Manifest identifier '{declared}' does not match extension "
                f"directory '{identifier}'"
            )

        if 'version' not in data:
            raise ManifestError(f"Manifest for '{identifier}' has no version")

        known = {'identifier', 'version', 'upgrade_versions', 'name', 'description'}
        return cls(
            identifier=identifier,
            version=str(data['version']),
            upgrade_versions=data.get('upgrade_versions'),
            name=data.get('name', ''),
            description=data.get('description', ''),
            extra={k: v for k, v in data.items() if k not in known},
        )

    @classmethod
    def load(cls, extension_dir: Path) -> 'ExtensionManifest':
        """
        Load the manifest from an extension directory.

        Args:
            extension_dir: Directory of the extension

        Raises:
            ExtensionNotFoundError: If no manifest file exists
            ManifestError: If the manifest cannot be parsed or is invalid
        """
        extension_dir = Path(extension_dir)
        manifest_path = find_manifest(extension_dir)
        if manifest_path is None:
            raise ExtensionNotFoundError(
                f"No manifest found for extension '{extension_dir.name}' "
                f"in {extension_dir}"
            )

        try:
            with open(manifest_path, 'r', encoding='utf-8') as fp:
                if manifest_path.suffix == '.json':
                    data = json.load(fp)
                else:
                    data = yaml.safe_load(fp)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ManifestError(f"Failed to parse {manifest_path}: {e}") from e

        return cls.from_dict(extension_dir.name, data)

    def __str__(self) -> str:
        """String representation for logs."""
        return f"{self.name} v{self.version}"


def find_manifest(extension_dir: Path) -> Optional[Path]:
    """Return the first manifest file present in extension_dir, if any."""
    for filename in MANIFEST_FILENAMES:
        candidate = Path(extension_dir) / filename
        if candidate.is_file():
            return candidate
    return None
