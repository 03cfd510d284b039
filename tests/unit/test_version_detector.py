"""
Unit tests for ExtensionVersionDetector.

Tests cover:
- Installed version from marker files
- Pending upgrade path computation
- Manifest edge cases (no step list, invalid versions)
"""

import logging

import pytest

from lib.extension import ExtensionManifest, ExtensionVersionDetector, ManifestError


class TestInstalledVersion:

    def test_no_markers(self, make_extension):
        ext = make_extension().manifest('0.1.0')

        assert ExtensionVersionDetector(ext.path).installed_version() is None

    def test_highest_marker_wins(self, make_extension):
        ext = make_extension().manifest('0.10.0')
        for version in ('0.1.0', '0.9.0', '0.10.0', '0.2.0'):
            ext.marker(version)

        detector = ExtensionVersionDetector(ext.path)

        assert detector.installed_versions() == ['0.1.0', '0.2.0', '0.9.0', '0.10.0']
        assert detector.installed_version() == '0.10.0'

    def test_ignores_hidden_and_invalid_markers(self, make_extension, caplog):
        ext = make_extension().manifest('0.2.0')
        ext.marker('0.1.0')
        ext.marker('.gitkeep')
        ext.marker('notes')

        with caplog.at_level(logging.WARNING):
            installed = ExtensionVersionDetector(ext.path).installed_version()

        assert installed == '0.1.0'
        assert 'notes' in caplog.text
        assert '.gitkeep' not in caplog.text


class TestDetect:

    def test_initial_install(self, make_extension):
        ext = make_extension().manifest('0.3.0', ['0.1.0', '0.2.0', '0.3.0'])

        info = ExtensionVersionDetector(ext.path).detect()

        assert info.installed is None
        assert info.current == '0.3.0'
        assert info.needs_upgrade
        assert info.upgrade_versions == ['0.1.0', '0.2.0', '0.3.0']

    def test_partial_upgrade(self, make_extension):
        ext = make_extension().manifest('0.3.0', ['0.1.0', '0.2.0', '0.3.0'])
        ext.marker('0.1.0')

        info = ExtensionVersionDetector(ext.path).detect()

        assert info.installed == '0.1.0'
        assert info.upgrade_versions == ['0.2.0', '0.3.0']

    def test_up_to_date(self, make_extension):
        ext = make_extension().manifest('0.3.0', ['0.1.0', '0.2.0', '0.3.0'])
        ext.marker('0.3.0')

        info = ExtensionVersionDetector(ext.path).detect()

        assert not info.needs_upgrade
        assert info.upgrade_versions == []

    def test_downgrade_is_warned_not_applied(self, make_extension, caplog):
        ext = make_extension().manifest('0.2.0')
        ext.marker('0.3.0')

        with caplog.at_level(logging.WARNING):
            info = ExtensionVersionDetector(ext.path).detect()

        assert not info.needs_upgrade
        assert info.upgrade_versions == []
        assert 'downgrades are not supported' in caplog.text

    def test_invalid_manifest_version_fails_loudly(self, make_extension):
        ext = make_extension().manifest('latest')

        with pytest.raises(ManifestError):
            ExtensionVersionDetector(ext.path).detect()

    def test_to_dict(self, make_extension):
        ext = make_extension().manifest('0.1.0')

        assert ExtensionVersionDetector(ext.path).detect().to_dict() == {
            'identifier': 'article-hub',
            'installed': None,
            'current': '0.1.0',
            'needs_upgrade': True,
            'upgrade_versions': ['0.1.0'],
        }


class TestPendingVersions:

    @pytest.fixture
    def detector(self, tmp_path):
        return ExtensionVersionDetector(tmp_path / 'article-hub')

    def test_no_step_list_uses_current(self, detector):
        manifest = ExtensionManifest(identifier='article-hub', version='0.3.0')

        assert detector.pending_versions(manifest, '0.1.0') == ['0.3.0']

    def test_current_always_final_step(self, detector):
        manifest = ExtensionManifest(
            identifier='article-hub', version='0.4.0', upgrade_versions=['0.2.0', '0.3.0']
        )

        assert detector.pending_versions(manifest, '0.1.0') == ['0.2.0', '0.3.0', '0.4.0']

    def test_future_steps_excluded(self, detector):
        manifest = ExtensionManifest(
            identifier='article-hub', version='0.2.0',
            upgrade_versions=['0.1.0', '0.2.0', '0.3.0']
        )

        assert detector.pending_versions(manifest, None) == ['0.1.0', '0.2.0']

    def test_unsorted_declared_versions(self, detector):
        manifest = ExtensionManifest(
            identifier='article-hub', version='0.10.0',
            upgrade_versions=['0.10.0', '0.9.0', '0.2.0']
        )

        assert detector.pending_versions(manifest, '0.2.0') == ['0.9.0', '0.10.0']

    def test_prerelease_target_excludes_release_step(self, detector):
        manifest = ExtensionManifest(
            identifier='article-hub', version='1.0.0-1',
            upgrade_versions=['0.9.0', '1.0.0']
        )

        assert detector.pending_versions(manifest, None) == ['0.9.0', '1.0.0-1']

    def test_prerelease_steps_ordered(self, detector):
        manifest = ExtensionManifest(
            identifier='article-hub', version='1.0.0',
            upgrade_versions=['1.0.0-rc.1', '1.0.0-beta', '1.0.0-alpha.beta', '0.9.0']
        )

        assert detector.pending_versions(manifest, '1.0.0-alpha') == [
            '1.0.0-alpha.beta', '1.0.0-beta', '1.0.0-rc.1', '1.0.0'
        ]
