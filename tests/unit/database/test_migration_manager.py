"""
Unit tests for MigrationManager class.

Tests cover:
- Migration filename parsing
- Migration file discovery and ordering
- Version range selection
- Loading class-based and function-based migrations
- Error handling and validation
"""

import logging

import pytest

from common.migrations import (
    FunctionMigration,
    Migration,
    MigrationDiscoveryError,
    MigrationLoadError,
    MigrationManager,
)


class TestParseFilename:

    @pytest.fixture
    def manager(self, tmp_path):
        return MigrationManager(tmp_path / 'article-hub')

    def test_parse_valid(self, manager):
        migration = manager.parse_filename('1700000000000-1.2.3-add-widgets.py')

        assert migration.name == '1700000000000-1.2.3-add-widgets.py'
        assert migration.timestamp == 1700000000000
        assert migration.version == '1.2.3'
        assert migration.description == 'add-widgets'
        assert migration.path.is_absolute()

    def test_parse_keeps_invalid_version(self, manager):
        """Version validity is decided at selection time."""
        migration = manager.parse_filename('1700000000000-one_two-add-widgets.py')

        assert migration.version == 'one_two'

    @pytest.mark.parametrize('filename', [
        'add-widgets.py',
        '1700000000000-1.2.3.py',
        '1700000000000-1.2.3-add-widgets.js',
        '.1700000000000-1.2.3-add-widgets.py',
        '__init__.py',
        'abc-1.2.3-add-widgets.py',
    ])
    def test_parse_rejects(self, manager, filename):
        assert manager.parse_filename(filename) is None


class TestDiscovery:

    def test_discover_sorted_by_timestamp(self, make_extension):
        ext = make_extension()
        ext.migration(1700000300000, '0.2.0', 'add-slug')
        ext.migration(1700000000000, '0.1.0', 'create-articles')
        ext.migration(1700000900000, '0.3.0', 'add-index')
        (ext.migrations_dir / 'README.md').write_text('# Migrations')
        (ext.migrations_dir / 'helpers.py').write_text('')

        migrations = MigrationManager(ext.path).discover_migrations()

        assert [m.timestamp for m in migrations] == [1700000000000, 1700000300000, 1700000900000]
        assert [m.version for m in migrations] == ['0.1.0', '0.2.0', '0.3.0']

    def test_discover_timestamp_order_not_version_order(self, make_extension):
        ext = make_extension()
        ext.migration(1700000500000, '0.1.0', 'late-fix')
        ext.migration(1700000000000, '0.2.0', 'early-feature')

        migrations = MigrationManager(ext.path).discover_migrations()

        assert [m.description for m in migrations] == ['early-feature', 'late-fix']

    def test_discover_missing_directory(self, make_extension):
        ext = make_extension()

        assert MigrationManager(ext.path).discover_migrations() == []

    def test_custom_subdir(self, make_extension):
        ext = make_extension()
        schema_dir = ext.path / 'schema'
        schema_dir.mkdir()
        (schema_dir / '1700000000000-0.1.0-init.py').write_text('')

        manager = MigrationManager(ext.path, migrations_subdir='schema')

        assert len(manager.discover_migrations()) == 1


class TestSelectRange:

    @pytest.fixture
    def manager(self, make_extension):
        ext = make_extension()
        ext.migration(1700000000000, '0.1.0', 'create-articles')
        ext.migration(1700000100000, '0.1.0', 'create-tags')
        ext.migration(1700000200000, '0.2.0', 'add-slug')
        ext.migration(1700000300000, '0.3.0', 'add-index')
        return MigrationManager(ext.path)

    def test_initial_install(self, manager):
        selected = manager.select_range(None, '0.1.0')

        assert [m.description for m in selected] == ['create-articles', 'create-tags']

    def test_step(self, manager):
        selected = manager.select_range('0.1.0', '0.2.0')

        assert [m.description for m in selected] == ['add-slug']

    def test_multi_step(self, manager):
        selected = manager.select_range('0.1.0', '0.3.0')

        assert [m.version for m in selected] == ['0.2.0', '0.3.0']

    def test_empty_range(self, manager):
        assert manager.select_range('0.3.0', '0.3.0') == []

    def test_steps_partition_all_migrations(self, manager):
        steps = [(None, '0.1.0'), ('0.1.0', '0.2.0'), ('0.2.0', '0.3.0')]
        selected = [m.name for lo, hi in steps for m in manager.select_range(lo, hi)]

        assert selected == [m.name for m in manager.discover_migrations()]

    def test_invalid_version_skipped(self, make_extension, caplog):
        ext = make_extension()
        ext.migration(1700000000000, '0.1.0', 'create-articles')
        ext.migration(1700000100000, 'next', 'broken')

        with caplog.at_level(logging.WARNING):
            selected = MigrationManager(ext.path).select_range(None, '1.0.0')

        assert [m.version for m in selected] == ['0.1.0']
        assert "invalid version 'next'" in caplog.text

    def test_invalid_version_strict(self, make_extension):
        ext = make_extension()
        ext.migration(1700000100000, 'next', 'broken')

        with pytest.raises(MigrationDiscoveryError):
            MigrationManager(ext.path, strict_versions=True).select_range(None, '1.0.0')

    def test_order_mismatch_warns(self, make_extension, caplog):
        ext = make_extension()
        ext.migration(1700000000000, '0.3.0', 'newer-first')
        ext.migration(1700000100000, '0.2.0', 'older-second')

        with caplog.at_level(logging.WARNING):
            selected = MigrationManager(ext.path).select_range('0.1.0', '0.3.0')

        assert [m.version for m in selected] == ['0.3.0', '0.2.0']
        assert 'older version' in caplog.text


class TestLoadMigration:

    def test_load_class_migration(self, make_extension):
        ext = make_extension()
        ext.migration(1700000000000, '0.1.0', 'create-articles', 'CREATE TABLE articles (id INTEGER)')
        manager = MigrationManager(ext.path)

        instance = manager.load_migration(manager.discover_migrations()[0])

        assert isinstance(instance, Migration)

    def test_load_ignores_imported_subclasses(self, make_extension, tmp_path, monkeypatch):
        shared = tmp_path / 'shared'
        shared.mkdir()
        (shared / 'article_hub_migration_base.py').write_text(
            'from common.migrations import Migration\n'
            '\n'
            '\n'
            'class AaaBaseMigration(Migration):\n'
            '    async def up(self, connection):\n'
            '        raise RuntimeError("base migration must not run")\n'
        )
        monkeypatch.syspath_prepend(str(shared))
        ext = make_extension()
        ext.migration_source(1700000000000, '0.1.0', 'create-articles', '''
            from article_hub_migration_base import AaaBaseMigration


            class ZzzCreateArticles(AaaBaseMigration):
                async def up(self, connection):
                    pass
        ''')
        manager = MigrationManager(ext.path)

        instance = manager.load_migration(manager.discover_migrations()[0])

        assert type(instance).__name__ == 'ZzzCreateArticles'

    def test_load_function_migration(self, make_extension):
        ext = make_extension()
        ext.function_migration(1700000000000, '0.1.0', 'create-articles', 'SELECT 1')
        manager = MigrationManager(ext.path)

        instance = manager.load_migration(manager.discover_migrations()[0])

        assert isinstance(instance, FunctionMigration)
        assert instance.name == '1700000000000-0.1.0-create-articles.py'

    def test_load_without_entry_point(self, make_extension):
        ext = make_extension()
        ext.migration_source(1700000000000, '0.1.0', 'empty', 'VALUE = 1\n')
        manager = MigrationManager(ext.path)

        with pytest.raises(MigrationLoadError, match='does not export'):
            manager.load_migration(manager.discover_migrations()[0])

    def test_load_sync_up_rejected(self, make_extension):
        ext = make_extension()
        ext.migration_source(1700000000000, '0.1.0', 'sync', 'def up(database):\n    pass\n')
        manager = MigrationManager(ext.path)

        with pytest.raises(MigrationLoadError):
            manager.load_migration(manager.discover_migrations()[0])

    def test_load_import_error(self, make_extension):
        ext = make_extension()
        ext.migration_source(1700000000000, '0.1.0', 'broken', 'import not_a_real_module_xyz\n')
        manager = MigrationManager(ext.path)

        with pytest.raises(MigrationLoadError, match='Failed to import'):
            manager.load_migration(manager.discover_migrations()[0])

    @pytest.mark.asyncio
    async def test_down_not_implemented_by_default(self, make_extension):
        ext = make_extension()
        ext.migration(1700000000000, '0.1.0', 'create-articles')
        manager = MigrationManager(ext.path)
        instance = manager.load_migration(manager.discover_migrations()[0])

        with pytest.raises(NotImplementedError):
            await instance.down(None)
