#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""NATS-enabled extension upgrade service

Exposes the extension upgrade orchestrator over NATS request/reply so that
operators and other processes can trigger or inspect extension upgrades.

Architecture:
    Client → NATS request → UpgradeService → ExtensionVersionManager → Database

Usage:
    # Start as standalone service
    python -m common.upgrade_service --config config.json

    # Or integrate with an application
    service = UpgradeService(nats_client, database, orchestrator)
    await service.start()
"""
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List

from nats.aio.client import Client as NATS  # noqa: N814 (NATS convention)

from common.config import get_config
from common.database import ExtensionDatabase
from lib.extension import (
    ExtensionError,
    ExtensionNotFoundError,
    ExtensionUpgradeOrchestrator,
)


class UpgradeService:
    """NATS request/reply wrapper around ExtensionUpgradeOrchestrator.

    NATS Subject Design:
        extensions.upgrade.{identifier}.apply   - Run check_and_upgrade (request/reply)
        extensions.upgrade.{identifier}.status  - Version info and history (request/reply)

    Upgrades of the same extension are serialized with a per-extension lock.

    Example:
        nc = await nats.connect("nats://localhost:4222")
        service = UpgradeService(nc, database, orchestrator)
        await service.start()
    """

    SUBJECT_PREFIX = 'extensions.upgrade'

    def __init__(self, nats_client, database: ExtensionDatabase,
                 orchestrator: ExtensionUpgradeOrchestrator,
                 lock_timeout: float = 30.0):
        """Initialize upgrade service.

        Args:
            nats_client: Connected NATS client instance
            database: ExtensionDatabase instance
            orchestrator: Orchestrator that builds per-extension managers
            lock_timeout: Seconds to wait for an extension's lock
        """
        self.nats = nats_client
        self.database = database
        self.orchestrator = orchestrator
        self.lock_timeout = lock_timeout
        self.logger = logging.getLogger(__name__)
        self._subscriptions: List[Any] = []
        self._running = False
        self.upgrade_locks: Dict[str, asyncio.Lock] = {}

    async def start(self):
        """Subscribe to upgrade subjects."""
        if self._running:
            self.logger.warning("UpgradeService already running")
            return

        self.logger.info("Starting UpgradeService...")

        try:
            self._subscriptions.extend([
                await self.nats.subscribe(f'{self.SUBJECT_PREFIX}.*.apply',
                                          cb=self._handle_apply),
                await self.nats.subscribe(f'{self.SUBJECT_PREFIX}.*.status',
                                          cb=self._handle_status),
            ])
            self._running = True
            self.logger.info("UpgradeService started")
        except Exception as e:
            self.logger.error("Failed to start UpgradeService: %s", e, exc_info=True)
            await self.stop()
            raise

    async def stop(self):
        """Unsubscribe from all subjects."""
        if not self._running and not self._subscriptions:
            return

        self.logger.info("Stopping UpgradeService...")
        for sub in self._subscriptions:
            try:
                await sub.unsubscribe()
            except Exception as e:
                self.logger.error("Error unsubscribing: %s", e)

        self._subscriptions = []
        self._running = False
        self.logger.info("UpgradeService stopped")

    def _get_extension_lock(self, identifier: str) -> asyncio.Lock:
        """Get or create the upgrade lock for an extension."""
        if identifier not in self.upgrade_locks:
            self.upgrade_locks[identifier] = asyncio.Lock()
        return self.upgrade_locks[identifier]

    @staticmethod
    def _identifier_from_subject(subject: str) -> str:
        # extensions.upgrade.{identifier}.{action}
        return subject.split('.')[2]

    @staticmethod
    def _error(code: str, message: str, **extra) -> bytes:
        response = {"success": False, "error": {"code": code, "message": message}}
        response.update(extra)
        return json.dumps(response).encode()

    async def _handle_apply(self, msg):
        """
        Handle extensions.upgrade.{identifier}.apply requests.

        Request:
            {} (no fields)

        Response (success):
            {
                "success": true,
                "identifier": str,
                "installed": str | null,
                "current": str,
                "upgraded_versions": [str, ...],
                "migrations": [{"name", "version", "status", "execution_time_ms"}, ...]
            }

        Response (error):
            {"success": false, "error": {"code": str, "message": str}}
        """
        try:
            try:
                if msg.data:
                    json.loads(msg.data.decode())
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                await msg.respond(self._error("INVALID_JSON", f"Invalid JSON: {e}"))
                return

            identifier = self._identifier_from_subject(msg.subject)

            try:
                manager = self.orchestrator.get_manager(identifier)
            except ExtensionNotFoundError as e:
                await msg.respond(self._error("EXTENSION_NOT_FOUND", str(e)))
                return

            lock = self._get_extension_lock(identifier)
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout)
            except asyncio.TimeoutError:
                await msg.respond(self._error(
                    "LOCK_TIMEOUT",
                    f"Upgrade already in progress for extension {identifier}"
                ))
                return

            try:
                try:
                    report = await manager.check_and_upgrade()
                except Exception as e:
                    # Failed extensions stay partially upgraded until the next run
                    info = None
                    try:
                        info = manager.detect().to_dict()
                    except ExtensionError:
                        pass
                    await msg.respond(self._error(
                        "UPGRADE_FAILED", str(e), version_info=info
                    ))
                    return

                response = {"success": True}
                response.update(report.to_dict())
                await msg.respond(json.dumps(response).encode())
            finally:
                lock.release()

        except Exception as e:
            self.logger.error("Unexpected error in upgrade apply: %s", e, exc_info=True)
            await msg.respond(self._error("INTERNAL_ERROR", "Unexpected error"))

    async def _handle_status(self, msg):
        """
        Handle extensions.upgrade.{identifier}.status requests.

        Response (success):
            {
                "success": true,
                "identifier": str,
                "installed": str | null,
                "current": str,
                "needs_upgrade": bool,
                "upgrade_versions": [str, ...],
                "migrations": [{"name", "version", "timestamp", "executed_at", ...}, ...]
            }
        """
        try:
            identifier = self._identifier_from_subject(msg.subject)

            try:
                manager = self.orchestrator.get_manager(identifier)
                info = manager.detect()
            except ExtensionNotFoundError as e:
                await msg.respond(self._error("EXTENSION_NOT_FOUND", str(e)))
                return
            except ExtensionError as e:
                await msg.respond(self._error("INVALID_MANIFEST", str(e)))
                return

            runner = manager.migration_runner
            await runner.ensure_history_table()
            history = await runner.executed_migrations()

            response = {"success": True}
            response.update(info.to_dict())
            response["migrations"] = [record.to_dict() for record in history]
            await msg.respond(json.dumps(response).encode())

        except Exception as e:
            self.logger.error("Unexpected error in upgrade status: %s", e, exc_info=True)
            await msg.respond(self._error("INTERNAL_ERROR", "Unexpected error"))


async def main():
    """Standalone upgrade service entry point.

        python -m common.upgrade_service --config config.json
    """
    import argparse

    parser = argparse.ArgumentParser(description='Extension Upgrade Service with NATS')
    parser.add_argument(
        '--config',
        default='config.json',
        help='Path to JSON/YAML config file (default: config.json)'
    )
    parser.add_argument(
        '--upgrade-on-start',
        action='store_true',
        help='Run an upgrade pass over all extensions before serving requests'
    )
    args = parser.parse_args()

    conf = get_config(args.config)
    logger = logging.getLogger(__name__)

    database = ExtensionDatabase(conf['database_url'])
    await database.connect()

    upgrade_conf = conf['upgrade']
    orchestrator = ExtensionUpgradeOrchestrator(
        database,
        conf['extensions_dir'],
        migrations_subdir=conf['migrations_subdir'],
        strict_versions=upgrade_conf['strict_versions'],
        fail_fast=upgrade_conf['fail_fast'],
    )

    if args.upgrade_on_start:
        try:
            await orchestrator.check_and_upgrade_all()
        except Exception as e:
            logger.error("Extension upgrade failed: %s", e)
            await database.close()
            sys.exit(1)

    nats = NATS()
    logger.info("Connecting to NATS at %s...", conf['nats_url'])
    try:
        await nats.connect(conf['nats_url'])
        logger.info("Connected to NATS")
    except Exception as e:
        logger.error("Failed to connect to NATS: %s", e)
        await database.close()
        sys.exit(1)

    service = UpgradeService(nats, database, orchestrator,
                             lock_timeout=upgrade_conf['lock_timeout'])
    try:
        await service.start()
        logger.info("UpgradeService running - press Ctrl+C to stop")
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Shutdown requested")
    finally:
        await service.stop()
        await nats.close()
        await database.close()
        logger.info("UpgradeService shutdown complete")


if __name__ == '__main__':
    asyncio.run(main())
