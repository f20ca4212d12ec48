"""Backup settings page state."""

from __future__ import annotations

import asyncio
import logging

from gws_backup.client.api import ApiError, BackupApiClient, SessionExpired

logger = logging.getLogger(__name__)

INTERVAL_OPTIONS = {5: "Every 5 minutes", 15: "Every 15 minutes", 30: "Every 30 minutes", 60: "Every hour"}
CONCURRENCY_OPTIONS = (1, 2, 3, 5, 10)
BATCH_SIZE_OPTIONS = (1, 5, 10, 20, 50, 100)
BATCH_DELAY_OPTIONS = (500, 1000, 2000, 5000)


class BackupSettingsView:
    def __init__(self, client: BackupApiClient):
        self.client = client
        self.config: dict | None = None
        self.message = ""
        self.error = ""

    async def load(self):
        self.error = ""
        try:
            self.config = (await self.client.get_backup_config())["config"]
        except SessionExpired:
            raise
        except ApiError as e:
            self.error = f"Failed to load backup configuration: {e.message}"
        except asyncio.TimeoutError:
            self.error = "Failed to load backup configuration: request timed out"

    async def save(self, **changes) -> bool:
        self.message = ""
        self.error = ""
        merged = dict(self.config or {}, **changes)
        payload = {
            key: int(merged[key])
            for key in ("backupInterval", "maxConcurrentUsers", "batchSize", "batchDelay")
            if merged.get(key) is not None
        }
        try:
            self.config = (await self.client.update_backup_config(**payload))["config"]
        except SessionExpired:
            raise
        except ApiError as e:
            self.error = e.message or "Failed to update configuration"
            return False
        except asyncio.TimeoutError:
            self.error = "Failed to update configuration: request timed out"
            return False
        self.message = "Backup configuration updated successfully"
        return True

    async def manual_backup(self) -> bool:
        self.message = ""
        self.error = ""
        try:
            await self.client.manual_backup()
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError) as e:
            logger.warning("Manual backup request failed: %s", e)
            self.error = "Failed to start manual backup"
            return False
        self.message = "Manual backup started in background"
        return True
