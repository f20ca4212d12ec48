"""Exports page state: list, filters, stats, polling and job actions."""

from __future__ import annotations

import asyncio
import logging

from gws_backup.client.api import ApiError, BackupApiClient, SessionExpired

logger = logging.getLogger(__name__)

POLL_INTERVAL = 5
CREATE_TIMEOUT = 120
LARGE_EXPORT = 100
TIMEOUT_MESSAGE = (
    "Export creation timed out. The export may still be processing in the "
    "background. Please refresh the page to check the status."
)


class ExportsView:
    def __init__(self, client: BackupApiClient, page_size: int = 25):
        self.client = client
        self.filters = {"status": None, "userId": None}
        self.page = 1
        self.limit = page_size
        self.exports: list[dict] = []
        self.total = 0
        self.stats: dict | None = None
        self.users: list[dict] = []
        self.error = ""
        self.message = ""
        self.dialog_open = False
        self.creating = False
        self._poll_task: asyncio.Task | None = None

    # ── Loading ───────────────────────────────────────────────────────

    async def load(self):
        try:
            data = await self.client.list_exports(
                user_id=self.filters["userId"],
                status=self.filters["status"],
                page=self.page,
                limit=self.limit,
            )
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError) as e:
            logger.warning("Failed to load exports: %s", e)
            self.error = "Failed to load exports"
            return
        self.exports = data["exports"]
        self.total = data["pagination"]["total"]
        self.error = ""

    async def load_stats(self):
        try:
            self.stats = await self.client.export_stats()
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError) as e:
            logger.warning("Failed to load export stats: %s", e)

    async def load_users(self):
        try:
            data = await self.client.list_users(limit=200)
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError) as e:
            logger.warning("Failed to load users: %s", e)
            return
        self.users = data["users"]

    async def refresh(self):
        await self.load()
        await self.load_stats()

    def set_filter(self, status: str = None, user_id: int = None):
        self.filters = {"status": status or None, "userId": user_id or None}
        self.page = 1

    def set_page(self, page: int, limit: int = None):
        if limit and limit != self.limit:
            self.limit = limit
            page = 1
        self.page = page

    # ── Polling ───────────────────────────────────────────────────────

    def start_polling(self, interval: float = POLL_INTERVAL):
        """Refresh the list on a fixed interval until close()."""
        self.stop_polling()
        self._poll_task = asyncio.get_running_loop().create_task(self._poll(interval))
        return self._poll_task

    async def _poll(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except SessionExpired:
                return
            except Exception as e:
                logger.warning("Export poll tick failed: %s", e)

    def stop_polling(self):
        if self._poll_task and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def close(self):
        task = self._poll_task
        self.stop_polling()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Actions ───────────────────────────────────────────────────────

    def open_create_dialog(self):
        self.dialog_open = True
        self.error = ""

    async def create_export(
        self, user_id: int, start_date: str = None, end_date: str = None,
        export_format: str = "eml", timeout: float = CREATE_TIMEOUT,
    ) -> bool:
        self.creating = True
        self.message = ""
        try:
            result = await self.client.create_export(
                user_id, start_date or None, end_date or None, export_format, timeout=timeout
            )
        except asyncio.TimeoutError:
            # the dialog stays open so the user can refresh or retry
            self.error = TIMEOUT_MESSAGE
            return False
        except SessionExpired:
            raise
        except ApiError as e:
            self.error = e.message or "Failed to create export"
            self.dialog_open = False
            return False
        finally:
            self.creating = False

        self.dialog_open = False
        self.error = ""
        self.message = success_message(result)
        await self.refresh()
        return True

    async def download(self, export: dict) -> bytes | None:
        try:
            return await self.client.download_export(export["id"])
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError) as e:
            logger.warning("Download of export %s failed: %s", export["id"], e)
            self.error = "Failed to download export"
            return None

    async def retry(self, export: dict) -> bool:
        try:
            await self.client.retry_export(export["id"])
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError):
            self.error = "Failed to retry export"
            return False
        await self.refresh()
        return True

    async def delete(self, export: dict) -> bool:
        try:
            await self.client.delete_export(export["id"])
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError):
            self.error = "Failed to delete export"
            return False
        await self.refresh()
        return True


def success_message(result: dict) -> str:
    emails = result.get("estimatedEmails", 0)
    if emails > LARGE_EXPORT:
        return (
            f"Export created! Processing {emails} emails may take "
            f"~{result.get('estimatedTimeMinutes')} minutes. Monitor progress in the exports list."
        )
    return f"Export created! Processing {emails} emails in the background."
