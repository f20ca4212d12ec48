"""Admin management page state."""

from __future__ import annotations

import asyncio
import logging

from gws_backup.client.api import ApiError, BackupApiClient, SessionExpired

logger = logging.getLogger(__name__)

ROLES = ("viewer", "admin", "super_admin")
MIN_PASSWORD_LENGTH = 8


class AdminManagementView:
    def __init__(self, client: BackupApiClient):
        self.client = client
        self.current_user: dict | None = None
        self.admins: list[dict] = []
        self.error = ""
        self.success = ""

    @property
    def is_super_admin(self) -> bool:
        return bool(self.current_user) and self.current_user.get("role") == "super_admin"

    async def load(self):
        """Fetch the signed-in admin, then the account list."""
        try:
            self.current_user = (await self.client.me())["user"]
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError) as e:
            logger.warning("Failed to load current user: %s", e)
        await self.load_admins()

    async def load_admins(self):
        try:
            data = await self.client.list_admins()
        except SessionExpired:
            raise
        except (ApiError, asyncio.TimeoutError) as e:
            logger.warning("Failed to load admins: %s", e)
            self.error = "Failed to load admin list. You may not have permission (super_admin only)."
            return
        self.admins = data["admins"]
        self.error = ""

    def row_actions(self, row: dict) -> dict:
        """Which actions are enabled for one row of the admin table."""
        own = self.current_user is not None and row["id"] == self.current_user["id"]
        return {
            "reset_password": not own,
            "change_role": not own,
            "delete": not own and row["role"] != "super_admin",
        }

    async def _run(self, call, success: str, failure: str) -> bool:
        self.error = ""
        self.success = ""
        try:
            await call
        except SessionExpired:
            raise
        except ApiError as e:
            self.error = e.message or failure
            return False
        except asyncio.TimeoutError:
            self.error = f"{failure}: request timed out"
            return False
        self.success = success
        await self.load_admins()
        return True

    async def create(self, username: str, password: str, role: str = "admin") -> bool:
        if not username or not password:
            self.error = "Username and password are required"
            return False
        if len(password) < MIN_PASSWORD_LENGTH:
            self.error = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            return False
        if role not in ROLES:
            self.error = "Invalid role"
            return False
        return await self._run(
            self.client.create_admin(username, password, role),
            "Admin created successfully", "Failed to create admin",
        )

    async def reset_password(self, admin_id: int, new_password: str) -> bool:
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            self.error = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            return False
        return await self._run(
            self.client.reset_admin_password(admin_id, new_password),
            "Password reset successfully", "Failed to reset password",
        )

    async def change_role(self, admin_id: int, new_role: str) -> bool:
        return await self._run(
            self.client.update_admin_role(admin_id, new_role),
            "Role updated successfully", "Failed to update role",
        )

    async def delete(self, admin_id: int) -> bool:
        return await self._run(
            self.client.delete_admin(admin_id),
            "Admin deleted successfully", "Failed to delete admin",
        )
