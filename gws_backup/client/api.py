"""Async REST client for the backup admin API."""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from gws_backup.client.session import ApiSession

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class SessionExpired(ApiError):
    def __init__(self, message: str = "Session expired"):
        super().__init__(401, message)


class BackupApiClient:
    """One method per backend endpoint. A 401 anywhere ends the session."""

    def __init__(self, base_url: str, session: ApiSession = None, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.session = session or ApiSession()
        self.timeout = timeout
        self._http = None

    async def _get_http(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession()
        return self._http

    async def close(self):
        if self._http and not self._http.closed:
            await self._http.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def _headers(self) -> dict:
        if self.session.token:
            return {"Authorization": f"Bearer {self.session.token}"}
        return {}

    @staticmethod
    async def _error_message(resp: aiohttp.ClientResponse) -> str:
        try:
            data = await resp.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return await resp.text() or resp.reason or f"HTTP {resp.status}"
        if isinstance(data, dict):
            return str(data.get("detail") or data.get("error") or data)
        return str(data)

    async def request(
        self, method: str, path: str, *, params: dict = None, json=None,
        timeout: float = None, raw: bool = False,
    ):
        http = await self._get_http()
        if params:
            params = {k: str(v).lower() if isinstance(v, bool) else v
                      for k, v in params.items() if v is not None and v != ""}
        try:
            async with http.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=timeout or self.timeout),
            ) as resp:
                if resp.status == 401:
                    message = await self._error_message(resp)
                    self.session.expire()
                    raise SessionExpired(message)
                if resp.status >= 400:
                    message = await self._error_message(resp)
                    logger.debug("%s %s -> %d: %s", method, path, resp.status, message)
                    raise ApiError(resp.status, message)
                if raw:
                    return await resp.read()
                return await resp.json(content_type=None)
        except asyncio.TimeoutError:
            raise
        except aiohttp.ClientError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(0, f"Cannot reach server: {e}") from e

    # ── Auth ──────────────────────────────────────────────────────────

    async def login(self, username: str, password: str) -> dict:
        data = await self.request("POST", "/auth/login", json={"username": username, "password": password})
        self.session.start(data["token"])
        return data

    async def logout(self) -> dict:
        try:
            return await self.request("POST", "/auth/logout")
        finally:
            self.session.clear()

    async def me(self) -> dict:
        return await self.request("GET", "/auth/me")

    async def change_password(self, current_password: str, new_password: str) -> dict:
        return await self.request("POST", "/auth/change-password", json={
            "currentPassword": current_password, "newPassword": new_password,
        })

    async def setup(self, username: str, password: str) -> dict:
        return await self.request("POST", "/auth/setup", json={"username": username, "password": password})

    async def list_admins(self) -> dict:
        return await self.request("GET", "/auth/admin-list")

    async def create_admin(self, username: str, password: str, role: str = "admin") -> dict:
        return await self.request("POST", "/auth/admin-create", json={
            "username": username, "password": password, "role": role,
        })

    async def reset_admin_password(self, admin_id: int, new_password: str) -> dict:
        return await self.request("POST", "/auth/admin-reset-password", json={
            "adminId": admin_id, "newPassword": new_password,
        })

    async def update_admin_role(self, admin_id: int, new_role: str) -> dict:
        return await self.request("PUT", "/auth/admin-update-role", json={
            "adminId": admin_id, "newRole": new_role,
        })

    async def delete_admin(self, admin_id: int) -> dict:
        return await self.request("POST", "/auth/admin-delete", json={"adminId": admin_id})

    async def audit_log(self, action: str = None, page: int = 1, per_page: int = 50) -> dict:
        return await self.request("GET", "/auth/audit", params={
            "action": action, "page": page, "per_page": per_page,
        })

    # ── Domains ───────────────────────────────────────────────────────

    async def list_domains(self) -> dict:
        return await self.request("GET", "/domains")

    async def get_domain(self, domain_id: int) -> dict:
        return await self.request("GET", f"/domains/{domain_id}")

    async def create_domain(self, name: str) -> dict:
        return await self.request("POST", "/domains", json={"name": name})

    async def update_domain(self, domain_id: int, name: str) -> dict:
        return await self.request("PUT", f"/domains/{domain_id}", json={"name": name})

    async def delete_domain(self, domain_id: int) -> dict:
        return await self.request("DELETE", f"/domains/{domain_id}")

    async def discover_users(self, domain_id: int, emails: list) -> dict:
        return await self.request("POST", f"/domains/{domain_id}/discover-users", json={"userEmails": emails})

    # ── Users ─────────────────────────────────────────────────────────

    async def list_users(self, domain_id: int = None, status: str = None, page: int = 1, limit: int = 50) -> dict:
        return await self.request("GET", "/users", params={
            "domain_id": domain_id, "status": status, "page": page, "limit": limit,
        })

    async def get_user(self, user_id: int) -> dict:
        return await self.request("GET", f"/users/{user_id}")

    async def set_user_status(self, user_id: int, status: str) -> dict:
        return await self.request("PATCH", f"/users/{user_id}/status", json={"status": status})

    async def connect_user(self, user_id: int) -> dict:
        return await self.request("POST", f"/users/{user_id}/connect")

    async def disconnect_user(self, user_id: int) -> dict:
        return await self.request("POST", f"/users/{user_id}/disconnect")

    async def backup_user(self, user_id: int) -> dict:
        return await self.request("POST", f"/users/{user_id}/backup")

    async def imap_status(self, user_id: int) -> dict:
        return await self.request("GET", f"/users/{user_id}/imap-status")

    async def user_stats(self, user_id: int, period: int = 30) -> dict:
        return await self.request("GET", f"/users/{user_id}/stats", params={"period": period})

    async def delete_user(self, user_id: int) -> dict:
        return await self.request("DELETE", f"/users/{user_id}")

    # ── Emails ────────────────────────────────────────────────────────

    async def search_emails(self, **filters) -> dict:
        if "sender" in filters:
            filters["from"] = filters.pop("sender")
        if "recipient" in filters:
            filters["to"] = filters.pop("recipient")
        return await self.request("GET", "/emails/search", params=filters)

    async def get_email(self, email_id: int) -> dict:
        return await self.request("GET", f"/emails/{email_id}")

    async def email_content(self, email_id: int) -> bytes:
        return await self.request("GET", f"/emails/{email_id}/content", raw=True)

    async def email_preview(self, email_id: int) -> dict:
        return await self.request("GET", f"/emails/{email_id}/preview")

    async def email_attachments(self, email_id: int) -> dict:
        return await self.request("GET", f"/emails/{email_id}/attachments")

    async def download_attachment(self, email_id: int, attachment_id: int, download: bool = True) -> bytes:
        return await self.request(
            "GET", f"/emails/{email_id}/attachments/{attachment_id}",
            params={"download": download}, raw=True,
        )

    async def email_stats(self, period: int = 30) -> dict:
        return await self.request("GET", "/emails/stats/overview", params={"period": period})

    async def delete_email(self, email_id: int) -> dict:
        return await self.request("DELETE", f"/emails/{email_id}")

    async def bulk_delete_emails(self, email_ids: list) -> dict:
        return await self.request("DELETE", "/emails/bulk", json={"emailIds": email_ids})

    # ── Exports ───────────────────────────────────────────────────────

    async def create_export(
        self, user_id: int, start_date: str = None, end_date: str = None,
        export_format: str = "eml", timeout: float = None,
    ) -> dict:
        return await self.request("POST", "/exports", json={
            "userId": user_id, "startDate": start_date, "endDate": end_date, "format": export_format,
        }, timeout=timeout)

    async def list_exports(self, user_id: int = None, status: str = None, page: int = 1, limit: int = 20) -> dict:
        return await self.request("GET", "/exports", params={
            "userId": user_id, "status": status, "page": page, "limit": limit,
        })

    async def get_export(self, export_id: str) -> dict:
        return await self.request("GET", f"/exports/{export_id}")

    async def download_export(self, export_id: str) -> bytes:
        return await self.request("GET", f"/exports/{export_id}/download", raw=True, timeout=300)

    async def delete_export(self, export_id: str) -> dict:
        return await self.request("DELETE", f"/exports/{export_id}")

    async def export_stats(self) -> dict:
        return await self.request("GET", "/exports/stats/overview")

    async def retry_export(self, export_id: str) -> dict:
        return await self.request("POST", f"/exports/{export_id}/retry")

    # ── Backup ────────────────────────────────────────────────────────

    async def get_backup_config(self) -> dict:
        return await self.request("GET", "/backup/config")

    async def update_backup_config(self, **config) -> dict:
        return await self.request("PUT", "/backup/config", json=config)

    async def backup_status(self) -> dict:
        return await self.request("GET", "/backup/status")

    async def manual_backup(self, user_id: int = None) -> dict:
        if user_id is not None:
            return await self.request("POST", f"/backup/manual/{user_id}")
        return await self.request("POST", "/backup/manual")

    async def health(self) -> dict:
        root = self.base_url[: -len("/api")] if self.base_url.endswith("/api") else self.base_url
        http = await self._get_http()
        async with http.get(f"{root}/health", timeout=aiohttp.ClientTimeout(total=self.timeout)) as resp:
            return await resp.json(content_type=None)
