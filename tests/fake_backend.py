"""In-process aiohttp server speaking the admin API, for client-side tests."""
import asyncio

from aiohttp import web
from aiohttp.test_utils import TestServer, unused_port

from gws_backup.client.api import BackupApiClient
from gws_backup.client.session import ApiSession

TOKEN = "tok-1"


def _authorized(request: web.Request) -> bool:
    return request.headers.get("Authorization") == f"Bearer {TOKEN}"


def _unauthorized():
    return web.json_response({"detail": "Token expired"}, status=401)


def make_app(state: dict) -> web.Application:
    state.setdefault("calls", [])
    state.setdefault("exports", [])

    async def login(request):
        body = await request.json()
        if body.get("password") != "good-password":
            return web.json_response({"detail": "Invalid credentials"}, status=401)
        return web.json_response({"token": TOKEN, "user": {"id": 1, "username": body["username"], "role": "super_admin"}})

    async def me(request):
        if not _authorized(request):
            return _unauthorized()
        return web.json_response({"user": {"id": 1, "username": "root", "role": "super_admin", "last_login": None}})

    async def admin_list(request):
        if not _authorized(request):
            return _unauthorized()
        return web.json_response({"admins": state.get("admins", [])})

    async def list_exports(request):
        state["calls"].append(("list_exports", dict(request.query)))
        if not _authorized(request):
            return _unauthorized()
        return web.json_response({
            "exports": state["exports"],
            "pagination": {"page": 1, "limit": 25, "total": len(state["exports"]), "pages": 1},
        })

    async def export_stats(request):
        state["calls"].append(("export_stats", {}))
        return web.json_response({"stats": {"total": len(state["exports"])}, "queue": {"available": False}})

    async def create_export(request):
        body = await request.json()
        state["calls"].append(("create_export", body))
        mode = state.get("create", "ok")
        if mode == "slow":
            await asyncio.sleep(2)
        if mode == "error":
            return web.json_response({"detail": "No emails found for alice@example.com"}, status=400)
        emails = state.get("estimated", 10)
        return web.json_response({
            "id": "exp-1", "exportId": "exp-1", "status": "pending", "message": "Export queued successfully",
            "estimatedEmails": emails, "estimatedTimeMinutes": -(-emails // 50), "format": body["format"],
        }, status=201)

    async def download(request):
        return web.Response(body=b"PK\x03\x04zip", content_type="application/zip")

    async def retry(request):
        if state.get("retry_fails"):
            return web.json_response({"detail": "Only failed exports can be retried"}, status=400)
        return web.json_response({"message": "Export queued for retry", "exportId": request.match_info["id"]})

    async def delete_export(request):
        state["exports"] = [e for e in state["exports"] if e["id"] != request.match_info["id"]]
        return web.json_response({"message": "Export deleted successfully"})

    async def get_config(request):
        return web.json_response({"config": state.setdefault("config", {
            "backupInterval": 60, "maxConcurrentUsers": 1, "batchSize": 100,
            "batchDelay": 2000, "useRealGmail": False,
        })})

    async def put_config(request):
        body = await request.json()
        state["calls"].append(("put_config", body))
        if body.get("batchSize", 1) > 100:
            return web.json_response({"detail": "Batch size must be between 1 and 100"}, status=400)
        state["config"].update(body)
        return web.json_response({"message": "ok", "config": state["config"]})

    async def manual(request):
        return web.json_response({"message": "Manual backup for all users requested"})

    async def create_domain(request):
        return web.json_response({"detail": "Domain already exists"}, status=409)

    app = web.Application()
    app.router.add_post("/api/auth/login", login)
    app.router.add_get("/api/auth/me", me)
    app.router.add_get("/api/auth/admin-list", admin_list)
    app.router.add_get("/api/exports", list_exports)
    app.router.add_post("/api/exports", create_export)
    app.router.add_get("/api/exports/stats/overview", export_stats)
    app.router.add_get("/api/exports/{id}/download", download)
    app.router.add_post("/api/exports/{id}/retry", retry)
    app.router.add_delete("/api/exports/{id}", delete_export)
    app.router.add_get("/api/backup/config", get_config)
    app.router.add_put("/api/backup/config", put_config)
    app.router.add_post("/api/backup/manual", manual)
    app.router.add_post("/api/domains", create_domain)
    return app


def run_against(state: dict, scenario, session: ApiSession = None, token: str = TOKEN):
    """Start the fake backend, hand a client to scenario, tear everything down."""

    async def _main():
        server = TestServer(make_app(state))
        await server.start_server()
        api_session = session or ApiSession()
        if token and not api_session.token:
            api_session.start(token)
        try:
            async with BackupApiClient(str(server.make_url("/api")), api_session) as client:
                return await scenario(client)
        finally:
            await server.close()

    return asyncio.run(_main())


def unreachable_url() -> str:
    """Base URL on a local port nothing listens on."""
    return f"http://127.0.0.1:{unused_port()}/api"


def run_unreachable(scenario, session: ApiSession = None):
    """Hand scenario a client whose every request is refused."""

    async def _main():
        api_session = session or ApiSession()
        if not api_session.token:
            api_session.start(TOKEN)
        async with BackupApiClient(unreachable_url(), api_session) as client:
            return await scenario(client)

    return asyncio.run(_main())
