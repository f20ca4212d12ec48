"""gws-console: terminal front end for the backup admin API."""

import argparse
import asyncio
import getpass
import logging
import os
import sys
from dotenv import load_dotenv
from gws_backup.client.api import ApiError, BackupApiClient, SessionExpired
from gws_backup.client.session import ApiSession
from gws_backup.console.admins import AdminManagementView
from gws_backup.console.exports import ExportsView, POLL_INTERVAL

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_API_URL = "http://localhost:3001/api"
DEFAULT_TOKEN_FILE = "~/.gws_backup/token"


def _print_exports(view: ExportsView):
    print(f"{'ID':36}  {'USER':30}  {'FORMAT':6}  {'STATUS':10}  {'PROGRESS':>8}  CREATED")
    for e in view.exports:
        print(
            f"{e['id']:36}  {(e.get('user_email') or '-'):30}  {e['format']:6}  "
            f"{e['status']:10}  {e['progress']:>7}%  {e['created_at']}"
        )
    print(f"{len(view.exports)} of {view.total} exports")


def _print_admins(view: AdminManagementView):
    for a in view.admins:
        actions = view.row_actions(a)
        flags = ",".join(name for name, enabled in actions.items() if enabled) or "-"
        print(f"{a['id']:>4}  {a['username']:20}  {a['role']:12}  {a['last_login'] or 'never':26}  {flags}")


async def _login(client: BackupApiClient, args):
    password = args.password or getpass.getpass("Password: ")
    data = await client.login(args.username, password)
    print(f"Logged in as {data['user']['username']} ({data['user']['role']})")


async def _logout(client: BackupApiClient, args):
    await client.logout()
    print("Logged out")


async def _whoami(client: BackupApiClient, args):
    user = (await client.me())["user"]
    print(f"{user['username']} ({user['role']})")


async def _exports_list(client: BackupApiClient, args):
    view = ExportsView(client, page_size=args.limit)
    view.set_filter(args.status, args.user_id)
    view.set_page(args.page)
    await view.load()
    if view.error:
        raise ApiError(0, view.error)
    _print_exports(view)


async def _exports_watch(client: BackupApiClient, args):
    view = ExportsView(client, page_size=args.limit)
    view.set_filter(args.status, args.user_id)
    await view.refresh()
    _print_exports(view)
    task = view.start_polling(args.interval)
    try:
        while not task.done():
            await asyncio.sleep(args.interval)
            print()
            _print_exports(view)
    finally:
        await view.close()


async def _exports_create(client: BackupApiClient, args):
    view = ExportsView(client)
    view.open_create_dialog()
    ok = await view.create_export(args.user_id, args.start, args.end, args.format)
    if not ok:
        raise ApiError(0, view.error)
    print(view.message)


async def _admins_list(client: BackupApiClient, args):
    view = AdminManagementView(client)
    await view.load()
    if view.error:
        raise ApiError(0, view.error)
    _print_admins(view)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gws-console", description="Gmail Workspace backup admin console.")
    parser.add_argument("--api-url", default=os.getenv("GWS_API_URL", DEFAULT_API_URL),
                        help="API base URL (or GWS_API_URL)")
    parser.add_argument("--token-file", default=os.getenv("GWS_TOKEN_FILE", DEFAULT_TOKEN_FILE),
                        help="Where the session token is kept (or GWS_TOKEN_FILE)")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in and store the token")
    login.add_argument("username")
    login.add_argument("--password", help="Prompted when omitted")
    login.set_defaults(func=_login)

    sub.add_parser("logout", help="End the session").set_defaults(func=_logout)
    sub.add_parser("whoami", help="Show the signed-in admin").set_defaults(func=_whoami)

    exports = sub.add_parser("exports", help="Export jobs").add_subparsers(dest="action", required=True)
    for name, func in (("list", _exports_list), ("watch", _exports_watch)):
        p = exports.add_parser(name)
        p.add_argument("--status", choices=("pending", "processing", "completed", "failed"))
        p.add_argument("--user-id", type=int)
        p.add_argument("--limit", type=int, default=25)
        if name == "list":
            p.add_argument("--page", type=int, default=1)
        else:
            p.add_argument("--interval", type=float, default=POLL_INTERVAL)
        p.set_defaults(func=func)

    create = exports.add_parser("create")
    create.add_argument("user_id", type=int)
    create.add_argument("--start", help="YYYY-MM-DD")
    create.add_argument("--end", help="YYYY-MM-DD")
    create.add_argument("--format", choices=("eml", "pst"), default="eml")
    create.set_defaults(func=_exports_create)

    admins = sub.add_parser("admins", help="Admin accounts").add_subparsers(dest="action", required=True)
    admins.add_parser("list").set_defaults(func=_admins_list)
    return parser


async def run(args) -> int:
    session = ApiSession(os.path.expanduser(args.token_file))
    session.on_expired(lambda: print("Session expired. Run 'gws-console login' again.", file=sys.stderr))
    async with BackupApiClient(args.api_url, session) as client:
        try:
            await args.func(client, args)
        except SessionExpired:
            return 2
        except ApiError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        except asyncio.TimeoutError:
            print("Error: request timed out", file=sys.stderr)
            return 1
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
