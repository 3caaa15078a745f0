"""CLI entry point: python -m whawty_console.

Usage:
    python -m whawty_console login alice
    python -m whawty_console whoami
    python -m whawty_console users [--names] [--json]
    python -m whawty_console add bob [--admin]
    python -m whawty_console passwd [bob]
    python -m whawty_console set-admin bob --on
    python -m whawty_console toggle-role bob
    python -m whawty_console remove bob
    python -m whawty_console logout
    python -m whawty_console tui
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

import httpx
from rich.console import Console
from rich.prompt import Prompt

from whawty_console.app import ConsoleApp
from whawty_console.config import ConsoleConfig
from whawty_console.dispatcher import ApiResult
from whawty_console.errors import ValidationFailure, friendly_error
from whawty_console.models import NameListResponse
from whawty_console.output import (
    render_advisory,
    render_session,
    render_strength,
    render_users,
    users_json,
)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="whawty_console",
        description="Console for the whawty credential service: log in, change passwords, manage users.",
    )
    p.add_argument("--env", type=Path, help="Path to a .env file with WHAWTY_* settings")
    p.add_argument("--url", dest="base_url", help="Service base URL (default: $WHAWTY_BASE_URL)")
    p.add_argument("--timeout", type=float, help="HTTP timeout in seconds (default: 30)")
    p.add_argument("--session-file", type=Path, dest="storage_path", help="Where the session is kept")
    p.add_argument("--version", action="store_true", help="Show version and exit")

    sub = p.add_subparsers(dest="command", metavar="COMMAND")

    login = sub.add_parser("login", help="Authenticate and store the session")
    login.add_argument("username", nargs="?")
    login.add_argument("--password-stdin", action="store_true", help="Read the password from stdin")

    sub.add_parser("logout", help="Forget the stored session")
    sub.add_parser("whoami", help="Show the logged-in account")

    users = sub.add_parser("users", help="List all users (admin)")
    users.add_argument("--names", action="store_true", help="Only print user names")
    users.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    add = sub.add_parser("add", help="Add a user (admin)")
    add.add_argument("username")
    add.add_argument("--admin", action="store_true", help="Create the user with the admin role")

    passwd = sub.add_parser("passwd", help="Change your password, or another user's (admin)")
    passwd.add_argument("username", nargs="?")

    set_admin = sub.add_parser("set-admin", help="Set a user's admin flag (admin)")
    set_admin.add_argument("username")
    flag = set_admin.add_mutually_exclusive_group(required=True)
    flag.add_argument("--on", dest="admin", action="store_true")
    flag.add_argument("--off", dest="admin", action="store_false")

    toggle = sub.add_parser("toggle-role", help="Flip a user between Admin and User (admin)")
    toggle.add_argument("username")

    remove = sub.add_parser("remove", help="Remove a user (admin)")
    remove.add_argument("username")

    sub.add_parser("tui", help="Start the full-screen console")
    return p


def _read_new_password(app: ConsoleApp, console: Console) -> None:
    """Prompt for the new password twice, printing strength tips in between."""
    err = Console(stderr=True)
    app.modal.set_password(Prompt.ask("New password", password=True, console=console))
    render_strength(app.modal.form, err)
    app.modal.set_retype(Prompt.ask("Retype password", password=True, console=console))


def _report(app: ConsoleApp, result: Optional[ApiResult] = None) -> int:
    err = Console(stderr=True)
    render_advisory(app.advisories.get("login"), err)
    render_advisory(app.advisories.get("main"), err)
    if result is not None and result.error is not None and isinstance(result.error.__cause__, httpx.HTTPError):
        err.print(friendly_error(result.error.__cause__))
    if result is None:
        return EXIT_OK
    return EXIT_OK if result.ok else EXIT_FAILED


async def _run(args: argparse.Namespace, console: Console) -> int:
    config = ConsoleConfig.load(args.env, base_url=args.base_url, timeout=args.timeout,
                                storage_path=args.storage_path)

    async with ConsoleApp.from_config(config) as app:
        if args.command == "login":
            username = args.username or Prompt.ask("Username", console=console)
            if args.password_stdin:
                password = sys.stdin.readline().rstrip("\n")
            else:
                password = Prompt.ask("Password", password=True, console=console)
            ok = await app.submit_login(username, password)
            if not ok:
                _report(app)
                return EXIT_FAILED
            render_session(app.session.session, console)
            return EXIT_OK

        if args.command == "logout":
            app.session.restore()
            app.logout()
            console.print("[green]Logged out.[/green]")
            return EXIT_OK

        session = app.session.restore()
        if session is None:
            console.print("[yellow]Not logged in. Run: python -m whawty_console login[/yellow]")
            return EXIT_FAILED

        if args.command == "whoami":
            render_session(session, console)
            return EXIT_OK

        admin_only = {"users", "add", "set-admin", "toggle-role", "remove"}
        if args.command in admin_only and not session.is_admin:
            console.print(f"[red]'{args.command}' needs the admin role.[/red]")
            return EXIT_USAGE

        admin = app.admin_console
        if args.command == "users":
            if args.names:
                result = await admin.list_names()
                if result.ok and isinstance(result.data, NameListResponse):
                    for name in result.data.names:
                        console.print(name)
                return _report(app, result)
            result = await admin.refresh()
            if result.ok:
                if args.json:
                    print(users_json(admin.rows))
                else:
                    render_users(admin.rows, console)
            return _report(app, result)

        if args.command == "remove":
            return _report(app, await admin.remove(args.username))

        if args.command == "toggle-role":
            listing = await admin.refresh()
            if not listing.ok:
                return _report(app, listing)
            try:
                result = await admin.toggle_role(args.username)
            except ValidationFailure as exc:
                console.print(f"[red]{exc.message}[/red]")
                return EXIT_USAGE
            return _report(app, result)

        if args.command == "set-admin":
            return _report(app, await admin.set_admin(args.username, args.admin))

        # add / passwd go through the password dialog
        try:
            if args.command == "add":
                admin.add_user(args.username, args.admin)
            elif args.username and args.username != session.identity:
                if not session.is_admin:
                    console.print("[red]Only admins can change another user's password.[/red]")
                    return EXIT_USAGE
                admin.change_password(args.username)
            else:
                app.user_console.change_password()
            console.print(f"Password for [bold]{app.modal.binding.target}[/bold]")
            _read_new_password(app, console)
            result = await app.modal.submit()
        except ValidationFailure as exc:
            console.print(f"[red]{exc.message}[/red]")
            return EXIT_USAGE
        return _report(app, result)


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    console = Console()

    if args.version:
        from whawty_console import __version__
        console.print(f"whawty_console {__version__}")
        return EXIT_OK

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    try:
        if args.command == "tui":
            from whawty_console.tui import WhawtyConsoleApp
            config = ConsoleConfig.load(args.env, base_url=args.base_url, timeout=args.timeout,
                                        storage_path=args.storage_path)
            WhawtyConsoleApp(config).run()
            return EXIT_OK
        return asyncio.run(_run(args, console))
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        return EXIT_USAGE
    except (OSError, KeyboardInterrupt) as exc:
        Console(stderr=True).print(friendly_error(exc, f"running '{args.command}'"))
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
