#!/usr/bin/env python3
"""
LukaMath -- command-line client for the student/tutor portal.

Usage:
  python main.py login demo@lukamath.com
  python main.py me
  python main.py homework
  python main.py homework --json
  python main.py logout
  python main.py create-user tutor@lukamath.com --role tutor --first-name Ana --last-name Horvat

The bearer token is kept in ~/.lukamath/storage.json between runs.

Environment variables:
  API_BASE_URL  Portal API to talk to (default http://localhost:8000)
  TOKEN_FILE    Where the token is persisted
  DATABASE_URL  Credential store used by create-user
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import LANGUAGES, ROLES, User
from auth.store import UserStore
from auth.tokens import hash_password
from cache.store import QueryCache
from client.http import ApiClient, ApiError
from client.tokens import FileTokenStore
from core.config import get_settings
from core.errors import ErrorKind

logger = logging.getLogger("lukamath.cli")


def _client() -> ApiClient:
    settings = get_settings()
    return ApiClient(
        settings.api_base_url,
        FileTokenStore(settings.token_file),
        timeout=settings.request_timeout,
    )


def _password(prompt: str = "Password: ") -> str:
    # Never accept passwords as argv; they end up in shell history.
    return getpass.getpass(prompt)


def _name(user: dict) -> str:
    full = f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()
    return full or user.get("email", "")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def cmd_login(args: argparse.Namespace) -> int:
    client = _client()
    data = client.login(args.email, _password())
    user = data["user"]
    print(f"  Logged in as {_name(user)} ({user['role']}).")
    return 0


def cmd_logout(args: argparse.Namespace) -> int:
    _client().logout()
    print("  Logged out.")
    return 0


def cmd_me(args: argparse.Namespace) -> int:
    user = _client().me()
    if args.json:
        print(json.dumps(user, indent=2))
        return 0
    print(f"  {_name(user)} <{user['email']}>")
    print(f"  Role:     {user['role']}")
    print(f"  Language: {user['language']}")
    print(f"  Active:   {user['isActive']}")
    return 0


async def _load_dashboard(client: ApiClient) -> tuple[Optional[dict], list]:
    cache = QueryCache(client.get)
    # A missing or expired session is not an error here; it means "log in".
    me, homework = await asyncio.gather(
        cache.get("/api/auth/me", on_401="return_null"),
        cache.get("/api/homework", on_401="return_null"),
    )
    return (me or {}).get("user"), homework or []


def cmd_homework(args: argparse.Namespace) -> int:
    user, homework = asyncio.run(_load_dashboard(_client()))
    if user is None:
        print("  [!] Not logged in. Run: python main.py login <email>")
        return 1
    if args.json:
        print(json.dumps(homework, indent=2))
        return 0
    print(f"\n  Homework for {_name(user)}")
    print("  " + "-" * 40)
    if not homework:
        print("  Nothing assigned.\n")
        return 0
    for hw in homework:
        due = hw.get("dueDate") or "no due date"
        mark = "x" if hw.get("isCompleted") else " "
        print(f"  [{mark}] {hw['title']}  ({hw['subject']}, {hw['difficulty']}, due {due})  {hw['status']}")
    print()
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    """Seed an account straight into the credential store (first admin/tutor)."""
    password = _password()
    if password != _password("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1
    store = UserStore(get_settings().database_url)
    try:
        user_id = store.create_user(
            User(
                email=args.email.strip().lower(),
                hashed_password=hash_password(password),
                role=args.role,
                first_name=args.first_name,
                last_name=args.last_name,
                language=args.language,
            )
        )
    except IntegrityError:
        print(f"  [!] A user with email {args.email} already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created {args.role} {args.email} ({user_id}).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="lukamath",
        description="Command-line client for the LukaMath student/tutor portal.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py login demo@lukamath.com
  python main.py homework
  API_BASE_URL=https://portal.example.com python main.py me --json
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log HTTP traffic to stderr")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("login", help="Log in and store the token")
    p.add_argument("email")
    p.set_defaults(func=cmd_login)

    p = sub.add_parser("logout", help="Log out and discard the stored token")
    p.set_defaults(func=cmd_logout)

    p = sub.add_parser("me", help="Show the logged-in user")
    p.add_argument("--json", action="store_true", help="Output raw JSON")
    p.set_defaults(func=cmd_me)

    p = sub.add_parser("homework", help="List homework visible to the logged-in user")
    p.add_argument("--json", action="store_true", help="Output raw JSON")
    p.set_defaults(func=cmd_homework)

    p = sub.add_parser("create-user", help="Create an account directly in the database")
    p.add_argument("email")
    p.add_argument("--role", choices=ROLES, default="student")
    p.add_argument("--first-name", default="")
    p.add_argument("--last-name", default="")
    p.add_argument("--language", choices=LANGUAGES, default="en")
    p.set_defaults(func=cmd_create_user)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)-5s %(name)s %(message)s",
    )

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except ApiError as e:
        if e.kind is ErrorKind.NETWORK:
            print(f"  [!] Could not reach {get_settings().api_base_url}: {e.message}")
        elif e.kind in (ErrorKind.MISSING_TOKEN, ErrorKind.INVALID_TOKEN):
            print("  [!] Session missing or expired. Run: python main.py login <email>")
        else:
            print(f"  [!] {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
