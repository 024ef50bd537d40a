#!/usr/bin/env python3
"""
Aria Creative -- back-office account provisioning.

The API never creates accounts; administrators are provisioned from the shell.

Usage:
  python main.py create-admin --email admin@ariacreative.fr --name "Aria Admin"
  python main.py create-admin --email admin@ariacreative.fr --name "Aria Admin" --password '...'
  python main.py set-role --email editor@ariacreative.fr --role EDITOR

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the database (default: sqlite ariacreative.db)
  SECRET_KEY    Required unless DEBUG=true (token utilities load settings on import)
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.models import ADMIN_ROLE, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings

_MIN_PASSWORD_LENGTH = 8


def create_admin(store: UserStore, email: str, name: str, password: str) -> str:
    """Create an ADMIN account, or reset name/password/role if the email exists."""
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
    user = User(email=email, name=name, role=ADMIN_ROLE, hashed_password=hash_password(password))
    return store.upsert_user(user)


def set_role(store: UserStore, email: str, role: str) -> bool:
    """Change the role of an existing account. Returns False if the email is unknown."""
    user = store.get_by_email(email)
    if user is None:
        return False
    return store.update_user(user.id, role=role.upper())


def _prompt_password() -> str:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        raise ValueError("Passwords do not match.")
    return password


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="aria-creative",
        description="Provision back-office accounts for the Aria Creative API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --email admin@ariacreative.fr --name "Aria Admin"
  python main.py set-role --email editor@ariacreative.fr --role EDITOR
        """,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-admin", help="Create or update an ADMIN account")
    create.add_argument("--email", required=True, help="Login email (matched case-sensitively)")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument(
        "--password",
        default=None,
        help="Password (prompted when omitted; avoid passing it on shared machines)",
    )

    role = sub.add_parser("set-role", help="Change the role of an existing account")
    role.add_argument("--email", required=True)
    role.add_argument("--role", required=True, help="ADMIN, EDITOR, ...")

    args = parser.parse_args(argv)

    store = UserStore(args.database_url or get_settings().database_url)
    try:
        if args.command == "create-admin":
            try:
                password = args.password or _prompt_password()
                user_id = create_admin(store, args.email, args.name, password)
            except ValueError as e:
                print(f"  [!] {e}", file=sys.stderr)
                return 1
            print(f"  Admin account ready: {args.email} ({user_id})")
            return 0

        if not set_role(store, args.email, args.role):
            print(f"  [!] No account found for {args.email}", file=sys.stderr)
            return 1
        print(f"  {args.email} is now {args.role.upper()}")
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
