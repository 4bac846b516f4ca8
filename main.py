#!/usr/bin/env python3
"""
Inventory API operator CLI.

Usage:
  python main.py seed-admin
  python main.py seed-admin --email ops@example.com --password 'S3cure!pass' --name "Ops Admin"
  python main.py create-user --email jo@example.com --password secret1 --name "Jo" --role MANAGER

Run the API itself with:  uvicorn api.main:app --reload

Environment variables (see core/config.py):
  DATABASE_URL  SQLAlchemy URL shared with the API. Defaults to inventory.db
                next to this file.
  SECRET_KEY    Required unless DEBUG=true. Not used by these commands, but
                settings are validated on load like they are for the API.
"""

import argparse
import sys

from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.errors import Conflict, ValidationFailed

DEFAULT_ADMIN_EMAIL = "admin@inventory.com"
DEFAULT_ADMIN_PASSWORD = "Admin123!"  # noqa: S105 # nosec B105 -- documented first-run default
DEFAULT_ADMIN_NAME = "Admin User"


def seed_admin(store: UserStore, email: str, password: str, name: str) -> int:
    """Create the first ADMIN. Returns 0 on success, 1 if an admin already exists."""
    if store.count_admins() > 0:
        print("  [!] An admin user already exists. Nothing to do.")
        return 1
    try:
        store.create_user(User(email=email, name=name, role=Role.ADMIN.value, password_hash=hash_password(password)))
    except (Conflict, ValidationFailed) as exc:
        print(f"  [!] {exc.message}: {email}")
        return 1
    print(f"  Admin user created: {email}")
    if password == DEFAULT_ADMIN_PASSWORD:
        print("  [!] This is the default password. Change it after your first login.")
    return 0


def create_user(store: UserStore, email: str, password: str, name: str, role: str) -> int:
    """Create a user with any role. Returns 0 on success, 1 if the email is taken or the password unusable."""
    try:
        store.create_user(User(email=email, name=name, role=role, password_hash=hash_password(password)))
    except (Conflict, ValidationFailed) as exc:
        print(f"  [!] {exc.message}: {email}")
        return 1
    print(f"  {role} user created: {email}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="main.py",
        description="Inventory API operator commands.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed-admin", help="Create the first ADMIN account if none exists.")
    seed.add_argument("--email", default=DEFAULT_ADMIN_EMAIL)
    seed.add_argument("--password", default=DEFAULT_ADMIN_PASSWORD)
    seed.add_argument("--name", default=DEFAULT_ADMIN_NAME)

    create = sub.add_parser("create-user", help="Create a user account with the given role.")
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--name", required=True)
    create.add_argument("--role", choices=[r.value for r in Role], default=Role.VIEWER.value)

    args = parser.parse_args(argv)

    store = UserStore(get_settings().database_url)
    try:
        if args.command == "seed-admin":
            return seed_admin(store, args.email, args.password, args.name)
        return create_user(store, args.email, args.password, args.name, args.role)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
