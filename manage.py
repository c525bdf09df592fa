#!/usr/bin/env python3
"""
Assure Health -- account administration from the command line.

The HTTP API only ever creates User accounts. Admin and SuperAdmin accounts
are provisioned here, directly against the configured database.

Usage:
  python manage.py create-account --email ada@example.com --first-name Ada \\
      --last-name Lovelace --password 'S3cure!pass' --role Admin
  python manage.py list-accounts

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the account database (default: sqlite:///./assure_health.db)
  JWT_KEY, SENDGRID_API_KEY, SENDGRID_EMAIL   Required by Settings, as for the server.
"""

import argparse
import sys
from typing import Optional

from auth.models import Role
from auth.results import Err
from auth.schemas import SignupRequest, validate
from auth.store import AccountDirectory, DuplicateEmailError
from auth.tokens import hash_password
from core.config import get_settings


def create_account(directory: AccountDirectory, args: argparse.Namespace, rounds: int) -> int:
    """Create a verified account with the requested role. Returns the exit code."""
    checked = validate(
        SignupRequest,
        {
            "email": args.email,
            "firstName": args.first_name,
            "lastName": args.last_name,
            "password": args.password,
            "confirmPassword": args.password,
        },
    )
    if isinstance(checked, Err):
        print(f"  [!] {checked.message}")
        return 1
    req: SignupRequest = checked.value

    try:
        account = directory.create(
            email=req.email.strip().lower(),
            first_name=req.first_name.strip().lower(),
            last_name=req.last_name.strip().lower(),
            password_hash=hash_password(req.password, rounds=rounds),
            role=args.role,
            verified=True,
        )
    except DuplicateEmailError as e:
        print(f"  [!] {e}")
        return 1

    print(f"  Created {account.role} account {account.email} ({account.id})")
    return 0


def list_accounts(directory: AccountDirectory) -> int:
    accounts = directory.list_all()
    if not accounts:
        print("  No accounts.")
        return 0

    print(f"  {'EMAIL':<40} {'ROLE':<11} {'VERIFIED':<9} CREATED")
    print("  " + "─" * 84)
    for a in accounts:
        print(f"  {a.email:<40} {a.role:<11} {'yes' if a.verified else 'no':<9} {a.created_at}")
    print(f"\n  {len(accounts)} account(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="assure-health-manage",
        description="Administer Assure Health accounts.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-account", help="Create a verified account with any role")
    create.add_argument("--email", required=True)
    create.add_argument("--first-name", required=True, dest="first_name")
    create.add_argument("--last-name", required=True, dest="last_name")
    create.add_argument("--password", required=True)
    create.add_argument(
        "--role",
        choices=[r.value for r in Role],
        default=Role.ADMIN.value,
        help="Account role (default: Admin)",
    )

    sub.add_parser("list-accounts", help="Print every account in the directory")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    settings = get_settings()
    directory = AccountDirectory(settings.database_url)
    try:
        if args.command == "create-account":
            return create_account(directory, args, settings.bcrypt_rounds)
        return list_accounts(directory)
    finally:
        directory.close()


if __name__ == "__main__":
    sys.exit(main())
