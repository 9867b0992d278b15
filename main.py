#!/usr/bin/env python3
"""
SafeConnect -- operator CLI for the account database.

Usage:
  python main.py create-account a@x.com --first-name Ann
  python main.py create-account a@x.com --first-name Ann --last-name Lee --phone "+91 98765 43210"
  python main.py purge-sessions

Environment variables:
  SECRET_KEY     Session signing key (min 32 chars). Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL of the account database (default: ./safeconnect.db).

The password for create-account is read interactively so it never lands in
shell history or the process list.
"""

import argparse
import getpass
import sys

from auth.errors import AuthError
from auth.service import AuthService, build_auth_service
from core.config import get_settings


def _create_account(service: AuthService, args: argparse.Namespace) -> int:
    password = getpass.getpass("  Password: ")
    if password != getpass.getpass("  Confirm password: "):
        print("  [!] Passwords do not match.")
        return 1
    try:
        result = service.register(
            email=args.email,
            password=password,
            first_name=args.first_name,
            last_name=args.last_name,
            phone=args.phone,
        )
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    # The auto-login session is not needed from the CLI.
    service.logout(result.session.credential)
    print(f"  Created account {result.account.id} for {result.account.email}.")
    return 0


def _purge_sessions(service: AuthService, args: argparse.Namespace) -> int:
    try:
        removed = service.purge_expired_sessions()
    except AuthError as exc:
        print(f"  [!] {exc.message}")
        return 1
    print(f"  Removed {removed} expired session(s).")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="safeconnect",
        description="Manage SafeConnect accounts and sessions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-account a@x.com --first-name Ann
  python main.py purge-sessions
  DATABASE_URL=sqlite:///prod.db python main.py purge-sessions
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    create = sub.add_parser("create-account", help="Register a new account (password prompted)")
    create.add_argument("email", help="Login email for the new account")
    create.add_argument("--first-name", required=True, help="Account holder's first name")
    create.add_argument("--last-name", default=None, help="Account holder's last name")
    create.add_argument("--phone", default=None, help="Contact phone number")
    create.set_defaults(handler=_create_account)

    purge = sub.add_parser("purge-sessions", help="Delete expired session rows")
    purge.set_defaults(handler=_purge_sessions)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    service = build_auth_service(get_settings())
    try:
        return args.handler(service, args)
    finally:
        service.accounts.engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
