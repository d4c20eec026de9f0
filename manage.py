#!/usr/bin/env python3
"""Management CLI for administrative tasks.

Usage:
  python manage.py create_account --email director@example.edu --role director
  python manage.py create_account --email fet@example.edu --role coordinator --faculty Engineering --generate-password
  python manage.py list_accounts --role department
  python manage.py rotate_password --email fet@example.edu --generate-password --otp-file otp.txt
  python manage.py import_scholars applications.xlsx
  python manage.py export_scholars scholars.xlsx
"""
import argparse
import getpass
import os
import secrets
import sys
from contextlib import contextmanager

from services import accounts, scholars
from services.errors import ServiceError
from services.scholar_fields import export_columns
from services.spreadsheets import SpreadsheetError, export_rows, import_scholars
from utils.auth import ROLES
from utils.database import get_db


def create_parser():
    parser = argparse.ArgumentParser(prog="manage.py", description="Management CLI for the scholar admissions portal")
    subparsers = parser.add_subparsers(dest="command")

    create = subparsers.add_parser("create_account", help="Create or update a portal account")
    create.add_argument("--email", required=True, help="Email address for the account")
    create.add_argument("--role", choices=ROLES, default="director", help="Account role")
    create.add_argument("--name", default="", help="Display name")
    create.add_argument("--faculty", help="Faculty name or short name (coordinator and department accounts)")
    create.add_argument("--department", help="Department name (department accounts)")
    create.add_argument(
        "--password",
        required=False,
        help="Password for the account. If omitted, you will be prompted unless --generate-password is used",
    )
    create.add_argument(
        "--generate-password",
        action="store_true",
        help="Generate a secure one-time password instead of prompting or using --password",
    )
    create.add_argument(
        "--otp-file",
        required=False,
        help="If provided with --generate-password, write the generated password to this file (securely)",
    )
    create.add_argument("--force", action="store_true", help="Reset the password if the account already exists")

    list_cmd = subparsers.add_parser("list_accounts", help="List portal accounts")
    list_cmd.add_argument("--role", choices=ROLES, help="Only list accounts with this role")

    rotate = subparsers.add_parser("rotate_password", help="Rotate/update an account password")
    rotate.add_argument("--email", required=True, help="Email address for the account")
    rotate.add_argument(
        "--password", required=False, help="Password to set (if omitted, prompt or use --generate-password)"
    )
    rotate.add_argument("--generate-password", action="store_true", help="Generate a secure one-time password")
    rotate.add_argument(
        "--otp-file",
        required=False,
        help="If provided with --generate-password, write the generated password to this file (securely)",
    )

    import_cmd = subparsers.add_parser("import_scholars", help="Import scholar applications from .xlsx or .csv")
    import_cmd.add_argument("path", help="Spreadsheet to import")

    export_cmd = subparsers.add_parser("export_scholars", help="Export all scholar applications to .xlsx")
    export_cmd.add_argument("path", help="Destination .xlsx file")

    subparsers.add_parser("sync_status", help="Repair status text that disagrees with the forwarded department")

    return parser


def prompt_password():
    pw = getpass.getpass("Enter password: ")
    pw2 = getpass.getpass("Confirm password: ")
    if pw != pw2:
        print("Passwords do not match. Aborting.")
        return None
    if not pw:
        print("Empty password not allowed. Aborting.")
        return None
    return pw


def generate_password(length=24):
    return secrets.token_urlsafe(32)[:length]


def write_otp_to_file(path, password):
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(password + "\n")
        print(f"✅ Generated password written to {path} (owner read/write only)")
        return True
    except OSError as e:
        print(f"❌ Failed to write OTP to file {path}: {e}")
        return False


def resolve_password(args):
    """Return the password to use, or None after reporting why there is none."""
    if args.generate_password:
        pw = generate_password()
        if args.otp_file:
            if not write_otp_to_file(args.otp_file, pw):
                return None
        else:
            print("✅ Generated one-time password (keep it safe):")
            print(pw)
        return pw
    return args.password or prompt_password()


@contextmanager
def app_context():
    """Services read the connection from flask.g, so run commands inside the app."""
    from app import app

    with app.app_context():
        yield


def create_account(args, password):
    existing = accounts.find_by_email(args.email)
    if existing:
        if not args.force:
            print("Account already exists. Use --force to reset its password.")
            return 2
        accounts.set_password(existing["user_id"], password)
        print(f"✅ Updated password for {existing['email']}")
        return 0

    accounts.create_account(
        args.email, password, args.role, full_name=args.name, faculty=args.faculty, department=args.department
    )
    print(f"✅ Created {args.role} account: {args.email.strip().lower()}")
    return 0


def list_accounts(args):
    rows = accounts.list_accounts(role=args.role)
    if not rows:
        print("No accounts found.")
        return 0
    for r in rows:
        scope = r.get("department_code") or r.get("faculty") or "-"
        print(f"- {r.get('email')} (user_id={r.get('user_id')}, role={r.get('role')}, scope={scope}, "
              f"status={r.get('status')})")
    return 0


def rotate_password(args, password):
    account = accounts.find_by_email(args.email)
    if not account:
        print("User not found.")
        return 2
    accounts.set_password(account["user_id"], password)
    print("✅ Password rotated successfully.")
    return 0


def import_scholar_file(args):
    rows = import_scholars(args.path)
    created, failed = scholars.bulk_create(rows)
    print(f"✅ Imported {len(created)} scholar(s) from {args.path}")
    for failure in failed:
        print(f"⚠️ Row {failure['row']}: {failure['error']}")
    duplicates = scholars.find_duplicates()
    if duplicates:
        print(f"⚠️ {len(duplicates)} duplicate group(s) must be resolved before forwarding all scholars")
    return 0


def export_scholar_file(args):
    content = export_rows(scholars.list_scholars(), export_columns())
    with open(args.path, "wb") as f:
        f.write(content)
    print(f"✅ Exported scholars to {args.path}")
    return 0


def sync_status(args):
    fixed = scholars.sync_statuses()
    print(f"✅ Re-synced {len(fixed)} scholar(s)")
    return 0


def run_command(args):
    if args.command in ("create_account", "rotate_password"):
        pw = resolve_password(args)
        if not pw:
            return 1 if not args.generate_password else 3
        if args.command == "create_account":
            return create_account(args, pw)
        return rotate_password(args, pw)

    handlers = {
        "list_accounts": list_accounts,
        "import_scholars": import_scholar_file,
        "export_scholars": export_scholar_file,
        "sync_status": sync_status,
    }
    return handlers[args.command](args)


def main(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    with app_context():
        if get_db() is None:
            print("❌ Database connection failed. Ensure database is available.")
            return 2
        try:
            return run_command(args)
        except ServiceError as e:
            print(f"❌ {e.message}")
            return 2
        except SpreadsheetError as e:
            print(f"❌ {e}")
            return 2


if __name__ == "__main__":
    sys.exit(main())
