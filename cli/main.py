#!/usr/bin/env python3
"""
XPlay CLI - Command line tools for the XPlay database and API.
"""

import argparse
import asyncio
import getpass
import json
import os
import sys
from pathlib import Path

import httpx
from rich.progress import (
    BarColumn,
    FileSizeColumn,
    Progress,
    TextColumn,
    TimeRemainingColumn,
    TotalFileSizeColumn,
    TransferSpeedColumn,
)

from api.audit import AuditAction, log_audit
from api.errors import truncate_error
from config import (
    API_URL,
    ERROR_DETAIL_MAX_LENGTH,
    ERROR_SUMMARY_MAX_LENGTH,
    MAX_UPLOAD_SIZE,
    SUPPORTED_VIDEO_EXTENSIONS,
)

# Default timeout for API requests (30 seconds)
DEFAULT_API_TIMEOUT = int(os.getenv("XPLAY_API_TIMEOUT", "30"))

# Upload timeout in seconds (default 2 hours, configurable via environment)
UPLOAD_TIMEOUT = int(os.getenv("XPLAY_UPLOAD_TIMEOUT", "7200"))

# Rows fetched by check-table
CHECK_TABLE_LIMIT = 10


class CLIError(Exception):
    """Custom exception for CLI errors."""

    pass


class ProgressFileWrapper:
    """Wrapper for file objects that reports upload progress."""

    def __init__(self, file, progress, task_id):
        self.file = file
        self.progress = progress
        self.task_id = task_id

    def read(self, size=-1):
        # Empty reads at EOF don't advance progress
        data = self.file.read(size)
        if data:
            self.progress.update(self.task_id, advance=len(data))
        return data

    def seek(self, *args, **kwargs):
        return self.file.seek(*args, **kwargs)

    def tell(self):
        return self.file.tell()

    def close(self):
        """Does not close the underlying file; the caller owns it."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass


def safe_json_response(response, default_error="Request failed"):
    """
    Safely parse JSON response with proper error handling.

    Raises:
        CLIError: If response status is not successful or JSON parsing fails
    """
    if not response.is_success:
        try:
            detail = response.json().get("detail", response.text)
        except (ValueError, httpx.ResponseNotRead):
            detail = truncate_error(response.text, ERROR_DETAIL_MAX_LENGTH) if response.text else default_error
        raise CLIError(f"API error ({response.status_code}): {detail}")

    try:
        return response.json()
    except (ValueError, httpx.ResponseNotRead):
        raise CLIError(f"Invalid JSON response: {truncate_error(response.text, ERROR_SUMMARY_MAX_LENGTH)}")


def validate_file(file_path):
    """
    Validate an upload candidate.

    Returns:
        int: File size in bytes

    Raises:
        CLIError: If the file is missing, unreadable, empty, too large or not a video
    """
    if not file_path.exists():
        raise CLIError(f"File not found: {file_path}")

    if not file_path.is_file():
        raise CLIError(f"Path is not a file: {file_path}")

    if not os.access(file_path, os.R_OK):
        raise CLIError(f"File is not readable: {file_path}")

    if file_path.suffix.lower() not in SUPPORTED_VIDEO_EXTENSIONS:
        raise CLIError(f"Unsupported video type: {file_path.suffix or '(none)'}")

    file_size = file_path.stat().st_size
    if file_size == 0:
        raise CLIError(f"File is empty: {file_path}")

    if file_size > MAX_UPLOAD_SIZE:
        max_size_gb = MAX_UPLOAD_SIZE / (1024 * 1024 * 1024)
        file_size_gb = file_size / (1024 * 1024 * 1024)
        raise CLIError(
            f"File too large ({file_size_gb:.2f} GB). "
            f"Maximum upload size is {max_size_gb:.0f} GB"
        )

    return file_size


async def _with_storage(operation):
    """Connect to the database, run `operation(storage)`, and always disconnect."""
    from api.database import configure_database, database
    from api.storage import Storage

    await database.connect()
    await configure_database()
    try:
        return await operation(Storage(database))
    finally:
        await database.disconnect()


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def cmd_check_table(args):
    """Print the row count and first row of a table."""
    table = args.table
    print(f"Scanning table {table}...")

    async def scan(storage):
        return await storage.scan_table(table, limit=CHECK_TABLE_LIMIT)

    try:
        count, rows = asyncio.run(_with_storage(scan))
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error scanning table {table}: {e}")
        sys.exit(1)

    if not rows:
        print(f"No rows found in {table}")
        return
    print(f"Found {count} rows in {table}")
    print("First row:")
    _print_json(rows[0])


def cmd_reset_db(args):
    """Delete every row and re-seed defaults. Exit code 0 on success, 1 otherwise."""
    if not args.yes:
        answer = input("This deletes ALL data. Type 'reset' to continue: ")
        if answer.strip() != "reset":
            print("Aborted.")
            sys.exit(1)

    from api.auth import build_bootstrap_admin

    print("Beginning database reset...")
    seed_admin = build_bootstrap_admin()

    async def reset(storage):
        return await storage.reset_database(seed_admin=seed_admin)

    try:
        ok = asyncio.run(_with_storage(reset))
    except Exception as e:
        print(f"Fatal error: {e}")
        sys.exit(1)

    log_audit(AuditAction.DATABASE_RESET, resource_type="database", success=ok, details={"source": "cli"})
    if not ok:
        print("Database reset failed.")
        sys.exit(1)

    print("Database reset completed successfully!")
    if seed_admin:
        print(f"  Bootstrap admin: {seed_admin['email']}")


def cmd_init_db(args):
    """Create any missing tables."""
    from api.database import create_tables

    try:
        create_tables()
    except Exception as e:
        print(f"Error creating tables: {e}")
        sys.exit(1)
    print("Database tables created.")


def cmd_create_admin(args):
    """Create an admin account, or promote the existing account with that email."""
    from api.auth import hash_password

    email = args.email.strip().lower()
    username = args.username.strip()

    async def create_or_promote(storage):
        existing = await storage.get_user_by_email(email)
        if existing is not None:
            await storage.update_user(existing["id"], {"is_admin": True, "is_banned": False})
            return existing, False

        password = args.password or getpass.getpass("Password: ")
        if len(password) < 6:
            raise CLIError("Password must be at least 6 characters")
        if await storage.get_user_by_username(username):
            raise CLIError(f"Username is already taken: {username}")

        user = await storage.create_user(
            {
                "username": username,
                "email": email,
                "password": hash_password(password),
                "display_name": username,
                "is_admin": True,
                "is_verified": True,
            }
        )
        await storage.create_channel(user["id"], {"name": username, "description": f"{username}'s channel"})
        return user, True

    try:
        user, created = asyncio.run(_with_storage(create_or_promote))
    except CLIError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}")
        sys.exit(1)

    if created:
        print(f"Created admin user {user['username']} (ID: {user['id']})")
    else:
        print(f"Promoted existing user {user['username']} (ID: {user['id']}) to admin")


def cmd_health(args):
    """Query the API health endpoint through the client library."""
    from client.http_client import XPlayAPIError, XPlayClient

    async def check():
        async with XPlayClient(args.api_url, timeout=DEFAULT_API_TIMEOUT) as client:
            return await client.health()

    try:
        result = asyncio.run(check())
    except XPlayAPIError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Status: {result.get('status')}")
    for name, ok in (result.get("checks") or {}).items():
        print(f"  {name}: {'ok' if ok else 'FAILED'}")
    if result.get("status") != "healthy":
        sys.exit(1)


def cmd_upload(args):
    """Log in and upload a video."""
    api_base = args.api_url.rstrip("/")
    try:
        file_path = Path(args.file)
        file_size = validate_file(file_path)

        title = args.title or file_path.stem.replace("-", " ").replace("_", " ").title()
        password = os.getenv("XPLAY_CLI_PASSWORD") or getpass.getpass("Password: ")

        data = {
            "title": title,
            "description": args.description or "",
            "is_quickie": "true" if args.quickie else "false",
        }
        if args.duration is not None:
            data["duration"] = str(args.duration)
        if args.tags:
            data["tags"] = args.tags
        if args.categories:
            data["categories"] = args.categories

        print(f"Uploading: {file_path.name}")
        print(f"Title: {title}")

        with httpx.Client(base_url=api_base, timeout=httpx.Timeout(UPLOAD_TIMEOUT)) as client:
            # Session cookie from login is kept in the client's cookie jar
            response = client.post(
                "/api/auth/login",
                json={"email": args.email, "password": password},
                timeout=DEFAULT_API_TIMEOUT,
            )
            safe_json_response(response, "Login failed")

            with Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                FileSizeColumn(),
                TextColumn("/"),
                TotalFileSizeColumn(),
                TransferSpeedColumn(),
                TimeRemainingColumn(),
            ) as progress:
                task_id = progress.add_task("Uploading...", total=file_size)
                with open(file_path, "rb") as f:
                    wrapped_file = ProgressFileWrapper(f, progress, task_id)
                    files = {"video_file": (file_path.name, wrapped_file)}
                    response = client.post("/api/videos", files=files, data=data)

        result = safe_json_response(response)
        print("Success! Video uploaded.")
        print(f"  ID: {result['id']}")
        print(f"  File: {result['file_path']}")

    except httpx.ConnectError:
        print(f"Error: Could not connect to API at {api_base}")
        print("Make sure the server is running.")
        sys.exit(1)
    except httpx.TimeoutException:
        print(f"Error: Upload timed out (exceeded {UPLOAD_TIMEOUT}s timeout)")
        print("You can increase the timeout with XPLAY_UPLOAD_TIMEOUT environment variable")
        sys.exit(1)
    except CLIError as e:
        print(f"Error: {e}")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="xplay", description="XPlay CLI - Manage the XPlay database and API")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # check-table
    check_parser = subparsers.add_parser("check-table", help="Show the row count and first row of a table")
    check_parser.add_argument("table", nargs="?", default="users", help="Table name (default: users)")
    check_parser.set_defaults(func=cmd_check_table)

    # reset-db
    reset_parser = subparsers.add_parser("reset-db", help="Delete all data and re-seed defaults")
    reset_parser.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    reset_parser.set_defaults(func=cmd_reset_db)

    # init-db
    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    # create-admin
    admin_parser = subparsers.add_parser("create-admin", help="Create or promote an admin user")
    admin_parser.add_argument("email", help="Admin email address")
    admin_parser.add_argument("username", help="Username for a new account")
    admin_parser.add_argument("--password", help=argparse.SUPPRESS)
    admin_parser.set_defaults(func=cmd_create_admin)

    # health
    health_parser = subparsers.add_parser("health", help="Check API health")
    health_parser.add_argument("--api-url", default=API_URL, help=f"API base URL (default: {API_URL})")
    health_parser.set_defaults(func=cmd_health)

    # upload
    upload_parser = subparsers.add_parser("upload", help="Upload a video file")
    upload_parser.add_argument("file", help="Video file to upload")
    upload_parser.add_argument("-e", "--email", required=True, help="Account email (password is prompted)")
    upload_parser.add_argument("-t", "--title", help="Video title (default: filename)")
    upload_parser.add_argument("-d", "--description", help="Video description")
    upload_parser.add_argument("--duration", type=int, help="Duration in seconds")
    upload_parser.add_argument("--tags", help="Comma-separated tags")
    upload_parser.add_argument("--categories", help="Comma-separated categories")
    upload_parser.add_argument("--quickie", action="store_true", help="Publish as a quickie (max 120s)")
    upload_parser.add_argument("--api-url", default=API_URL, help=f"API base URL (default: {API_URL})")
    upload_parser.set_defaults(func=cmd_upload)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
