#!/usr/bin/env python3
"""
User Management CLI

Command-line tool for managing users and devices from the server terminal.
Use this to bootstrap an admin, reset passwords or verify devices without
going through the API.

Usage:
    python user_cli.py create-admin <email> <password> [--device-id ID]
    python user_cli.py reset-password <email> <new_password>
    python user_cli.py list-users
    python user_cli.py activate <email>
    python user_cli.py deactivate <email>
    python user_cli.py verify-device <device_id> [--email EMAIL]

Add --test to run against the test database.
"""
import sys
import argparse
import asyncio
from pathlib import Path

# Add project root to path (file is in root)
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from backend.app.config import get_settings, set_test_mode

if "--test" in sys.argv:
    set_test_mode(True)
    sys.argv.remove("--test")

from backend.app.db.session import new_session
from backend.app.errors import AppError, NotFoundError
from backend.app.services import device_service, user_service
from backend.app.services.seed_service import seed_admin_user


async def cmd_create_admin(email: str, password: str, device_id: str, first_name: str, last_name: str) -> bool:
    """Create an admin with a verified device (or verify the device of an existing admin)."""
    async with new_session() as session:
        admin = await seed_admin_user(session, email, password, device_id, first_name, last_name)

    if admin is None:
        print(f"❌ '{email}' already belongs to a non-admin user")
        return False
    print(f"✅ Admin '{admin.email}' ready (ID {admin.id}, device '{device_id}')")
    return True


async def cmd_reset_password(email: str, new_password: str) -> bool:
    """Reset a user's password."""
    async with new_session() as session:
        user = await user_service.reset_password(session, email, new_password)
    print(f"✅ Password reset for '{user.email}'")
    return True


async def cmd_list_users() -> bool:
    """List all users."""
    async with new_session() as session:
        users, total = await user_service.list_users(session, limit=1000)

    if not users:
        print("No users found")
        return True

    print(f"\n{'ID':<5} {'Email':<35} {'Name':<25} {'Role':<7} {'Active':<8}")
    print("-" * 82)

    for user in users:
        active = "✅" if user.is_active else "❌"
        name = f"{user.first_name} {user.last_name}"
        print(f"{user.id:<5} {user.email:<35} {name:<25} {user.role.value:<7} {active:<8}")

    print(f"\nTotal: {total} user(s)")
    return True


async def cmd_set_user_active(email: str, active: bool) -> bool:
    """Activate or deactivate a user."""
    async with new_session() as session:
        user = await user_service.get_user_by_email(session, email)
        if not user:
            raise NotFoundError("User not found")
        await user_service.set_user_active(session, user.id, active)

    status = "activated" if active else "deactivated"
    print(f"✅ User '{email}' {status}")
    return True


async def cmd_verify_device(device_id: str, email: str | None) -> bool:
    """Verify a device, optionally scoped to one user."""
    async with new_session() as session:
        user_id = None
        if email:
            user = await user_service.get_user_by_email(session, email)
            if not user:
                raise NotFoundError("User not found")
            user_id = user.id
        device = await device_service.verify_device(session, device_id, user_id)

    print(f"✅ Device '{device.device_id}' of user {device.user_id} verified")
    return True


def main():
    parser = argparse.ArgumentParser(
        description="SavingsVault User Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python user_cli.py create-admin admin@example.com adminpass
  python user_cli.py reset-password jane@example.com newpassword123
  python user_cli.py list-users
  python user_cli.py deactivate jane@example.com
  python user_cli.py verify-device dev_1a2b3c4d5e6f7a8b
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # create-admin
    admin_parser = subparsers.add_parser("create-admin", help="Create admin with a verified device")
    admin_parser.add_argument("email", help="Email address")
    admin_parser.add_argument("password", help="Password")
    admin_parser.add_argument("--device-id", default=None, help="Admin device identifier (default: ADMIN_DEVICE_ID)")
    admin_parser.add_argument("--first-name", default="Admin")
    admin_parser.add_argument("--last-name", default="User")

    # reset-password
    reset_parser = subparsers.add_parser("reset-password", help="Reset user password")
    reset_parser.add_argument("email", help="Email address")
    reset_parser.add_argument("new_password", help="New password")

    # list-users
    subparsers.add_parser("list-users", help="List all users")

    # deactivate
    deact_parser = subparsers.add_parser("deactivate", help="Deactivate user")
    deact_parser.add_argument("email", help="Email address")

    # activate
    act_parser = subparsers.add_parser("activate", help="Activate user")
    act_parser.add_argument("email", help="Email address")

    # verify-device
    verify_parser = subparsers.add_parser("verify-device", help="Verify a device")
    verify_parser.add_argument("device_id", help="Device identifier")
    verify_parser.add_argument("--email", default=None, help="Owner email (needed if the identifier is shared)")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    # Make sure the schema exists before touching it
    from backend.app.main import ensure_database_exists
    ensure_database_exists()

    if args.command == "create-admin":
        device_id = args.device_id or get_settings().ADMIN_DEVICE_ID
        coro = cmd_create_admin(args.email, args.password, device_id, args.first_name, args.last_name)
    elif args.command == "reset-password":
        coro = cmd_reset_password(args.email, args.new_password)
    elif args.command == "list-users":
        coro = cmd_list_users()
    elif args.command == "activate":
        coro = cmd_set_user_active(args.email, True)
    elif args.command == "deactivate":
        coro = cmd_set_user_active(args.email, False)
    elif args.command == "verify-device":
        coro = cmd_verify_device(args.device_id, args.email)
    else:
        parser.print_help()
        return

    try:
        success = asyncio.run(coro)
    except AppError as e:
        print(f"❌ {e.message}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
