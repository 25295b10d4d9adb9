"""
Seed Admin User

Creates an admin account for the Paperly system. Public registration only
creates teachers, so run this once per admin.

Usage:
    cd apps/api
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=... python scripts/seed_admin.py
    python scripts/seed_admin.py admin@example.com "Admin Name"   # prompts for password
"""

import asyncio
import getpass
import os
import sys

from paperly.core.database import async_session_maker, engine
from paperly.core.security import hash_password
from paperly.modules.users.models import UserRole
from paperly.modules.users.repository import UserRepository


async def seed_admin(email: str, full_name: str, password: str) -> None:
    """Create the admin user if the email is not taken."""
    async with async_session_maker() as db:
        existing = await UserRepository.get_profile_by_email(db, email)
        if existing:
            print(f"User already exists: {email}")
            print(f"  ID: {existing.id}")
            print(f"  Role: {existing.role.value}")
            return

        profile = await UserRepository.create(
            db,
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=UserRole.ADMIN,
            email_verified=True,
        )
        await db.commit()

        print("Admin created successfully!")
        print(f"  Email: {profile.email}")
        print(f"  Name: {profile.full_name}")
        print(f"  ID: {profile.id}")

    await engine.dispose()


def main() -> None:
    args = sys.argv[1:]
    email = args[0] if args else os.environ.get("ADMIN_EMAIL")
    full_name = args[1] if len(args) > 1 else os.environ.get("ADMIN_NAME", "Administrator")
    password = os.environ.get("ADMIN_PASSWORD")

    if not email:
        sys.exit("Provide the admin email as an argument or via ADMIN_EMAIL")
    if not password:
        password = getpass.getpass("Admin password: ")
    if len(password) < 8:
        sys.exit("Password must be at least 8 characters")

    asyncio.run(seed_admin(email.strip().lower(), full_name, password))


if __name__ == "__main__":
    main()
