"""
Seed the first admin account.
Run this script once after the database is up; it does nothing if the
admin email is already registered.

Usage:
    python create_admin.py
"""

import asyncio

from motor.motor_asyncio import AsyncIOMotorClient

import models
from auth import create_user
from config import settings
from database import ensure_indexes
from exceptions import DuplicateEmailError, DuplicateUsernameError


async def create_admin_user(db) -> bool:
    admin = models.UserCreate(
        username=settings.admin_username,
        email=settings.admin_email,
        password=settings.admin_password,
    )
    try:
        await create_user(db, admin, role=models.Role.admin)
    except (DuplicateEmailError, DuplicateUsernameError) as e:
        print(f"Admin user {settings.admin_username} <{settings.admin_email}> not created: {e.message}")
        return False

    print("Admin user created successfully!")
    print(f"Email: {settings.admin_email}")
    return True


async def main():
    client = AsyncIOMotorClient(settings.mongo_url)
    try:
        db = client[settings.mongo_db_name]
        await ensure_indexes(db)
        await create_admin_user(db)
    finally:
        client.close()


if __name__ == "__main__":
    print("Library Catalog - Create Admin")
    print("=" * 50)
    asyncio.run(main())
