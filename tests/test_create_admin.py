import models
from auth import create_user, verify_password
from config import settings
from create_admin import create_admin_user


async def test_create_admin_once(db):
    assert await create_admin_user(db) is True
    assert await create_admin_user(db) is False

    admins = [u async for u in db.users.find({"role": "admin"})]
    assert len(admins) == 1
    assert admins[0]["email"] == settings.admin_email
    assert verify_password(settings.admin_password, admins[0]["password"])


async def test_create_admin_skips_taken_username(db):
    await create_user(
        db,
        models.UserCreate(username=settings.admin_username, email="someone@library.org", password="secret123"),
    )

    assert await create_admin_user(db) is False
    assert await db.users.count_documents({"role": "admin"}) == 0
