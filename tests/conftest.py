from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import models
from auth import create_access_token, create_user
from database import ensure_indexes
from main import app
from utils.dependencies import get_db

NOW = datetime(2025, 3, 1, 12, 0, 0)


@pytest.fixture
async def db():
    database = AsyncMongoMockClient()["library_test"]
    await ensure_indexes(database)
    return database


def book_fields(**overrides):
    fields = {
        "title": "Clean Code",
        "author": "Robert C. Martin",
        "isbn": "9780132350884",
        "genre": "Academic",
        "published_year": 2008,
        "publisher": "Prentice Hall",
        "total_copies": 2,
    }
    fields.update(overrides)
    return fields


async def make_user(db, username, role=models.Role.user):
    user = await create_user(
        db,
        models.UserCreate(username=username, email=f"{username}@library.org", password="secret123"),
        role=role,
    )
    return str(user["_id"])


def auth_header(user_id, role="user"):
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def admin_headers(db):
    return auth_header(await make_user(db, "admin", role=models.Role.admin), role="admin")


@pytest.fixture
async def user_headers(db):
    return auth_header(await make_user(db, "alice"))


@pytest.fixture
def patch_collection(db, monkeypatch):
    """Swap one awaited method of one collection for ``replacement``.

    The in-memory driver defines its methods on a class shared by every
    collection, so calls on the other collections go to the real method.
    """
    def patch(collection, method, replacement):
        cls = type(db[collection])
        original = getattr(cls, method)

        async def dispatch(self, *args, **kwargs):
            if self.name == collection:
                return replacement(*args, **kwargs)
            return await original(self, *args, **kwargs)
        monkeypatch.setattr(cls, method, dispatch)
    return patch
