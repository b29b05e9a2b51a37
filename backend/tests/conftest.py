import os
import tempfile

# Settings are read at import time, so point them at throwaway resources first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", os.path.join(tempfile.mkdtemp(prefix="quill-covers-"), "posts"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("AUTO_CREATE_DB_SCHEMA", "false")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from quill.core.database import create_engine_from_url, create_schema, get_db  # noqa: E402
from quill.main import app  # noqa: E402

DEFAULT_PASSWORD = "secret123"


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    """Fresh SQLite database per test, with foreign keys enforced"""
    engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'quill.db'}")
    await create_schema(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def register(client):
    """Sign up and sign in a user; returns (user_id, auth headers)"""

    async def _register(email: str, first_name: str = "Wina", password: str = DEFAULT_PASSWORD):
        response = await client.post(
            "/api/auth/sign-up",
            json={
                "firstName": first_name,
                "lastName": "Safitri",
                "email": email,
                "password": password,
                "confirmPassword": password,
            },
        )
        assert response.status_code == 201, response.text
        user_id = response.json()["data"]["id"]

        response = await client.post("/api/auth/sign-in", json={"email": email, "password": password})
        assert response.status_code == 201, response.text
        token = response.json()["data"]["accessToken"]
        return user_id, {"Authorization": f"Bearer {token}"}

    return _register
