import json
import os

# Settings refuse to load without a signing secret.
os.environ.setdefault("JWT_SECRET", "test-secret-key")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from roomchat.models.base import Base
from roomchat.models import room, room_membership, message  # noqa: F401
from roomchat.models.user import User
from roomchat.core.security import create_access_token, hash_password

DATABASE_URL = "sqlite+aiosqlite:///:memory:"

@pytest.fixture
async def async_session():
    engine = create_async_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async_session_factory = sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with async_session_factory() as session:
        yield session
    await engine.dispose()

@pytest.fixture
def make_user(async_session):
    async def _make_user(username: str, password: str = "password123") -> User:
        user = User(
            username=username,
            display_name=username.title(),
            email=f"{username}@example.com",
            hashed_password=hash_password(password)
        )
        async_session.add(user)
        await async_session.commit()
        await async_session.refresh(user)
        return user
    return _make_user

@pytest.fixture
async def test_user(make_user):
    return await make_user("testuser")

@pytest.fixture
async def other_user(make_user):
    return await make_user("otheruser")

@pytest.fixture
def test_token(test_user):
    return create_access_token({"user_id": str(test_user.id)})

@pytest.fixture
def other_token(other_user):
    return create_access_token({"user_id": str(other_user.id)})


class FakeWebSocket:
    """Stands in for a starlette WebSocket; records every frame it is sent."""

    def __init__(self, fail_sends: bool = False):
        self.accepted = False
        self.closed = False
        self.fail_sends = fail_sends
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, data: str):
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str = None):
        self.closed = True

    def events(self, event_type: str):
        return [frame["data"] for frame in self.sent if frame["type"] == event_type]

    def types(self):
        return [frame["type"] for frame in self.sent]

@pytest.fixture
def fake_socket():
    return FakeWebSocket
