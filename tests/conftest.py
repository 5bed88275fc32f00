import pytest
from typing import AsyncGenerator, Dict, List, Optional, Tuple

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

import classroom_chat.models  # noqa: F401  registers every table on Base.metadata
from classroom_chat.config import ChatServiceConfig
from classroom_chat.database import Base, get_db
from classroom_chat.dependencies import (
    get_event_publisher,
    get_index_dispatcher,
    get_presence_tracker,
    get_service_config,
)
from classroom_chat.main import create_app, get_health_manager
from classroom_chat.services.change_feed import ChangeFeedIndexer
from classroom_chat.services.index_dispatcher import IndexDispatcher
from classroom_chat.services.notification_service import EventPublisher
from classroom_chat.services.presence_service import PresenceTracker
from classroom_chat.services.room_service import RoomService
from classroom_chat.utils import jwt as jwt_utils
from classroom_chat.utils.health_checks import HealthCheckManager


class FakeRedis:
    """In-memory stand-in for the redis.asyncio calls the service makes."""

    def __init__(self):
        self._store: Dict[str, str] = {}
        self._zsets: Dict[str, Dict[str, float]] = {}
        self.published: List[Tuple[str, str]] = []
        self.ttls: Dict[str, Optional[int]] = {}

    async def ping(self):
        return True

    async def aclose(self):
        return None

    async def get(self, key):
        return self._store.get(key)

    async def mget(self, keys):
        return [self._store.get(key) for key in keys]

    async def set(self, key, value, ex=None):
        self._store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._store.pop(key, None) is not None:
                removed += 1
        return removed

    async def zadd(self, name, mapping):
        zset = self._zsets.setdefault(name, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update({member: float(score) for member, score in mapping.items()})
        return added

    async def zrem(self, name, *members):
        zset = self._zsets.get(name, {})
        return sum(1 for member in members if zset.pop(member, None) is not None)

    async def zrangebyscore(self, name, min, max):
        low, high = float(min), float(max)
        zset = self._zsets.get(name, {})
        return [member for member, score in sorted(zset.items(), key=lambda item: item[1]) if low <= score <= high]

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1


class RecordingDispatcher(IndexDispatcher):
    def __init__(self):
        self.dispatched: List[int] = []

    def dispatch(self, event_ids):
        self.dispatched.extend(event_ids)


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    # A file database so concurrent sessions really use separate connections
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'chat.db'}", echo=False, poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return async_sessionmaker(
        bind=test_engine,
        expire_on_commit=False,
        class_=AsyncSession,
        autoflush=True,
        autocommit=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def publisher(fake_redis) -> EventPublisher:
    return EventPublisher(fake_redis, channel_prefix="chat")


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def service_config() -> ChatServiceConfig:
    return ChatServiceConfig(store_retry_attempts=5, store_retry_base_delay=0.01)


@pytest.fixture
def room_service(db_session, service_config, publisher, dispatcher) -> RoomService:
    return RoomService(db_session, service_config, publisher=publisher, index_dispatcher=dispatcher)


@pytest.fixture
async def make_service(session_factory, service_config, publisher, dispatcher):
    """Room services on their own sessions, as separate requests would have."""
    sessions = []

    def _make() -> RoomService:
        session = session_factory()
        sessions.append(session)
        return RoomService(session, service_config, publisher=publisher, index_dispatcher=dispatcher)

    yield _make
    for session in sessions:
        await session.close()


@pytest.fixture
def indexer(db_session) -> ChangeFeedIndexer:
    return ChangeFeedIndexer(db_session, max_event_attempts=3, retry_attempts=2, retry_base_delay=0.01)


@pytest.fixture
def presence_tracker(fake_redis, publisher) -> PresenceTracker:
    return PresenceTracker(fake_redis, publisher=publisher, timeout_seconds=300, offline_ttl_seconds=3600)


@pytest.fixture
def auth_headers():
    def _headers(user_id: str, groups: Optional[List[str]] = None) -> Dict[str, str]:
        claims = {"sub": user_id}
        if groups:
            claims["cognito:groups"] = groups
        token = jwt_utils.create_access_token(claims)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture(scope="function")
async def app_client(
    session_factory, fake_redis, publisher, dispatcher, service_config, presence_tracker
) -> AsyncGenerator[Tuple[FastAPI, AsyncClient], None]:
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def fake_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_config] = lambda: service_config
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_index_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_presence_tracker] = lambda: presence_tracker
    app.dependency_overrides[get_health_manager] = lambda: HealthCheckManager(session_factory, fake_get_redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield app, client
