import pytest
import pytest_asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.config import settings
from app.database.mysql import Base, get_async_session, get_session_factory
from app.models.users import User
from app.models.rooms import Room
from app.utils.auth import get_password_hash, create_access_token
from app.services import room_service
from app.websockets.broadcaster import broadcaster
from app.websockets.connection_manager import manager


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "testpass123"


@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    # 테이블 생성
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # 정리
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """테스트용 데이터베이스 세션"""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def session_factory(test_session):
    """WebSocket 용 세션 팩토리 (테스트 세션을 그대로 사용하고 닫지 않음)"""
    @asynccontextmanager
    async def factory():
        yield test_session

    return factory


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """업로드 파일은 테스트별 임시 디렉토리에 저장"""
    directory = tmp_path / "uploads"
    monkeypatch.setattr(settings, "upload_dir", str(directory))
    return directory


@pytest.fixture(autouse=True)
def reset_connection_manager():
    """전역 연결 매니저 상태 초기화"""
    manager.channel_connections.clear()
    manager.connection_info.clear()
    yield
    manager.channel_connections.clear()
    manager.connection_info.clear()


@pytest.fixture
def published_events(monkeypatch) -> List[dict]:
    """브로드캐스터로 발행된 이벤트 프레임 기록"""
    frames = []

    async def record(event):
        frames.append(event.to_dict())
        return 0

    monkeypatch.setattr(broadcaster, "publish", record)
    return frames


@pytest_asyncio.fixture
async def client(test_session, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    def get_test_session():
        return test_session

    app.dependency_overrides[get_async_session] = get_test_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _create_user(session: AsyncSession, name: str, email: str) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=get_password_hash(TEST_PASSWORD)
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user_1(test_session) -> User:
    """테스트용 사용자 1"""
    return await _create_user(test_session, "Alice", "alice@example.com")


@pytest_asyncio.fixture
async def test_user_2(test_session) -> User:
    """테스트용 사용자 2"""
    return await _create_user(test_session, "Bob", "bob@example.com")


@pytest_asyncio.fixture
async def test_user_3(test_session) -> User:
    """테스트용 사용자 3"""
    return await _create_user(test_session, "Carol", "carol@example.com")


@pytest_asyncio.fixture
async def test_user_4(test_session) -> User:
    """어느 채팅방에도 참여하지 않은 사용자"""
    return await _create_user(test_session, "Dave", "dave@example.com")


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_user_1(test_user_1) -> dict:
    return auth_headers(test_user_1)


@pytest.fixture
def headers_user_2(test_user_2) -> dict:
    return auth_headers(test_user_2)


@pytest.fixture
def headers_user_3(test_user_3) -> dict:
    return auth_headers(test_user_3)


@pytest.fixture
def headers_user_4(test_user_4) -> dict:
    return auth_headers(test_user_4)


@pytest_asyncio.fixture
async def general_room(test_session, test_user_1, test_user_2, test_user_3) -> Room:
    """사용자 1이 만들고 사용자 2, 3이 참여한 채팅방"""
    return await room_service.create_room(
        test_session,
        creator_id=test_user_1.id,
        name="General",
        participant_ids=[test_user_2.id, test_user_3.id]
    )


@pytest_asyncio.fixture
async def private_room(test_session, test_user_1, test_user_2) -> Room:
    """사용자 1, 2만 참여한 비공개 채팅방"""
    return await room_service.create_room(
        test_session,
        creator_id=test_user_1.id,
        name="Secret",
        participant_ids=[test_user_2.id],
        is_private=True
    )
