"""Shared pytest fixtures for backend tests."""

import os

# Configure before the application modules read settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("REDIS_ENABLED", "false")

from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import bcrypt
import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from epitrello.database import Base, configure_sqlite_engine, get_db
from epitrello.main import app, build_realtime
from epitrello.models import Board, BoardList, BoardMember, Card, User
from epitrello.services.auth_service import create_access_token
from epitrello.websocket import BoardRealtime, WebSocketConnection


def get_test_password_hash(password: str) -> str:
    """Generate a bcrypt hash for testing."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest_asyncio.fixture
async def engine(tmp_path):
    """A file-backed SQLite engine per test, so savepoints behave like production."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    configure_sqlite_engine(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Session used by tests to seed and inspect data."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def realtime() -> BoardRealtime:
    """A fresh realtime gateway with local delivery only."""
    gateway = build_realtime()
    previous = app.state.realtime
    app.state.realtime = gateway
    yield gateway
    app.state.realtime = previous


@pytest_asyncio.fixture
async def client(session_maker, realtime) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client over ASGI with one database session per request."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, username: str) -> User:
    user = User(
        id=uuid4(),
        username=username,
        email=f"{username}@example.com",
        password_hash=get_test_password_hash("TestPassword123!"),
    )
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """The board owner in most tests."""
    return await _create_user(db_session, "alice")


@pytest_asyncio.fixture
async def test_user_2(db_session: AsyncSession) -> User:
    """A second user, not a member of anything by default."""
    return await _create_user(db_session, "bob")


@pytest_asyncio.fixture
async def test_user_3(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "carol")


def token_for(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "email": user.email})


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    return headers_for(test_user)


@pytest.fixture
def auth_headers_2(test_user_2: User) -> dict:
    return headers_for(test_user_2)


@pytest_asyncio.fixture
async def test_board(db_session: AsyncSession, test_user: User) -> Board:
    """A board owned by test_user with no members."""
    board = Board(id=uuid4(), title="Roadmap", description="", owner_id=test_user.id)
    db_session.add(board)
    await db_session.commit()
    return board


async def add_member(db: AsyncSession, board: Board, user: User, role: str) -> BoardMember:
    member = BoardMember(board_id=board.id, user_id=user.id, role=role)
    db.add(member)
    await db.commit()
    return member


async def create_list(db: AsyncSession, board: Board, title: str, position: int) -> BoardList:
    board_list = BoardList(id=uuid4(), board_id=board.id, title=title, position=position)
    db.add(board_list)
    await db.commit()
    return board_list


async def create_cards(db: AsyncSession, board_list: BoardList, titles: list[str]) -> list[Card]:
    cards = [
        Card(id=uuid4(), list_id=board_list.id, title=title, position=index)
        for index, title in enumerate(titles)
    ]
    db.add_all(cards)
    await db.commit()
    return cards


@pytest_asyncio.fixture
async def test_lists(db_session: AsyncSession, test_board: Board) -> list[BoardList]:
    """Three lists at positions 0, 1, 2."""
    return [
        await create_list(db_session, test_board, title, index)
        for index, title in enumerate(["To do", "Doing", "Done"])
    ]


def make_websocket() -> MagicMock:
    websocket = MagicMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


def make_connection(user_id=None, username: str = "user") -> WebSocketConnection:
    """A registered-looking connection backed by a mock websocket."""
    return WebSocketConnection(websocket=make_websocket(), user_id=user_id or uuid4(), username=username)


def sent_messages(connection: WebSocketConnection) -> list[dict]:
    return [call.args[0] for call in connection.websocket.send_json.call_args_list]


def sent_types(connection: WebSocketConnection) -> list[str]:
    return [message["type"] for message in sent_messages(connection)]
