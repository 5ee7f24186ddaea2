import os
import tempfile
from datetime import timedelta

# Point the module-level engine at a throwaway database before the app is imported.
_test_tmp_dir = tempfile.mkdtemp(prefix="sessions_test_")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_test_tmp_dir}/app.db")
os.environ.setdefault("ACCESS_TOKEN_SECRET", "test-access-secret-do-not-use-in-production")
os.environ.setdefault("REFRESH_TOKEN_SECRET", "test-refresh-secret-do-not-use-in-production")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from app.core.database import get_db  # noqa: E402
from app.core.security import TokenIssuer, TokenSigner, get_token_issuer  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models import Base, DeviceSession  # noqa: E402
from app.services import user_service  # noqa: E402

PASSWORD = "Sup3r-secret!"


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def issuer():
    return TokenIssuer(
        access_signer=TokenSigner(secret="access-test-secret", ttl=timedelta(minutes=5)),
        refresh_signer=TokenSigner(secret="refresh-test-secret", ttl=timedelta(hours=1)),
    )


async def _create_user(session_factory, login: str, email: str):
    async with session_factory() as session:
        user = await user_service.create_user(login, email, PASSWORD, session)
        await session.commit()
    return user


@pytest.fixture
async def user(session_factory):
    return await _create_user(session_factory, "alice", "alice@example.com")


@pytest.fixture
async def other_user(session_factory):
    return await _create_user(session_factory, "bob", "bob@example.com")


@pytest.fixture
def fetch_session(session_factory):
    """Read a device session row straight from the DB, deleted or not."""

    async def _fetch(device_id: str) -> DeviceSession:
        async with session_factory() as session:
            result = await session.execute(
                select(DeviceSession).where(DeviceSession.device_id == device_id)
            )
            return result.scalar_one()

    return _fetch


@pytest.fixture
def app(session_factory, issuer):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_issuer] = lambda: issuer
    return app


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://testserver") as client:
        yield client
