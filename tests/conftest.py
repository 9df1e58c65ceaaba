from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from main import app
from app.api.dependencies import get_salary_service
from app.core.clock import Clock, get_clock
from app.core.database import get_async_session
from app.core.security import create_access_token
from app.models import *  # noqa: F401,F403 - register every table
from app.models.base import Base
from app.models.shared.enums import MaintainerStatus, UserRole
from app.services.salary.salary_service import SalaryService
from app.utils.file_handler import FileUploadService

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FrozenClock(Clock):
    """Clock that only moves when a test moves it"""

    def __init__(self, current: datetime):
        super().__init__()
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 6, 15, 6, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """Two PGs, each with a branch, an admin and one maintainer"""
    pg = PG(name="Sunrise PG", address="12 MG Road", is_active=True)
    other_pg = PG(name="Moonlight PG", address="4 Church Street", is_active=True)
    db_session.add_all([pg, other_pg])
    await db_session.flush()

    branch = Branch(pg_id=pg.id, name="Koramangala", address="80 Feet Road", is_active=True)
    other_branch = Branch(pg_id=other_pg.id, name="Indiranagar", is_active=True)
    db_session.add_all([branch, other_branch])
    await db_session.flush()

    admin = User(email="admin@sunrise.test", full_name="Asha Rao", role=UserRole.ADMIN, pg_id=pg.id, is_active=True)
    other_admin = User(email="admin@moonlight.test", full_name="Meera Iyer", role=UserRole.ADMIN, pg_id=other_pg.id, is_active=True)
    staff_user = User(email="ravi@sunrise.test", full_name="Ravi Kumar", phone="9000000002", role=UserRole.MAINTAINER, pg_id=pg.id, is_active=True)
    other_staff_user = User(email="sam@moonlight.test", full_name="Sam Das", role=UserRole.MAINTAINER, pg_id=other_pg.id, is_active=True)
    db_session.add_all([admin, other_admin, staff_user, other_staff_user])
    await db_session.flush()

    maintainer = Maintainer(user_id=staff_user.id, pg_id=pg.id, specialization=["housekeeping"], status=MaintainerStatus.ACTIVE, branches=[branch])
    other_maintainer = Maintainer(user_id=other_staff_user.id, pg_id=other_pg.id, status=MaintainerStatus.ACTIVE, branches=[other_branch])
    db_session.add_all([maintainer, other_maintainer])
    await db_session.commit()

    return SimpleNamespace(
        pg=pg,
        other_pg=other_pg,
        branch=branch,
        other_branch=other_branch,
        admin=admin,
        other_admin=other_admin,
        staff_user=staff_user,
        maintainer=maintainer,
        other_maintainer=other_maintainer,
    )


@pytest.fixture
async def client(session_maker, clock, upload_dir) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the test database and frozen clock"""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            yield session

    async def override_get_salary_service() -> AsyncGenerator[SalaryService, None]:
        async with session_maker() as session:
            yield SalaryService(session, clock=clock, file_service=FileUploadService(str(upload_dir)))

    app.dependency_overrides[get_async_session] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_salary_service] = override_get_salary_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def _headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def auth_headers(seed) -> dict:
    """Admin of the first PG"""
    return _headers(seed.admin)


@pytest.fixture
def other_auth_headers(seed) -> dict:
    """Admin of the second PG"""
    return _headers(seed.other_admin)


@pytest.fixture
def maintainer_headers(seed) -> dict:
    return _headers(seed.staff_user)
