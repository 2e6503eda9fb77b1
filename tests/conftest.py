import os

# Must be set before forge.config is imported anywhere
os.environ["DB_URL"] = "sqlite+aiosqlite://"
os.environ["LLM_MAX_RETRIES"] = "1"
os.environ["LOG_FORMAT"] = "text"
os.environ["OCR_ENABLED"] = "false"

from datetime import date  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from forge import models  # noqa: E402
from forge.api import app  # noqa: E402
from forge.db import get_session  # noqa: E402
from forge.deps import get_llm  # noqa: E402
from tests.stubs import StubLLM  # noqa: E402


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as session:
        yield session


@pytest_asyncio.fixture
async def user(session):
    user = models.User(email="ada@example.com", full_name="Ada Lovelace", location="London")
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def other_user(session):
    user = models.User(email="grace@example.com", full_name="Grace Hopper")
    session.add(user)
    await session.commit()
    return user


@pytest_asyncio.fixture
async def work_history(session, user):
    record = models.WorkHistory(
        user_id=user.id,
        company_name="Acme Corp",
        job_title="Backend Engineer",
        start_date=date(2020, 3, 1),
        end_date=date(2023, 6, 30),
        achievements=[
            models.WorkAchievement(description="Built payment APIs in Python"),
            models.WorkAchievement(description="Reduced deployment time by 50%"),
        ],
    )
    session.add(record)
    await session.commit()
    return record


@pytest.fixture
def stub_llm():
    return StubLLM()


@pytest_asyncio.fixture
async def client(engine, stub_llm):
    maker = async_sessionmaker(engine, expire_on_commit=False)

    async def override_session():
        async with maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_llm] = lambda: stub_llm
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
