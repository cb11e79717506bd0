from typing import AsyncIterator

from databases import Database
from httpx import ASGITransport, AsyncClient
import pytest
import pytest_asyncio

from app.app import create_app
from app.config import Config
from cooksmart.repository import PreferencesRepository
from fakes import HERB_CHICKEN, FakeProvider, completion, split_text


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(completion(split_text(HERB_CHICKEN)))


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        _env_file=None,  # pyright: ignore[reportCallIssue]
        db_url=f"sqlite+aiosqlite:///{tmp_path / 'cooksmart.db'}",
        stream_idle_timeout=1.0,
    )


@pytest_asyncio.fixture
async def repo(config: Config) -> AsyncIterator[PreferencesRepository]:
    repo = PreferencesRepository(Database(config.db_url))
    await repo.connect()
    yield repo
    await repo.disconnect()


@pytest_asyncio.fixture
async def async_client(
    config: Config, provider: FakeProvider, repo: PreferencesRepository
) -> AsyncIterator[AsyncClient]:
    app = create_app(config, provider=provider, repo=repo)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
