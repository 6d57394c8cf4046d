# tests/conftest.py
import pytest
from httpx import AsyncClient, ASGITransport
from asgi_lifespan import LifespanManager

from hopelink.core.config import Settings
from hopelink.deps import get_matcher, get_repo
from hopelink.main import app
from hopelink.matching.matcher import IntelligentMatcher
from hopelink.repos.inmemory import InMemoryRepo

class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

@pytest.fixture(scope="session")
def anyio_backend():
    # keep AnyIO on asyncio for the whole test session
    return "asyncio"

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def repo():
    return InMemoryRepo()

@pytest.fixture
def matcher(repo, clock):
    return IntelligentMatcher(repo, Settings(max_concurrency=4), clock=clock)

@pytest.fixture
async def test_client(repo, matcher):
    app.dependency_overrides[get_repo] = lambda: repo
    app.dependency_overrides[get_matcher] = lambda: matcher
    async with LifespanManager(app):
        transport = ASGITransport(app=app, raise_app_exceptions=True)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()
