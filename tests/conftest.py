import pytest
from datetime import date, timedelta
from typing import AsyncGenerator, Callable
from httpx import AsyncClient, ASGITransport

from app.main import app
from app.api import deps
from app.core.config import Settings
from app.domain.inventory.repository import InventoryStore, SqlInventoryStore
from app.domain.inventory.service import InventoryCatalog
from app.domain.sales.service import SaleEngine
from app.infrastructure.database import build_engine, build_session_factory, init_db, close_db
from app.infrastructure.json_store import JsonFileInventoryStore


def days_from_today(days: int) -> date:
    return date.today() + timedelta(days=days)


@pytest.fixture(scope="function")
def make_settings() -> Callable[..., Settings]:
    """Build settings isolated from the developer's .env file."""
    def _make(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)
    return _make


@pytest.fixture(scope="function")
def test_settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture(scope="function")
def json_store(tmp_path) -> JsonFileInventoryStore:
    return JsonFileInventoryStore(tmp_path / "data.json")


@pytest.fixture(scope="function")
async def sql_store(tmp_path) -> AsyncGenerator[SqlInventoryStore, None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}")
    await init_db(engine)
    try:
        yield SqlInventoryStore(build_session_factory(engine))
    finally:
        await close_db(engine)


@pytest.fixture(scope="function", params=["json", "database"])
async def store(request, tmp_path) -> AsyncGenerator[InventoryStore, None]:
    """Every store backend, so domain tests run against both."""
    if request.param == "json":
        yield JsonFileInventoryStore(tmp_path / "data.json")
    else:
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'inventory.db'}")
        await init_db(engine)
        try:
            yield SqlInventoryStore(build_session_factory(engine))
        finally:
            await close_db(engine)


@pytest.fixture(scope="function")
def catalog(store: InventoryStore, test_settings: Settings) -> InventoryCatalog:
    return InventoryCatalog(store, test_settings)


@pytest.fixture(scope="function")
def sale_engine(store: InventoryStore, test_settings: Settings) -> SaleEngine:
    return SaleEngine(store, test_settings)


@pytest.fixture(scope="function")
async def client(json_store: JsonFileInventoryStore, test_settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client backed by a temporary inventory file."""
    app.dependency_overrides[deps.get_store] = lambda: json_store
    app.dependency_overrides[deps.get_settings] = lambda: test_settings

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def sample_stock_data() -> dict:
    """Sample add-stock payload."""
    return {
        "name": "Paracetamol",
        "strength": "500mg",
        "quantity": 20,
        "expiryDate": days_from_today(120).isoformat(),
    }


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "sales: mark test as sale engine related"
    )
