from functools import lru_cache
from fastapi import Depends

from app.core.config import Settings, settings
from app.domain.inventory.models import StoreBackend
from app.domain.inventory.repository import InventoryStore, SqlInventoryStore
from app.domain.inventory.service import InventoryCatalog
from app.domain.sales.service import SaleEngine
from app.infrastructure.database import AsyncSessionLocal
from app.infrastructure.json_store import JsonFileInventoryStore


def build_store(config: Settings) -> InventoryStore:
    if config.STORE_BACKEND == StoreBackend.DATABASE:
        return SqlInventoryStore(AsyncSessionLocal)
    return JsonFileInventoryStore(config.INVENTORY_DATA_FILE)


def get_settings() -> Settings:
    return settings


@lru_cache
def get_store() -> InventoryStore:
    # one store per process so its lock serializes every mutation
    return build_store(settings)


def get_catalog(
    store: InventoryStore = Depends(get_store),
    config: Settings = Depends(get_settings),
) -> InventoryCatalog:
    return InventoryCatalog(store, config)


def get_sale_engine(
    store: InventoryStore = Depends(get_store),
    config: Settings = Depends(get_settings),
) -> SaleEngine:
    return SaleEngine(store, config)
