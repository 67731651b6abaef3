from datetime import datetime, timezone

import pytest

from catalog_sync.config import Settings
from catalog_sync.models import Product
from catalog_sync.store import InMemoryCatalogStore, SQLiteCatalogStore

CREATED_AT = datetime(2026, 1, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def make_product():
    def _make(product_id: str, name: str | None = None, price: float = 10.0, updated_at: datetime | None = None) -> Product:
        return Product(
            id=product_id,
            name=name or f"Product_{product_id}",
            price=price,
            created_at=CREATED_AT,
            updated_at=updated_at or CREATED_AT,
        )

    return _make


@pytest.fixture()
def sqlite_store(tmp_path):
    store = SQLiteCatalogStore(str(tmp_path / "catalog.db"))
    try:
        yield store
    finally:
        store.close()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryCatalogStore()
        return
    sqlite = SQLiteCatalogStore(str(tmp_path / "catalog.db"))
    try:
        yield sqlite
    finally:
        sqlite.close()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        store_backend="memory",
        store_path=str(tmp_path / "catalog.db"),
        source_path=str(tmp_path / "updated-catalog.csv"),
        batch_size=2,
    )
