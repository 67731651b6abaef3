import logging
import os
import sqlite3
from datetime import datetime
from typing import Dict, Iterable, List, Protocol, Sequence, Set

from .errors import StoreReadError, StoreWriteError
from .models import DeleteResult, Product, UpsertResult

logger = logging.getLogger(__name__)

# Stays below SQLite's historical limit of 999 bound parameters per statement.
SQLITE_MAX_VARIABLES = 500


class CatalogStore(Protocol):
    def bulk_upsert(self, products: Sequence[Product]) -> UpsertResult:
        ...

    def insert_many(self, products: Sequence[Product]) -> int:
        ...

    def fetch_all_ids(self) -> Set[str]:
        ...

    def delete_by_ids(self, ids: Sequence[str]) -> DeleteResult:
        ...

    def count(self) -> int:
        ...

    def snapshot(self, limit: int = 50) -> List[Product]:
        ...

    def clear(self) -> None:
        ...

    def close(self) -> None:
        ...

class InMemoryCatalogStore:
    """Dictionary-backed product store."""

    def __init__(self) -> None:
        self.products: Dict[str, Product] = {}

    def bulk_upsert(self, products: Sequence[Product]) -> UpsertResult:
        result = UpsertResult()
        for product in products:
            existing = self.products.get(product.id)
            if existing is None:
                result.upserted_count += 1
            elif existing != product:
                result.modified_count += 1
            else:
                continue
            self.products[product.id] = product
        return result

    def insert_many(self, products: Sequence[Product]) -> int:
        for product in products:
            if product.id in self.products:
                raise StoreWriteError(f"Duplicate product id '{product.id}'")
        for product in products:
            self.products[product.id] = product
        return len(products)

    def fetch_all_ids(self) -> Set[str]:
        return set(self.products)

    def delete_by_ids(self, ids: Sequence[str]) -> DeleteResult:
        deleted = 0
        for product_id in ids:
            if self.products.pop(product_id, None) is not None:
                deleted += 1
        return DeleteResult(deleted_count=deleted)

    def count(self) -> int:
        return len(self.products)

    def snapshot(self, limit: int = 50) -> List[Product]:
        return [self.products[key] for key in sorted(self.products)[:limit]]

    def clear(self) -> None:
        self.products.clear()

    def close(self) -> None:
        pass


def _batched(values: Sequence[str], size: int = SQLITE_MAX_VARIABLES) -> Iterable[Sequence[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


class SQLiteCatalogStore:
    """SQLite-backed product store standing in for a document collection."""

    table = "products"

    def __init__(self, db_path: str):
        if db_path != ":memory:":
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_table()

    def _init_table(self) -> None:
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                price REAL NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )
        self.conn.commit()

    @staticmethod
    def _to_params(product: Product) -> tuple:
        return (
            product.id,
            product.name,
            product.price,
            product.created_at.isoformat(timespec="milliseconds"),
            product.updated_at.isoformat(timespec="milliseconds"),
        )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Product:
        return Product(
            id=row["id"],
            name=row["name"],
            price=row["price"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _existing_rows(self, ids: Sequence[str]) -> Dict[str, tuple]:
        existing: Dict[str, tuple] = {}
        for batch in _batched(ids):
            placeholders = ",".join("?" for _ in batch)
            rows = self.conn.execute(
                f"SELECT id, name, price, created_at, updated_at FROM {self.table} WHERE id IN ({placeholders})",
                tuple(batch),
            ).fetchall()
            for row in rows:
                existing[row["id"]] = tuple(row)
        return existing

    def bulk_upsert(self, products: Sequence[Product]) -> UpsertResult:
        result = UpsertResult()
        try:
            existing = self._existing_rows(list(dict.fromkeys(p.id for p in products)))
            for product in products:
                params = self._to_params(product)
                current = existing.get(product.id)
                if current is None:
                    self.conn.execute(
                        f"""
                        INSERT INTO {self.table} (id, name, price, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        params,
                    )
                    result.upserted_count += 1
                elif current != params:
                    self.conn.execute(
                        f"UPDATE {self.table} SET name = ?, price = ?, created_at = ?, updated_at = ? WHERE id = ?",
                        params[1:] + params[:1],
                    )
                    result.modified_count += 1
                else:
                    continue
                existing[product.id] = params
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreWriteError(f"Bulk upsert of {len(products)} products failed: {exc}") from exc
        return result

    def insert_many(self, products: Sequence[Product]) -> int:
        try:
            self.conn.executemany(
                f"""
                INSERT INTO {self.table} (id, name, price, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [self._to_params(product) for product in products],
            )
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreWriteError(f"Insert of {len(products)} products failed: {exc}") from exc
        return len(products)

    def fetch_all_ids(self) -> Set[str]:
        try:
            rows = self.conn.execute(f"SELECT id FROM {self.table}").fetchall()
        except sqlite3.Error as exc:
            raise StoreReadError(f"Fetching product ids failed: {exc}") from exc
        return {row["id"] for row in rows}

    def delete_by_ids(self, ids: Sequence[str]) -> DeleteResult:
        deleted = 0
        try:
            for batch in _batched(list(ids)):
                placeholders = ",".join("?" for _ in batch)
                cursor = self.conn.execute(
                    f"DELETE FROM {self.table} WHERE id IN ({placeholders})", tuple(batch)
                )
                deleted += cursor.rowcount
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreWriteError(f"Deleting {len(ids)} products failed: {exc}") from exc
        return DeleteResult(deleted_count=deleted)

    def count(self) -> int:
        try:
            row = self.conn.execute(f"SELECT COUNT(*) as c FROM {self.table}").fetchone()
        except sqlite3.Error as exc:
            raise StoreReadError(f"Counting products failed: {exc}") from exc
        return row["c"]

    def snapshot(self, limit: int = 50) -> List[Product]:
        try:
            rows = self.conn.execute(
                f"""
                SELECT id, name, price, created_at, updated_at
                FROM {self.table}
                ORDER BY id
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise StoreReadError(f"Listing products failed: {exc}") from exc
        return [self._from_row(row) for row in rows]

    def clear(self) -> None:
        try:
            self.conn.execute(f"DELETE FROM {self.table}")
            self.conn.commit()
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreWriteError(f"Clearing products failed: {exc}") from exc

    def close(self) -> None:
        self.conn.close()


def create_store(backend: str, path: str) -> CatalogStore:
    backend = backend.lower()
    if backend == "sqlite":
        logger.debug("Opening SQLite catalog store at %s", path)
        return SQLiteCatalogStore(path)
    return InMemoryCatalogStore()
