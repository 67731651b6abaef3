from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    """Current UTC time truncated to the millisecond precision kept in CSV files."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


class Product(BaseModel):
    """A catalog entry, keyed by its opaque ``id``."""

    id: str = Field(min_length=1)
    name: str
    price: float = Field(ge=0)
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        # naive timestamps are read as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def with_changes(self, name: str, price: float) -> "Product":
        """Copy with a new name and price, stamped strictly after creation."""
        updated_at = max(utc_now(), self.created_at + timedelta(milliseconds=1))
        return self.model_copy(update={"name": name, "price": price, "updated_at": updated_at})

    @property
    def is_modified(self) -> bool:
        return self.updated_at != self.created_at


class Metrics(BaseModel):
    """Added/updated/deleted counters folded together with ``merge``."""

    added_count: int = Field(default=0, ge=0)
    updated_count: int = Field(default=0, ge=0)
    deleted_count: int = Field(default=0, ge=0)

    @classmethod
    def zero(cls) -> "Metrics":
        return cls()

    @classmethod
    def added(cls) -> "Metrics":
        return cls(added_count=1)

    @classmethod
    def updated(cls) -> "Metrics":
        return cls(updated_count=1)

    @classmethod
    def deleted(cls) -> "Metrics":
        return cls(deleted_count=1)

    def merge(self, other: "Metrics") -> "Metrics":
        self.added_count += other.added_count
        self.updated_count += other.updated_count
        self.deleted_count += other.deleted_count
        return self


class UpsertResult(BaseModel):
    modified_count: int = 0
    upserted_count: int = 0


class DeleteResult(BaseModel):
    deleted_count: int = 0


class ReconcileResult(BaseModel):
    started_at: datetime
    finished_at: datetime
    source_path: str
    rows_processed: int
    metrics: Metrics


class GenerationResult(BaseModel):
    started_at: datetime
    finished_at: datetime
    catalog_size: int
    csv_path: str
    csv_rows: int
    metrics: Metrics
    seed: Optional[int] = None
