import asyncio
import logging
import random
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from .chunking import generate_chunks
from .config import Settings
from .csv_codec import CsvSnapshotWriter
from .models import GenerationResult, Metrics, Product, utc_now
from .store import CatalogStore

logger = logging.getLogger(__name__)

# Percent chance of each event per baseline product; the rest stay unchanged.
P_DELETE = 10
P_UPDATE = 10
P_ADD = 20

DELETE = "delete"
UPDATE = "update"
ADD = "add"
UNCHANGED = "unchanged"


def random_price(rng: random.Random) -> float:
    return round(rng.random() * 1000, 2)


def generate_product(index: int, created_at: datetime, rng: random.Random) -> Product:
    return Product(
        id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
        name=f"Product_{index}",
        price=random_price(rng),
        created_at=created_at,
        updated_at=created_at,
    )


def choose_event(rng: random.Random) -> str:
    roll = rng.random() * 100
    if roll < P_DELETE:
        return DELETE
    if roll < P_DELETE + P_UPDATE:
        return UPDATE
    if roll < P_DELETE + P_UPDATE + P_ADD:
        return ADD
    return UNCHANGED


def plan_update(product: Product, index: int, catalog_size: int, rng: random.Random) -> Tuple[str, List[Product]]:
    """Pick what the desired state holds for ``product``: zero, one or two lines."""
    event = choose_event(rng)
    if event == DELETE:
        return event, []
    if event == UPDATE:
        return event, [product.with_changes(f"Product_{index + catalog_size}", random_price(rng))]
    if event == ADD:
        # keep the original and append a brand new product
        return event, [product, generate_product(index + catalog_size, utc_now(), rng)]
    return event, [product]


def metrics_for(event: str, lines: List[Product]) -> Metrics:
    if event == DELETE:
        return Metrics.deleted()
    if event == ADD:
        return Metrics.added()
    return Metrics.updated() if lines[0].is_modified else Metrics.zero()


class CatalogGenerator:
    """Seeds the store with a baseline catalog and writes a derived desired-state CSV."""

    def __init__(self, store: CatalogStore, settings: Settings, seed: Optional[int] = None):
        self.store = store
        self.settings = settings
        self.seed = seed if seed is not None else settings.seed
        self.rng = random.Random(self.seed)
        self.last_result: Optional[GenerationResult] = None

    async def run(self, catalog_size: Optional[int] = None, csv_path: Optional[str] = None) -> GenerationResult:
        settings = self.settings.model_copy(
            update={"catalog_size": catalog_size if catalog_size is not None else self.settings.catalog_size}
        )
        settings.validate_for_generation()
        size = settings.catalog_size
        path = csv_path or settings.source_path
        started_at = utc_now()

        # Start from an empty store so the generator can be rerun without cleanup.
        await asyncio.to_thread(self.store.clear)

        created_at = utc_now()
        metrics = Metrics.zero()
        step = max(size // 10, 1)
        index = 0
        with CsvSnapshotWriter(path) as writer:
            batches = generate_chunks(size, settings.batch_size, lambda i: generate_product(i, created_at, self.rng))
            async for products in batches:
                await asyncio.to_thread(self.store.insert_many, products)
                for product in products:
                    event, lines = plan_update(product, index, size, self.rng)
                    for line in lines:
                        writer.write(line)
                    metrics.merge(metrics_for(event, lines))
                    if index % step == 0:
                        logger.debug("Processing %d%%...", index * 100 // size)
                    index += 1
            csv_rows = writer.rows_written

        result = GenerationResult(
            started_at=started_at,
            finished_at=utc_now(),
            catalog_size=size,
            csv_path=path,
            csv_rows=csv_rows,
            metrics=metrics,
            seed=self.seed,
        )
        log_metrics(result)
        self.last_result = result
        return result


def log_metrics(result: GenerationResult) -> None:
    size = result.catalog_size
    metrics = result.metrics
    logger.info("%d products inserted in DB.", size)
    logger.info("%d products to be added.", metrics.added_count)
    logger.info("%d products to be updated %.2f%%.", metrics.updated_count, metrics.updated_count * 100 / size)
    logger.info("%d products to be deleted %.2f%%.", metrics.deleted_count, metrics.deleted_count * 100 / size)
