"""Converge the product store to a desired-state snapshot.

A run moves through three strictly sequential phases:

1. upsert every desired-state batch, counting what the store reports as
   modified or inserted;
2. once the desired state is exhausted, fetch the store's identifiers and
   diff them against the desired identifiers;
3. delete the difference batch by batch.

Any store failure aborts the run. Batches committed before the failure stay
committed; rerunning is safe because upserts and set-difference deletes are
idempotent.
"""

import asyncio
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple

from .chunking import iter_chunks
from .config import Settings
from .csv_codec import read_snapshot
from .models import Metrics, Product, ReconcileResult, utc_now
from .store import CatalogStore

logger = logging.getLogger(__name__)


def progress_scale(store_size: int) -> int:
    """Smallest power of ten not below ``store_size``."""
    scale = 1
    while scale < store_size:
        scale *= 10
    return scale


def deletion_set(store_ids: Iterable[str], desired_ids: Iterable[str]) -> List[str]:
    """Identifiers present in the store but absent from the desired state, sorted."""
    return sorted(set(store_ids) - set(desired_ids))


class CatalogReconciler:
    """Applies CSV snapshots to a catalog store."""

    def __init__(self, store: CatalogStore, settings: Settings):
        self.store = store
        self.settings = settings
        self.last_result: Optional[ReconcileResult] = None

    async def run(self, source_path: Optional[str] = None) -> ReconcileResult:
        self.settings.validate_for_reconcile()
        path = source_path or self.settings.source_path
        started_at = utc_now()

        rows, metrics = await self.apply(read_snapshot(path))

        result = ReconcileResult(
            started_at=started_at,
            finished_at=utc_now(),
            source_path=path,
            rows_processed=rows,
            metrics=metrics,
        )
        log_summary(result)
        self.last_result = result
        return result

    async def apply(self, desired: Iterable[Product]) -> Tuple[int, Metrics]:
        """Reconcile the store against ``desired``; returns rows processed and metrics."""
        batch_size = self.settings.batch_size
        metrics = Metrics.zero()

        store_size = await asyncio.to_thread(self.store.count)
        step = max(progress_scale(store_size) // 10, 1)

        desired_ids: Set[str] = set()
        rows = 0
        async for products in iter_chunks(desired, batch_size):
            outcome = await asyncio.to_thread(self.store.bulk_upsert, products)
            metrics.merge(Metrics(added_count=outcome.upserted_count, updated_count=outcome.modified_count))
            crossed = rows // step
            for product in products:
                desired_ids.add(product.id)
                rows += 1
            # at most one line per batch, however small the step
            if rows // step > crossed:
                logger.debug("Processed %d rows...", rows)

        store_ids = await asyncio.to_thread(self.store.fetch_all_ids)
        to_delete = deletion_set(store_ids, desired_ids)
        logger.debug("%d products absent from the snapshot", len(to_delete))

        async for ids in iter_chunks(to_delete, batch_size):
            outcome = await asyncio.to_thread(self.store.delete_by_ids, ids)
            metrics.deleted_count += outcome.deleted_count

        return rows, metrics


def log_summary(result: ReconcileResult) -> None:
    metrics = result.metrics
    logger.info("Processed %d CSV rows.", result.rows_processed)
    logger.info("Added %d new products.", metrics.added_count)
    logger.info("Updated %d existing products.", metrics.updated_count)
    logger.info("Deleted %d products.", metrics.deleted_count)
    logger.debug("Reconciliation took %s", _elapsed(result.started_at, result.finished_at))


def _elapsed(started_at: datetime, finished_at: datetime) -> str:
    return f"{(finished_at - started_at).total_seconds():.3f}s"
