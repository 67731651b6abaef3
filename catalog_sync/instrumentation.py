import logging
import time
import tracemalloc
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


@contextmanager
def track(label: str) -> Iterator[None]:
    """Log wall time and peak traced memory of the wrapped block."""
    started_tracing = not tracemalloc.is_tracing()
    if started_tracing:
        tracemalloc.start()
    tracemalloc.reset_peak()
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        _, peak = tracemalloc.get_traced_memory()
        if started_tracing:
            tracemalloc.stop()
        logger.info("%s took %.3fs", label, elapsed)
        logger.info("%s peak memory %.2f MiB", label, peak / (1024 * 1024))
