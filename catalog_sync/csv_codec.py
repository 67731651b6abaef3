"""CSV interchange format shared by the generator and the reconciler.

One header row (``id,name,price,createdAt,updatedAt``) followed by one
product per line. Values are never quoted or escaped, so a field holding
the delimiter cannot be written. A trailing blank line marks the end of
data.
"""

import csv
import logging
from pathlib import Path
from typing import Iterator, List, Sequence

from pydantic import ValidationError

from .errors import SourceReadError
from .models import Product

logger = logging.getLogger(__name__)

CSV_FIELDS = ("id", "name", "price", "createdAt", "updatedAt")


class CatalogDialect(csv.Dialect):
    delimiter = ","
    quotechar = None
    escapechar = None
    doublequote = False
    skipinitialspace = False
    lineterminator = "\n"
    quoting = csv.QUOTE_NONE


def encode_row(product: Product) -> List[str]:
    return [
        product.id,
        product.name,
        f"{product.price:.2f}",
        product.created_at.isoformat(timespec="milliseconds"),
        product.updated_at.isoformat(timespec="milliseconds"),
    ]


def decode_row(values: Sequence[str]) -> Product:
    if len(values) != len(CSV_FIELDS):
        raise ValueError(f"expected {len(CSV_FIELDS)} fields, got {len(values)}")
    record_id, name, price, created_at, updated_at = values
    return Product(
        id=record_id,
        name=name,
        price=price,
        created_at=created_at,
        updated_at=updated_at,
    )


class CsvSnapshotWriter:
    """Writes the header on open, then one line per product."""

    def __init__(self, path: str):
        self.path = path
        self.rows_written = 0
        self._handle = None
        self._writer = None

    def __enter__(self) -> "CsvSnapshotWriter":
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self.path, "w", encoding="utf-8", newline="")
        except OSError as exc:
            raise SourceReadError(f"cannot open for writing: {exc}", path=self.path) from exc
        self._writer = csv.writer(self._handle, dialect=CatalogDialect)
        self._writer.writerow(CSV_FIELDS)
        return self

    def write(self, product: Product) -> None:
        try:
            self._writer.writerow(encode_row(product))
        except csv.Error as exc:
            raise SourceReadError(
                f"product {product.id} cannot be encoded: {exc}", path=self.path, line=self.rows_written + 2
            ) from exc
        self.rows_written += 1

    def __exit__(self, *exc_info) -> None:
        self._handle.close()


def read_snapshot(path: str) -> Iterator[Product]:
    """Lazily yield products from a CSV snapshot, failing on the first bad row."""
    try:
        handle = open(path, "r", encoding="utf-8", newline="")
    except OSError as exc:
        raise SourceReadError(f"cannot open snapshot: {exc}", path=path) from exc

    logger.debug("Reading snapshot from %s", path)
    with handle:
        reader = csv.reader(handle, dialect=CatalogDialect)
        try:
            header = next(reader, None)
            if header is None or tuple(header) != CSV_FIELDS:
                raise SourceReadError(
                    f"unexpected header {header!r}, expected {','.join(CSV_FIELDS)}", path=path, line=1
                )
            for values in reader:
                if not values:
                    continue
                try:
                    yield decode_row(values)
                except (ValueError, ValidationError) as exc:
                    raise SourceReadError(f"malformed row: {exc}", path=path, line=reader.line_num) from exc
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise SourceReadError(f"cannot read snapshot: {exc}", path=path, line=reader.line_num) from exc
