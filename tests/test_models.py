from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from catalog_sync.models import Metrics, Product, utc_now


def test_metrics_constructors():
    assert Metrics.zero() == Metrics(added_count=0, updated_count=0, deleted_count=0)
    assert Metrics.added() == Metrics(added_count=1)
    assert Metrics.updated() == Metrics(updated_count=1)
    assert Metrics.deleted() == Metrics(deleted_count=1)


def test_metrics_merge_sums_counters_in_place():
    total = Metrics.zero()
    for outcome in [Metrics.added(), Metrics.updated(), Metrics.updated(), Metrics.deleted(), Metrics.zero()]:
        total.merge(outcome)

    assert total == Metrics(added_count=1, updated_count=2, deleted_count=1)
    assert total.merge(Metrics(added_count=3)) is total
    assert total.added_count == 4


def test_product_rejects_negative_price(make_product):
    with pytest.raises(ValidationError):
        make_product("a", price=-0.01)


def test_product_rejects_empty_id():
    now = utc_now()
    with pytest.raises(ValidationError):
        Product(id="", name="x", price=1, created_at=now, updated_at=now)


def test_unmodified_product_has_matching_timestamps(make_product):
    assert not make_product("a").is_modified


def test_with_changes_stamps_a_later_update():
    now = utc_now()
    product = Product(id="a", name="Product_1", price=1.5, created_at=now, updated_at=now)

    changed = product.with_changes("Product_11", 2.25)

    assert changed.id == product.id
    assert changed.created_at == product.created_at
    assert changed.updated_at > product.created_at
    assert changed.is_modified
    assert (changed.name, changed.price) == ("Product_11", 2.25)


def test_utc_now_keeps_millisecond_precision():
    assert utc_now().microsecond % 1000 == 0


def test_timestamps_are_normalised_to_utc():
    product = Product(
        id="a",
        name="x",
        price=1,
        created_at="2026-01-01T11:30:00.000+02:00",
        updated_at="2026-01-01T09:30:00.000",
    )

    assert product.created_at == datetime(2026, 1, 1, 9, 30, tzinfo=timezone.utc)
    assert product.created_at.utcoffset() == timedelta(0)
    assert product.updated_at.tzinfo is not None
    assert not product.is_modified
