import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from catalog_sync.config import Settings
from catalog_sync.main import create_app
from catalog_sync.models import GenerationResult, ReconcileResult


@pytest.fixture()
def client(tmp_path):
    settings = Settings(
        store_backend="memory",
        source_path=str(tmp_path / "updated-catalog.csv"),
        batch_size=50,
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_generate_then_reconcile(client):
    response = client.post("/catalog/generate", json={"size": 100, "seed": 7})
    assert response.status_code == 200
    generated = response.json()["result"]
    assert generated["catalog_size"] == 100
    assert client.get("/catalog/stats").json()["products"] == 100

    response = client.post("/catalog/reconcile")
    assert response.status_code == 200
    reconciled = response.json()["result"]
    assert reconciled["metrics"] == generated["metrics"]
    assert reconciled["rows_processed"] == generated["csv_rows"]
    assert client.get("/catalog/stats").json()["products"] == generated["csv_rows"]

    last_run = client.get("/catalog/last-run").json()
    assert last_run["reconcile"]["metrics"] == reconciled["metrics"]
    assert last_run["generate"]["seed"] == 7


def test_snapshot_is_limited(client):
    client.post("/catalog/generate", json={"size": 30, "seed": 1})

    response = client.get("/catalog/snapshot", params={"limit": 5})

    assert response.status_code == 200
    products = response.json()["products"]
    assert len(products) == 5
    assert [product["id"] for product in products] == sorted(product["id"] for product in products)


def test_reconcile_without_snapshot_is_reported(client, tmp_path):
    response = client.post("/catalog/reconcile")

    assert response.status_code == 400
    assert response.json()["code"] == "SourceReadError"
    assert response.json()["details"] == {"path": str(tmp_path / "updated-catalog.csv")}
    assert client.get("/catalog/last-run").json()["reconcile"] is None


def test_generate_rejects_invalid_size(client):
    assert client.post("/catalog/generate", json={"size": 0}).status_code == 422


def test_generate_and_reconcile_never_overlap(tmp_path):
    settings = Settings(
        store_backend="memory",
        source_path=str(tmp_path / "updated-catalog.csv"),
        batch_size=50,
    )
    app = create_app(settings)

    async def scenario():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://catalog") as client:
            await client.post("/catalog/generate", json={"size": 3000, "seed": 1})
            reconciled, generated = await asyncio.gather(
                client.post("/catalog/reconcile"),
                client.post("/catalog/generate", json={"size": 3000, "seed": 2}),
            )
            stats = await client.get("/catalog/stats")
            return reconciled, generated, stats.json()

    reconciled, generated, stats = asyncio.run(scenario())

    assert reconciled.status_code == 200
    assert generated.status_code == 200
    reconcile_run = ReconcileResult.model_validate(reconciled.json()["result"])
    generate_run = GenerationResult.model_validate(generated.json()["result"])
    assert (
        reconcile_run.finished_at <= generate_run.started_at
        or generate_run.finished_at <= reconcile_run.started_at
    )
    assert stats["products"] in {3000, generate_run.csv_rows}
