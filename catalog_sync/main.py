import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .errors import CatalogSyncError, ConfigurationError, SourceReadError
from .generator import CatalogGenerator
from .reconcile import CatalogReconciler
from .store import create_store


class GeneratePayload(BaseModel):
    size: int = Field(ge=1)
    seed: Optional[int] = None


@dataclass
class ApiError:
    code: str
    message: str
    details: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


def _details_for(exc: CatalogSyncError) -> Optional[dict[str, Any]]:
    if isinstance(exc, SourceReadError):
        return {key: value for key, value in {"path": exc.path, "line": exc.line}.items() if value is not None}
    return None


def _status_for(exc: CatalogSyncError) -> int:
    if isinstance(exc, (ConfigurationError, SourceReadError)):
        return 400
    return 503


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the HTTP app around one store; serve with ``uvicorn --factory``."""
    settings = settings or get_settings()
    settings.validate_for_reconcile()

    store = create_store(settings.store_backend, settings.store_path)
    reconciler = CatalogReconciler(store, settings)
    last_generation: dict[str, Any] = {"result": None}
    # generate and reconcile share the store and the CSV, so they never overlap
    run_lock = asyncio.Lock()

    app = FastAPI(
        title="Catalog Sync",
        version="0.1.0",
        description="Synchronizes a product catalog store with a CSV desired-state snapshot.",
    )
    app.state.store = store
    app.state.reconciler = reconciler

    @app.exception_handler(CatalogSyncError)
    def catalog_sync_exception_handler(_: Request, exc: CatalogSyncError) -> JSONResponse:
        error = ApiError(code=type(exc).__name__, message=str(exc), details=_details_for(exc))
        return JSONResponse(status_code=_status_for(exc), content=error.to_dict())

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get("/catalog/stats")
    async def catalog_stats() -> dict:
        return {"backend": settings.store_backend, "products": store.count()}

    @app.get("/catalog/snapshot")
    async def catalog_snapshot(limit: int = Query(default=20, ge=1, le=500)) -> dict:
        return {"products": store.snapshot(limit)}

    @app.post("/catalog/generate")
    async def catalog_generate(payload: GeneratePayload) -> dict:
        generator = CatalogGenerator(store, settings, seed=payload.seed)
        async with run_lock:
            result = await generator.run(payload.size)
        last_generation["result"] = result
        return {"status": "completed", "result": result}

    @app.post("/catalog/reconcile")
    async def catalog_reconcile() -> dict:
        async with run_lock:
            result = await reconciler.run()
        return {"status": "completed", "result": result}

    @app.get("/catalog/last-run")
    async def catalog_last_run() -> dict:
        return {"reconcile": reconciler.last_result, "generate": last_generation["result"]}

    return app
