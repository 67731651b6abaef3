from __future__ import annotations

import argparse
import asyncio
import logging

from pydantic import ValidationError

from .config import Settings, get_settings
from .errors import CatalogSyncError, ConfigurationError
from .generator import CatalogGenerator
from .instrumentation import track
from .models import GenerationResult, ReconcileResult
from .reconcile import CatalogReconciler
from .store import create_store

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(levelname)s] %(message)s"


def load_settings(overrides: dict) -> Settings:
    try:
        settings = get_settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc
    return settings.model_copy(update=overrides)


def generate(settings: Settings) -> GenerationResult:
    settings.validate_for_generation()
    store = create_store(settings.store_backend, settings.store_path)
    try:
        with track("Generate dataset"):
            return asyncio.run(CatalogGenerator(store, settings).run())
    finally:
        store.close()


def update(settings: Settings) -> ReconcileResult:
    settings.validate_for_reconcile()
    store = create_store(settings.store_backend, settings.store_path)
    try:
        with track("Update dataset"):
            return asyncio.run(CatalogReconciler(store, settings).run())
    finally:
        store.close()


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--csv", dest="source_path", help="Path to the desired-state CSV")
    parser.add_argument("--store-path", dest="store_path", help="SQLite database path")
    parser.add_argument("--backend", dest="store_backend", choices=["sqlite", "memory"])
    parser.add_argument("--batch-size", dest="batch_size", type=int)
    parser.add_argument("--log-level", dest="log_level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Product catalog CSV synchronization")
    commands = parser.add_subparsers(dest="command", required=True)

    generate_parser = commands.add_parser("generate", help="Seed the store and write an updated-catalog CSV")
    generate_parser.add_argument("--size", dest="catalog_size", type=int, help="Number of baseline products")
    generate_parser.add_argument("--seed", dest="seed", type=int, help="Random seed for reproducible output")
    _add_common_arguments(generate_parser)
    generate_parser.set_defaults(handler=generate)

    update_parser = commands.add_parser("update", help="Apply the CSV snapshot to the store")
    _add_common_arguments(update_parser)
    update_parser.set_defaults(handler=update)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {
        key: value
        for key, value in vars(args).items()
        if key not in {"command", "handler"} and value is not None
    }
    try:
        settings = load_settings(overrides)
        logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
        args.handler(settings)
    except CatalogSyncError as exc:
        logging.basicConfig(format=LOG_FORMAT)
        logger.error("FAIL")
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    logger.info("SUCCESS")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
