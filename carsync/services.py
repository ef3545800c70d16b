# carsync/services.py
from typing import Dict, Iterable, Optional

from pydantic import ValidationError

from .browser import PlaywrightRenderer
from .config import cookies_file, data_file, load_config
from .crawler import CrawlController, CrawlReport
from .db import SessionLocal, init_db
from .exceptions import ConfigurationError
from .reconcile import ReconcileResult, reconcile
from .schemas import PartialRecord
from .storage import DatabaseStore, JsonFileStore, ListingStore, from_legacy
from .utils import logger


def make_store(kind: str = "db", path: Optional[str] = None) -> ListingStore:
    if kind == "json":
        return JsonFileStore(path or data_file())
    if kind == "db":
        init_db()
        return DatabaseStore(SessionLocal)
    raise ConfigurationError(f"unknown store {kind!r}; expected 'json' or 'db'")


def run_crawl(site: str, store: Optional[ListingStore] = None, renderer=None,
              stop_event=None, **overrides) -> CrawlReport:
    config = load_config(site, **overrides)
    store = store or make_store("db")
    owns_renderer = renderer is None
    if owns_renderer:
        renderer = PlaywrightRenderer.from_config(config, cookies_file=cookies_file()).start()
    logger.info("Starting %s crawl (max %d pages)", config.site.source.value, config.max_pages)
    try:
        controller = CrawlController(config, renderer, store, stop_event=stop_event)
        return controller.run()
    finally:
        if owns_renderer:
            renderer.close()


def ingest_listings(store: ListingStore, payloads: Iterable[Dict]) -> ReconcileResult:
    # Basic normalization/validation
    records = []
    for payload in payloads:
        try:
            records.append(PartialRecord.model_validate(from_legacy(dict(payload))))
        except ValidationError as e:
            raise ValueError(f"invalid listing payload: {e}") from e
    result = reconcile(store.read_all(), records)
    store.commit(result)
    logger.info("Ingested %d listing(s): %d added, %d updated", len(records), result.added, result.updated)
    return result
