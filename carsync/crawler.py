# carsync/crawler.py
"""Crawl controller: paginate, extract, reconcile, checkpoint.

Every index page's batch is merged into the store before the next index
page is fetched, so a crash loses at most one page of work. On a fatal
error the records collected so far are salvaged once before the error is
re-raised as ``FatalCrawlError``.
"""
import time
from dataclasses import asdict, dataclass
from typing import List, Optional, Set

from .browser import Renderer, evaluate
from .exceptions import ExtractionFailed, FatalCrawlError, FetchError, StoreError
from .extract import Extractor
from .identity import identity, native_id_from_url, record_identity
from .paginator import IndexPaginator, LinkFinder
from .reconcile import ReconcileResult, reconcile
from .schemas import PartialRecord
from .storage import ListingStore
from .utils import logger, retry

_PAGINATION_REASONS = {
    "empty_page": "exhausted",
    "page_ceiling": "page_ceiling",
    "loop_detected": "loop_detected",
}


@dataclass
class CrawlReport:
    site: str
    pages_visited: int = 0
    added: int = 0
    updated: int = 0
    skipped_known: int = 0
    failed: int = 0
    reason: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self):
        return asdict(self)


class CrawlController:
    def __init__(self, config, renderer: Renderer, store: ListingStore,
                 extractor: Optional[Extractor] = None, link_finder: Optional[LinkFinder] = None,
                 stop_event=None, sleep=time.sleep):
        self.config = config
        self.site = config.site
        self.renderer = renderer
        self.store = store
        self.extractor = extractor or Extractor(config.site)
        self.paginator = IndexPaginator(renderer, config, link_finder, sleep=sleep)
        self.stop_event = stop_event
        self.sleep = sleep
        self.report = CrawlReport(site=self.site.source.value)
        self._pending: List[PartialRecord] = []
        self._known: Set[str] = set()

    def _stop_requested(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    def _link_identity(self, link: str) -> str:
        return identity(self.site.source, link, native_id_from_url(link, self.site.native_id_pattern))

    def _fresh_links(self, links):
        if not self.config.skip_known_links:
            return links
        fresh = [link for link in links if self._link_identity(link) not in self._known]
        skipped = len(links) - len(fresh)
        if skipped:
            logger.info("Skipping %d already known listing(s)", skipped)
            self.report.skipped_known += skipped
        return fresh

    def _fetch_detail(self, link: str) -> Optional[PartialRecord]:
        try:
            page = self.renderer.navigate(link, reveal_selector=self.site.reveal_selector)
            return evaluate(page, self.extractor.extract)
        except (FetchError, ExtractionFailed) as e:
            logger.warning("Skipping listing %s: %s", link, e)
            self.report.failed += 1
            return None

    def _merge_and_save(self, batch) -> ReconcileResult:
        result = reconcile(self.store.read_all(), batch, reset_policy=self.config.status_reset)
        self.store.commit(result)
        return result

    def _apply(self, result: ReconcileResult, batch):
        self.report.added += result.added
        self.report.updated += result.updated
        self._known.update(record_identity(r) for r in batch)
        self._pending = []

    def checkpoint(self):
        if not self._pending:
            return
        batch = list(self._pending)
        write = retry(StoreError, tries=self.config.store_write_attempts,
                      delay=self.config.store_retry_delay, sleep=self.sleep)(self._merge_and_save)
        self._apply(write(batch), batch)

    def _salvage(self):
        if not self._pending:
            return
        batch = list(self._pending)
        logger.warning("Salvaging %d unsaved listing(s)", len(batch))
        try:
            self._apply(self._merge_and_save(batch), batch)
        except Exception:
            logger.exception("Salvage write failed; %d listing(s) lost", len(batch))

    def _process_page(self, index_page):
        links = self._fresh_links(index_page.links)
        logger.info("Processing %d listing(s) from index page %d", len(links), index_page.number)
        for i, link in enumerate(links):
            record = self._fetch_detail(link)
            if record is not None:
                self._pending.append(record)
            if i < len(links) - 1:
                self.sleep(self.config.delay_between_listings)
        saved = len(self._pending)
        self.checkpoint()
        logger.info(
            "Page %d done: %d link(s), %d saved, totals %d added / %d updated",
            index_page.number, len(index_page.links), saved, self.report.added, self.report.updated,
        )

    def run(self) -> CrawlReport:
        report = self.report = CrawlReport(site=self.site.source.value)
        self._pending = []
        pages = None
        try:
            self._known = self.store.known_identities() if self.config.skip_known_links else set()
            pages = self.paginator.pages()
            for index_page in pages:
                report.pages_visited = self.paginator.pages_visited
                self._process_page(index_page)
                if self._stop_requested():
                    logger.info("Stop requested, ending crawl after page %d", index_page.number)
                    report.reason = "stopped"
                    break
        except Exception as exc:
            report.pages_visited = self.paginator.pages_visited
            report.reason = "fatal_error"
            report.error = f"{type(exc).__name__}: {exc}"
            self._salvage()
            logger.error("Crawl of %s failed: %s", report.site, report.error)
            raise FatalCrawlError(f"crawl of {report.site} failed: {exc}", report) from exc
        finally:
            if pages is not None:
                pages.close()

        report.pages_visited = self.paginator.pages_visited
        if report.reason is None:
            report.reason = _PAGINATION_REASONS.get(self.paginator.reason, "exhausted")
        logger.info(
            "Crawl of %s finished (%s): %d page(s), %d added, %d updated, %d skipped, %d failed",
            report.site, report.reason, report.pages_visited, report.added, report.updated,
            report.skipped_known, report.failed,
        )
        return report
