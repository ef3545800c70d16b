# carsync/paginator.py
"""Walks a paginated listing index and yields the detail links of each page."""
import enum
import re
import time
from dataclasses import dataclass, field
from typing import Iterator, List, Optional
from urllib.parse import urljoin

from .browser import RenderedPage, Renderer, evaluate
from .exceptions import FetchError
from .extract import find_all_json_ld
from .sites import SiteConfig
from .utils import logger


class PaginatorState(str, enum.Enum):
    START = "start"
    FETCHING_INDEX = "fetching_index"
    HAVE_LINKS = "have_links"
    DONE = "done"
    EXHAUSTED = "exhausted"
    ERROR = "error"


TERMINAL_STATES = (PaginatorState.DONE, PaginatorState.EXHAUSTED, PaginatorState.ERROR)


@dataclass
class IndexPage:
    number: int
    url: str
    links: List[str] = field(default_factory=list)


class LinkFinder:
    """Listing links from an index page.

    schema.org ItemList entries are preferred; anchors matching the site's
    link pattern are only scanned when no ItemList yields anything.
    """

    def __init__(self, site: SiteConfig):
        self.site = site
        self.pattern = re.compile(site.link_pattern)

    def _accept(self, href) -> Optional[str]:
        if not href or not isinstance(href, str):
            return None
        url = urljoin(self.site.base_url + "/", href.strip())
        if not self.pattern.search(url):
            return None
        return url.split("#")[0]

    def item_list_links(self, page: RenderedPage) -> List[str]:
        links = []
        for obj in find_all_json_ld(page.soup):
            if obj.get("@type") != "ItemList":
                continue
            elements = obj.get("itemListElement")
            if not isinstance(elements, list):
                continue
            for item in elements:
                if not isinstance(item, dict):
                    continue
                href = item.get("url")
                if not href and isinstance(item.get("item"), dict):
                    href = item["item"].get("url")
                url = self._accept(href)
                if url:
                    links.append(url)
        return links

    def anchor_links(self, page: RenderedPage) -> List[str]:
        links = []
        for a in page.soup.select(self.site.anchor_selector):
            url = self._accept(a.get("href"))
            if url:
                links.append(url)
        return links

    def find(self, page: RenderedPage) -> List[str]:
        links = self.item_list_links(page) or self.anchor_links(page)
        # first-seen order, no repeats
        return list(dict.fromkeys(links))


class IndexPaginator:
    def __init__(self, renderer: Renderer, config, link_finder: Optional[LinkFinder] = None,
                 sleep=time.sleep):
        self.renderer = renderer
        self.config = config
        self.site = config.site
        self.link_finder = link_finder or LinkFinder(config.site)
        self.sleep = sleep
        self.state = PaginatorState.START
        self.reason: Optional[str] = None
        self.pages_visited = 0

    def _finish(self, state, reason):
        self.state = state
        self.reason = reason
        logger.info("Pagination finished: %s (%s) after %d page(s)", state.value, reason, self.pages_visited)

    def _navigate(self, url) -> RenderedPage:
        try:
            return self.renderer.navigate(url, wait_for=self.site.wait_selector)
        except FetchError as e:
            logger.warning("Index fetch failed (%s), retrying in %s sec", e, self.config.recovery_wait)
        self.sleep(self.config.recovery_wait)
        try:
            return self.renderer.navigate(url, wait_for=self.site.wait_selector)
        except FetchError:
            self._finish(PaginatorState.ERROR, "navigation_failed")
            raise

    def _recheck(self, url) -> List[str]:
        logger.info("No listings on %s, re-checking in %s sec", url, self.config.recovery_wait)
        self.sleep(self.config.recovery_wait)
        try:
            page = self.renderer.navigate(url, wait_for=self.site.wait_selector)
        except FetchError as e:
            logger.warning("Re-check of %s failed: %s", url, e)
            return []
        return evaluate(page, self.link_finder.find)

    def pages(self) -> Iterator[IndexPage]:
        self.state = PaginatorState.START
        self.reason = None
        self.pages_visited = 0
        previous_url = None
        previous_links = None
        number = 0
        try:
            while True:
                if number >= self.config.max_pages:
                    self._finish(PaginatorState.EXHAUSTED, "page_ceiling")
                    return
                number += 1
                url = self.config.index_url(number)
                self.state = PaginatorState.FETCHING_INDEX
                logger.info("Fetching index page %d: %s", number, url)
                page = self._navigate(url)
                self.pages_visited += 1
                self.sleep(self.config.delay_between_pages)

                links = evaluate(page, self.link_finder.find) or self._recheck(url)
                if not links:
                    self._finish(PaginatorState.EXHAUSTED, "empty_page")
                    return
                link_set = frozenset(links)
                if page.url == previous_url or link_set == previous_links:
                    self._finish(PaginatorState.EXHAUSTED, "loop_detected")
                    return
                previous_url, previous_links = page.url, link_set

                self.state = PaginatorState.HAVE_LINKS
                logger.info("Index page %d: %d listing link(s)", number, len(links))
                yield IndexPage(number=number, url=page.url, links=links)
        except Exception:
            if self.state not in TERMINAL_STATES:
                self.state = PaginatorState.ERROR
                self.reason = "unexpected_error"
            raise
        finally:
            if self.state not in TERMINAL_STATES:
                self.state = PaginatorState.DONE
                self.reason = self.reason or "stopped"
