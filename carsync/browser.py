# carsync/browser.py
"""Rendering-engine adapter.

The crawler only sees ``RenderedPage`` values: the final URL plus the
rendered HTML, parsed on demand with BeautifulSoup. Live Playwright handles
never leave this module.
"""
import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar
from bs4 import BeautifulSoup
from playwright.sync_api import sync_playwright, Error as PWError, TimeoutError as PWTimeout

from .exceptions import FetchError
from .utils import logger

T = TypeVar("T")

_bs_parser = "lxml"


@dataclass
class RenderedPage:
    url: str
    html: str
    _soup: Optional[BeautifulSoup] = field(default=None, repr=False, compare=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or "", _bs_parser)
        return self._soup


def evaluate(page: RenderedPage, fn: Callable[[RenderedPage], T]) -> T:
    """Run ``fn`` over a rendered document snapshot and return its plain result."""
    return fn(page)


class Renderer(ABC):
    @abstractmethod
    def navigate(self, url, wait_for=None, reveal_selector=None) -> RenderedPage:
        """Render ``url`` and return its document; raise FetchError on failure."""

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class PlaywrightRenderer(Renderer):
    """Single chromium session shared by every navigation of a crawl."""

    def __init__(self, user_agent, timeout=60000, headless=True, cookies_file=None):
        self.user_agent = user_agent
        self.timeout = timeout
        self.headless = headless
        self.cookies_file = cookies_file
        self._pw = None
        self._browser = None
        self._context = None
        self._page = None

    @classmethod
    def from_config(cls, config, cookies_file=None):
        return cls(
            user_agent=config.user_agent,
            timeout=config.navigation_timeout,
            headless=config.headless,
            cookies_file=cookies_file,
        )

    def start(self):
        if self._page is not None:
            return self
        self._pw = sync_playwright().start()
        self._browser = self._pw.chromium.launch(
            headless=self.headless,
            args=["--no-sandbox", "--disable-blink-features=AutomationControlled"],
        )
        self._context = self._browser.new_context(
            user_agent=self.user_agent,
            viewport={"width": 1920, "height": 1080},
        )
        if self.cookies_file and os.path.exists(self.cookies_file):
            try:
                with open(self.cookies_file, "r", encoding="utf-8") as fh:
                    cookies = json.load(fh)
                self._context.add_cookies(cookies)
            except (OSError, ValueError, PWError) as e:
                logger.error("Failed loading cookies: %s", e)
        self._page = self._context.new_page()
        return self

    def __enter__(self):
        return self.start()

    def navigate(self, url, wait_for=None, reveal_selector=None) -> RenderedPage:
        if self._page is None:
            self.start()
        page = self._page
        try:
            page.goto(url, wait_until="domcontentloaded", timeout=self.timeout)
            if wait_for:
                try:
                    page.wait_for_selector(wait_for, timeout=self.timeout)
                except PWTimeout:
                    # callers decide whether the missing content is fatal
                    logger.warning("Selector %r not found on %s", wait_for, url)
            if reveal_selector:
                button = page.query_selector(reveal_selector)
                if button:
                    try:
                        button.click(timeout=5000)
                        page.wait_for_timeout(2000)
                    except PWError as e:
                        logger.debug("Reveal click failed on %s: %s", url, e)
            return RenderedPage(url=page.url, html=page.content())
        except PWTimeout as e:
            raise FetchError(url, "timeout") from e
        except PWError as e:
            raise FetchError(url, str(e)) from e

    def close(self):
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except PWError as e:
                logger.error("Error closing browser: %s", e)
        if self._pw is not None:
            self._pw.stop()
        self._pw = self._browser = self._context = self._page = None
