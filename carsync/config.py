# carsync/config.py
"""Crawl configuration.

Values come from the site preset, then environment variables (``.env`` is
loaded via python-dotenv), then explicit overrides. The resulting
``CrawlConfig`` is frozen and handed to the crawler at construction.
"""
import enum
import os
from dataclasses import dataclass, replace
from typing import Optional
from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .sites import SiteConfig, get_site

load_dotenv()

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_DATA_FILE = os.path.join("data", "unified_cars_data.json")


class StatusResetPolicy(str, enum.Enum):
    NEVER = "never"
    ON_CHANGE = "on_change"
    ALWAYS = "always"


@dataclass(frozen=True)
class CrawlConfig:
    site: SiteConfig
    index_url_template: str
    max_pages: int = 20
    delay_between_pages: float = 3.0
    delay_between_listings: float = 1.5
    recovery_wait: float = 5.0
    navigation_timeout: int = 60000
    user_agent: str = DEFAULT_USER_AGENT
    headless: bool = True
    skip_known_links: bool = True
    status_reset: StatusResetPolicy = StatusResetPolicy.ON_CHANGE
    store_write_attempts: int = 3
    store_retry_delay: float = 1.0

    def __post_init__(self):
        if "{page}" not in self.index_url_template:
            raise ConfigurationError("index_url_template must contain a {page} placeholder")
        if self.max_pages < 1:
            raise ConfigurationError("max_pages must be at least 1")
        if self.store_write_attempts < 1:
            raise ConfigurationError("store_write_attempts must be at least 1")

    def index_url(self, page: int) -> str:
        return self.index_url_template.format(page=page)

    def with_overrides(self, **overrides) -> "CrawlConfig":
        return replace(self, **overrides)


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_number(name, default, cast):
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


def load_config(site, **overrides) -> CrawlConfig:
    preset = get_site(site)
    try:
        reset = StatusResetPolicy(os.getenv("CRAWL_STATUS_RESET", StatusResetPolicy.ON_CHANGE.value))
    except ValueError:
        raise ConfigurationError(
            f"CRAWL_STATUS_RESET must be one of {[p.value for p in StatusResetPolicy]}"
        ) from None
    values = dict(
        site=preset,
        index_url_template=os.getenv("CRAWL_INDEX_URL") or preset.index_url_template,
        max_pages=_env_number("CRAWL_MAX_PAGES", 20, int),
        delay_between_pages=_env_number("CRAWL_PAGE_DELAY", 3.0, float),
        delay_between_listings=_env_number("CRAWL_LISTING_DELAY", 1.5, float),
        recovery_wait=_env_number("CRAWL_RECOVERY_WAIT", 5.0, float),
        navigation_timeout=_env_number("CRAWL_TIMEOUT_MS", 60000, int),
        user_agent=os.getenv("CRAWL_USER_AGENT", DEFAULT_USER_AGENT),
        headless=_env_flag("HEADLESS", True),
        skip_known_links=_env_flag("CRAWL_SKIP_KNOWN", True),
        status_reset=reset,
        store_write_attempts=_env_number("STORE_WRITE_ATTEMPTS", 3, int),
    )
    values.update({k: v for k, v in overrides.items() if v is not None})
    return CrawlConfig(**values)


def data_file() -> str:
    return os.getenv("CARSYNC_DATA_FILE", DEFAULT_DATA_FILE)


def cookies_file() -> Optional[str]:
    return os.getenv("PLAYWRIGHT_COOKIES_FILE")


def cron_secret() -> Optional[str]:
    return os.getenv("CRON_SECRET")
