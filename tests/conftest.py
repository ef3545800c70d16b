# tests/conftest.py
import json
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CRON_SECRET"] = "test-secret"

import pytest
from carsync.browser import RenderedPage, Renderer
from carsync.config import load_config
from carsync.db import Base, engine, SessionLocal, init_db
from carsync.exceptions import FetchError

YALLA = "https://uae.yallamotor.com"
INDEX = YALLA + "/used-cars/search?page={page}"


def car_url(n):
    return f"{YALLA}/used-cars/toyota/camry/2021/used-toyota-camry-2021-dubai/{n}"


def index_html(links):
    item_list = {
        "@context": "https://schema.org",
        "@type": "ItemList",
        "itemListElement": [{"@type": "ListItem", "position": i + 1, "url": link} for i, link in enumerate(links)],
    }
    return f'<html><head><script type="application/ld+json">{json.dumps(item_list)}</script></head><body></body></html>'


def empty_html():
    return "<html><head></head><body><p>No results</p></body></html>"


def detail_html(price=50000, mileage=42000, year=2021, seller="Ali", phone="+971 50 123 4567",
                description="Clean car, GCC specs"):
    car = {
        "@context": "https://schema.org",
        "@type": ["Product", "Car"],
        "description": description,
        "modelDate": year,
        "mileageFromOdometer": {"@type": "QuantitativeValue", "value": mileage},
        "offers": {"@type": "Offer", "price": price, "priceCurrency": "AED"},
    }
    flight = {
        "en": {
            "user": {"name": seller, "phone": phone},
            "version": {"title": "SE"},
            "city": {"title": "Abu Dhabi"},
        },
        "media": {"pictures": {"slideshow_picture": ["//cdn.yallamotor.com/car.jpg"]}},
    }
    push = json.dumps(json.dumps(flight, separators=(",", ":")))
    return (
        "<html><head>"
        f'<script type="application/ld+json">{json.dumps(car)}</script>'
        "</head><body><h1>Toyota Camry</h1>"
        f"<script>self.__next_f.push([1,{push}])</script>"
        "</body></html>"
    )


class FakeRenderer(Renderer):
    """Serves canned HTML per URL; values may be strings, exceptions or callables."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.visits = []

    def navigate(self, url, wait_for=None, reveal_selector=None):
        self.visits.append(url)
        content = self.pages.get(url)
        if callable(content):
            content = content()
        if isinstance(content, Exception):
            raise content
        if content is None:
            raise FetchError(url, "no such page")
        return RenderedPage(url=url, html=content)


def site_pages(pages_of_links, details=None):
    """Index pages numbered from 1, one empty page after them, plus detail pages."""
    pages = {}
    for number, links in enumerate(pages_of_links, start=1):
        pages[INDEX.format(page=number)] = index_html(links)
    pages[INDEX.format(page=len(pages_of_links) + 1)] = empty_html()
    for links in pages_of_links:
        for link in links:
            pages[link] = detail_html()
    pages.update(details or {})
    return pages


def no_sleep(seconds):
    pass


@pytest.fixture
def config():
    return load_config(
        "yallamotor",
        index_url_template=INDEX,
        delay_between_pages=0,
        delay_between_listings=0,
        recovery_wait=0,
        store_retry_delay=0,
    )


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)
