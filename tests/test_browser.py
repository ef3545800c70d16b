# tests/test_browser.py
from carsync.browser import RenderedPage, evaluate
from carsync.paginator import LinkFinder
from carsync.sites import YALLAMOTOR

from conftest import car_url, index_html


def test_soup_is_parsed_once():
    page = RenderedPage(url="https://example.com", html="<html><head><title>Cars</title></head></html>")
    assert page.soup is page.soup
    assert page.soup.title.string == "Cars"


def test_evaluate_returns_plain_data():
    page = RenderedPage(url="https://example.com", html=index_html([car_url(1), car_url(2)]))
    links = evaluate(page, LinkFinder(YALLAMOTOR).find)
    assert links == [car_url(1), car_url(2)]
    assert all(type(link) is str for link in links)
