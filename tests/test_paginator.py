# tests/test_paginator.py
import pytest
from carsync.browser import RenderedPage
from carsync.exceptions import FetchError
from carsync.paginator import IndexPaginator, LinkFinder, PaginatorState
from carsync.sites import YALLAMOTOR

from conftest import INDEX, FakeRenderer, car_url, empty_html, index_html, no_sleep


def test_three_pages_then_empty_page_is_exhausted(config):
    pages = {INDEX.format(page=n): index_html([car_url(n * 10 + i) for i in range(2)]) for n in (1, 2, 3)}
    pages[INDEX.format(page=4)] = empty_html()
    paginator = IndexPaginator(FakeRenderer(pages), config, sleep=no_sleep)

    seen = [page.number for page in paginator.pages()]

    assert seen == [1, 2, 3]
    assert paginator.state == PaginatorState.EXHAUSTED
    assert paginator.reason == "empty_page"
    assert paginator.pages_visited == 4


def test_page_ceiling(config):
    pages = {INDEX.format(page=n): index_html([car_url(n)]) for n in range(1, 10)}
    paginator = IndexPaginator(FakeRenderer(pages), config.with_overrides(max_pages=2), sleep=no_sleep)

    assert [p.number for p in paginator.pages()] == [1, 2]
    assert paginator.reason == "page_ceiling"
    assert paginator.pages_visited == 2


def test_repeated_page_content_stops_the_walk(config):
    same = index_html([car_url(1), car_url(2)])
    pages = {INDEX.format(page=n): same for n in range(1, 5)}
    paginator = IndexPaginator(FakeRenderer(pages), config, sleep=no_sleep)

    assert [p.number for p in paginator.pages()] == [1]
    assert paginator.state == PaginatorState.EXHAUSTED
    assert paginator.reason == "loop_detected"


def test_navigation_failure_retried_once(config):
    attempts = iter([FetchError(INDEX.format(page=1), "timeout"), index_html([car_url(1)])])
    pages = {INDEX.format(page=1): lambda: next(attempts), INDEX.format(page=2): empty_html()}
    renderer = FakeRenderer(pages)
    paginator = IndexPaginator(renderer, config, sleep=no_sleep)

    assert [p.links for p in paginator.pages()] == [[car_url(1)]]
    assert renderer.visits.count(INDEX.format(page=1)) == 2


def test_navigation_failure_after_retry_is_error(config):
    paginator = IndexPaginator(FakeRenderer({}), config, sleep=no_sleep)
    with pytest.raises(FetchError):
        list(paginator.pages())
    assert paginator.state == PaginatorState.ERROR


def test_empty_page_rechecked_before_giving_up(config):
    attempts = iter([empty_html(), index_html([car_url(7)])])
    pages = {INDEX.format(page=1): lambda: next(attempts), INDEX.format(page=2): empty_html()}
    paginator = IndexPaginator(FakeRenderer(pages), config, sleep=no_sleep)

    assert [p.links for p in paginator.pages()] == [[car_url(7)]]


def test_consumer_stopping_leaves_done_state(config):
    pages = {INDEX.format(page=n): index_html([car_url(n)]) for n in range(1, 5)}
    paginator = IndexPaginator(FakeRenderer(pages), config, sleep=no_sleep)
    gen = paginator.pages()
    next(gen)
    gen.close()
    assert paginator.state == PaginatorState.DONE


def test_link_finder_item_list_dedup_and_absolute():
    links = ["/used-cars/toyota/camry/2021/used-toyota-camry/1", car_url(1), car_url(2)]
    page = RenderedPage(url="x", html=index_html(links))
    assert LinkFinder(YALLAMOTOR).find(page) == [
        "https://uae.yallamotor.com/used-cars/toyota/camry/2021/used-toyota-camry/1",
        car_url(1),
        car_url(2),
    ]


def test_link_finder_falls_back_to_anchors():
    html = (
        "<html><body>"
        '<a class="black-link" data-turbolinks="false" href="/used-cars/nissan/patrol/2020/used-nissan-patrol/5">A</a>'
        '<a class="black-link" data-turbolinks="false" href="/used-cars/nissan/patrol/2020/used-nissan-patrol/5">A</a>'
        '<a class="black-link" data-turbolinks="false" href="/new-cars/nissan">B</a>'
        '<a href="/used-cars/nissan/patrol/2020/used-nissan-patrol/6">no class</a>'
        "</body></html>"
    )
    links = LinkFinder(YALLAMOTOR).find(RenderedPage(url="x", html=html))
    assert links == ["https://uae.yallamotor.com/used-cars/nissan/patrol/2020/used-nissan-patrol/5"]
