# tests/test_extract.py
import pytest
from carsync.browser import RenderedPage
from carsync.exceptions import ExtractionFailed
from carsync.extract import (
    DomLabelStrategy,
    Extractor,
    ExtractionStrategy,
    MetaTagStrategy,
    infer_regional_spec,
    merge_fragments,
)
from carsync.schemas import Source
from carsync.sites import DUBICARS, YALLAMOTOR
from carsync.utils import parse_price

from conftest import car_url, detail_html

DUBICARS_URL = "https://www.dubicars.com/2020-nissan-patrol-le-platinum-123456.html"

DUBICARS_HTML = """
<html><head>
<meta name="description" content="Used Nissan Patrol 2020 for sale in Dubai, AED 169,000 - call now">
</head><body>
<picture><source media="(max-width:600px)" srcset="//cdn.dubicars.com/patrol.jpg 1x"></picture>
<div><span>Model year</span><span>2020</span></div>
<div><span>Kilometers</span><span>45,000 km</span></div>
<a title="GCC" href="/used/gcc"><span>GCC</span></a>
<div class="price currency-price-field">AED 170,500</div>
<div class="seller-intro"><p class="fs-16 fw-600">Omar</p></div>
<ul><li class="fd-col fw-500 text-dark">Vehicle type <a class="text-underline" href="/suv"><span>SUV</span></a></li></ul>
<button class="base-btn btn-main btn-lg icon-phone">+971 55 000 1111</button>
</body></html>
"""


def test_parse_price_variants():
    assert parse_price("AED 50,000") == ("AED 50,000", 50000)
    assert parse_price("AED 1,234.99") == ("AED 1,234", 1234)
    assert parse_price(75000) == ("AED 75,000", 75000)
    assert parse_price("AED 1 250 000") == ("AED 1,250,000", 1250000)
    assert parse_price("AED 169 000") == ("AED 169,000", 169000)
    assert parse_price("85,000 AED ") == ("AED 85,000", 85000)
    assert parse_price("Price on request") == ("Price on request", None)
    assert parse_price("") == (None, None)
    assert parse_price(None) == (None, None)


def test_yallamotor_structured_payloads():
    record = Extractor(YALLAMOTOR).extract(RenderedPage(url=car_url(1) + "#gallery", html=detail_html()))
    assert record.source == Source.YALLAMOTOR
    assert record.canonical_url == car_url(1)
    assert record.native_id == "1"
    assert record.price_numeric == 50000
    assert record.price_display == "AED 50,000"
    assert record.odometer == "42,000 KM"
    assert record.model_year == "2021"
    assert record.regional_spec == "GCC Specs"
    assert record.seller_name == "Ali"
    assert record.contact_phone == "+971 50 123 4567"
    assert record.contact_channel_url == "https://wa.me/971501234567"
    assert record.image_url == "https://cdn.yallamotor.com/car.jpg"
    assert record.trim == "SE"
    assert record.location == "Abu Dhabi"


def test_dubicars_meta_price_preferred_over_dom():
    record = Extractor(DUBICARS).extract(RenderedPage(url=DUBICARS_URL, html=DUBICARS_HTML))
    assert record.price_numeric == 169000
    assert record.price_display == "AED 169,000"
    assert record.image_url == "https://cdn.dubicars.com/patrol.jpg"
    assert record.model_year == "2020"
    assert record.odometer == "45,000 km"
    assert record.regional_spec == "GCC"
    assert record.seller_name == "Omar"
    assert record.trim == "SUV"
    assert record.contact_phone == "+971 55 000 1111"
    assert record.location == "Dubai"
    assert record.native_id == "123456"


def test_meta_price_with_space_separators():
    html = DUBICARS_HTML.replace("AED 169,000", "AED 1 169 000")
    record = Extractor(DUBICARS).extract(RenderedPage(url=DUBICARS_URL, html=html))
    assert record.price_numeric == 1169000
    assert record.price_display == "AED 1,169,000"


def test_dom_price_used_when_meta_missing():
    html = DUBICARS_HTML.replace('<meta name="description" content="Used Nissan Patrol 2020 for sale in Dubai, AED 169,000 - call now">', "")
    record = Extractor(DUBICARS).extract(RenderedPage(url=DUBICARS_URL, html=html))
    assert record.price_numeric == 170500


def test_missing_optional_fields_stay_absent():
    html = "<html><body><div><span>Model year</span><span>2019</span></div></body></html>"
    record = Extractor(DUBICARS).extract(RenderedPage(url=DUBICARS_URL, html=html))
    assert record.model_year == "2019"
    assert record.price_numeric is None
    assert record.price_display is None
    assert record.contact_phone is None
    assert record.contact_channel_url is None


def test_empty_document_is_hard_failure():
    with pytest.raises(ExtractionFailed):
        Extractor(YALLAMOTOR).extract(RenderedPage(url=car_url(1), html=""))


def test_page_without_listing_data_is_hard_failure():
    with pytest.raises(ExtractionFailed):
        Extractor(YALLAMOTOR).extract(RenderedPage(url=car_url(1), html="<html><body><p>Access denied</p></body></html>"))


def test_error_page_with_meta_description_is_rejected():
    html = (
        '<html><head><meta name="description" content="Cars for sale in UAE from AED 10,000">'
        '<meta property="og:image" content="https://www.dubicars.com/logo.png"></head>'
        "<body><h1>Page not found</h1></body></html>"
    )
    with pytest.raises(ExtractionFailed, match="core block"):
        Extractor(DUBICARS).extract(RenderedPage(url=DUBICARS_URL, html=html))


def test_yallamotor_page_without_listing_scripts_is_rejected():
    html = "<html><head><title>YallaMotor</title></head><body><h1>Oops</h1><script>window.x = 1</script></body></html>"
    with pytest.raises(ExtractionFailed, match="core block"):
        Extractor(YALLAMOTOR).extract(RenderedPage(url=car_url(1), html=html))


def test_failing_strategy_falls_back_to_next():
    class Broken(ExtractionStrategy):
        name = "broken"

        def extract(self, page):
            raise ValueError("layout changed")

    extractor = Extractor(DUBICARS, strategies=[Broken(DUBICARS), MetaTagStrategy(DUBICARS), DomLabelStrategy(DUBICARS)])
    record = extractor.extract(RenderedPage(url=DUBICARS_URL, html=DUBICARS_HTML))
    assert record.price_numeric == 169000


def test_merge_prefers_earlier_fragments_and_skips_blanks():
    merged = merge_fragments([
        {"trim": "", "model_year": "2020", "unknown": "x"},
        {"trim": "SE", "model_year": "2019"},
    ])
    assert merged == {"model_year": "2020", "trim": "SE"}


def test_infer_regional_spec():
    assert infer_regional_spec("Full option, GCC, one owner") == "GCC Specs"
    assert infer_regional_spec("European import") == "European Specs"
    assert infer_regional_spec("nothing here") is None
