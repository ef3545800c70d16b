# tests/test_identity.py
import hashlib
from carsync.identity import contact_channel_for, identity, native_id_from_url, normalize_url
from carsync.schemas import Source
from carsync.sites import DUBICARS, YALLAMOTOR


def test_native_id_wins():
    assert identity(Source.YALLAMOTOR, "https://uae.yallamotor.com/used-cars/a/b/2021/used-x/123", "123") == "yallamotor_123"


def test_url_identity_is_stable_and_pinned():
    url = "https://www.dubicars.com/2021-toyota-camry.html"
    first = identity("dubicars", url)
    assert first == identity(Source.DUBICARS, url)
    # sha1 based, so the value survives process restarts
    assert first == "dubicars_" + hashlib.sha1(normalize_url(url).encode()).hexdigest()[:16]


def test_url_normalisation_ignores_cosmetic_differences():
    a = identity("dubicars", "https://WWW.dubicars.com/car.html?b=2&a=1#photos")
    b = identity("dubicars", "https://www.dubicars.com/car.html/?a=1&b=2")
    assert a == b
    assert a != identity("dubicars", "https://www.dubicars.com/other-car.html")


def test_native_id_from_site_patterns():
    assert native_id_from_url("https://uae.yallamotor.com/used-cars/toyota/camry/2021/used-toyota-camry/98765",
                              YALLAMOTOR.native_id_pattern) == "98765"
    assert native_id_from_url("https://www.dubicars.com/2021-toyota-camry-se-654321.html",
                              DUBICARS.native_id_pattern) == "654321"
    assert native_id_from_url("https://www.dubicars.com/search", DUBICARS.native_id_pattern) is None
    assert native_id_from_url("https://x/1", None) is None


def test_contact_channel_for_phone():
    assert contact_channel_for("+971 50 123 4567") == "https://wa.me/971501234567"
    assert contact_channel_for("") is None
    assert contact_channel_for(None) is None
