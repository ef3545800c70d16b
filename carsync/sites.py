# carsync/sites.py
"""Per-marketplace presets: URLs, link patterns and selectors."""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .exceptions import ConfigurationError
from .schemas import Source


@dataclass(frozen=True)
class SiteConfig:
    source: Source
    base_url: str
    index_url_template: str
    link_pattern: str
    anchor_selector: str
    native_id_pattern: Optional[str]
    core_selector: str
    wait_selector: Optional[str] = None
    reveal_selector: Optional[str] = None
    default_location: Optional[str] = None
    strategies: Tuple[str, ...] = ()
    # DOM selectors used by the label/selector heuristic
    selectors: Dict[str, str] = field(default_factory=dict)


DUBICARS = SiteConfig(
    source=Source.DUBICARS,
    base_url="https://www.dubicars.com",
    index_url_template=(
        "https://www.dubicars.com/search?o=&did=&gen=&trg=&moc=&c=new-and-used&ul=AE&cr=AED"
        "&mg=&yf=2018&yt=&set=bu&pf=120000&pt=800000&emif=&emit=&kf=&kt=80000"
        "&gi%5B%5D=1&gi%5B%5D=5&gi%5B%5D=6&f%5B%5D=25&eo%5B%5D=can-be-exported"
        "&eo%5B%5D=not-for-export&st%5B%5D=private&noi=30&page={page}"
    ),
    link_pattern=r"^https?://(www\.)?dubicars\.com/.+",
    anchor_selector="a.image-container",
    native_id_pattern=r"-(\d+)\.html$",
    core_selector='div.currency-price-field, .seller-intro, span:-soup-contains("Model year")',
    wait_selector="a.image-container",
    reveal_selector="a.call-dealer",
    default_location="Dubai",
    strategies=("meta_tags", "dom_labels"),
    selectors={
        "image_source": 'source[media="(max-width:600px)"]',
        "image": "img[alt]",
        "phone": "button.base-btn.btn-main.btn-lg.icon-phone",
        "specs": 'a[title="GCC"], a[title="American Specs"], a[title="European Specs"], a.text-underline[href*="/used/"]',
        "price": "div.price.currency-price-field, div.currency-price-field",
        "seller": ".seller-intro p.fs-16.fw-600",
        "trim_row": "li.fd-col.fw-500.text-dark",
    },
)

YALLAMOTOR = SiteConfig(
    source=Source.YALLAMOTOR,
    base_url="https://uae.yallamotor.com",
    index_url_template=(
        "https://uae.yallamotor.com/used-cars/pr_120000_10000000/km_100_80000"
        "/sl_individual/tr_automatic/ft_petrol/rs_1/rs_3/rs_10?page={page}"
    ),
    link_pattern=r"^(https?://uae\.yallamotor\.com)?/used-cars/[^/]+/[^/]+/\d{4}/used-",
    anchor_selector='a.black-link[data-turbolinks="false"]',
    native_id_pattern=r"/(\d+)/?$",
    core_selector='script[type="application/ld+json"], script:-soup-contains("__next_f")',
    wait_selector='script[type="application/ld+json"], a[href*="/used-cars/"]',
    strategies=("next_flight", "json_ld", "dom_labels"),
    selectors={
        "specs_title": "div.text-base.font-semibold.text-gray-900[title]",
    },
)

SITES = {
    DUBICARS.source.value: DUBICARS,
    YALLAMOTOR.source.value: YALLAMOTOR,
}


def get_site(name) -> SiteConfig:
    key = getattr(name, "value", name)
    try:
        return SITES[str(key).lower()]
    except KeyError:
        raise ConfigurationError(f"unknown site {name!r}; expected one of {sorted(SITES)}") from None
